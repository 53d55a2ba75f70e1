import time, logging
from urllib.parse import urlparse
import requests
from urllib3.exceptions import ReadTimeoutError
from flask import current_app
from ..errors import ValidationFailed, NotFound, UpstreamFailed, UpstreamTimeout
from ..models import WebhookEndpoint

logger = logging.getLogger(__name__)

USER_AGENT = 'DynamicPages-Webhook/1.0'
TRUNCATED_MARKER = '... (truncated)'

_clock = time.monotonic


def validate_url(url) -> str:
    """Reject anything that is not an absolute http(s) URL."""
    if not isinstance(url, str) or not url.strip():
        raise ValidationFailed('Invalid URL format')
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise ValidationFailed('Invalid URL format')
    if not parsed.scheme or not parsed.netloc:
        raise ValidationFailed('Invalid URL format')
    if parsed.scheme not in ('http', 'https'):
        raise ValidationFailed('Only HTTP/HTTPS protocols are allowed')
    return url


def check_webhook_id(webhook_id) -> int:
    if isinstance(webhook_id, bool) or not isinstance(webhook_id, int):
        raise ValidationFailed('Invalid webhook ID')
    return webhook_id


def resolve_endpoint(webhook_id, owner_id: int) -> WebhookEndpoint:
    check_webhook_id(webhook_id)
    ep = WebhookEndpoint.query.filter_by(id=webhook_id, user_id=owner_id, is_active=True).first()
    if ep is None:
        raise NotFound('Webhook endpoint not found or inactive')
    return ep


def _timed_out(exc) -> bool:
    # a read stalling mid-body surfaces as ConnectionError wrapping urllib3's ReadTimeoutError
    for _ in range(4):
        if exc is None:
            break
        if isinstance(exc, (requests.Timeout, ReadTimeoutError)):
            return True
        exc = exc.args[0] if exc.args and isinstance(exc.args[0], BaseException) else exc.__cause__
    return False


def _read_capped(resp, cap: int, deadline: float) -> str:
    chunks, size = [], 0
    for chunk in resp.iter_content(chunk_size=64 * 1024):
        if _clock() > deadline:
            raise requests.Timeout('response body not received before deadline')
        chunks.append(chunk)
        size += len(chunk)
        if size > cap:
            break
    body = b''.join(chunks)
    text = body[:cap].decode(resp.encoding or 'utf-8', errors='replace')
    if len(body) > cap:
        text += TRUNCATED_MARKER
    return text


def relay(url: str, payload) -> dict:
    """POST the payload to `url` once and describe the upstream response.

    WEBHOOK_TIMEOUT bounds the whole exchange, body included.
    """
    url = validate_url(url)
    timeout = current_app.config['WEBHOOK_TIMEOUT']
    cap = current_app.config['WEBHOOK_MAX_RESPONSE']
    deadline = _clock() + timeout
    try:
        with requests.post(
            url,
            json=payload if payload is not None else {},
            headers={'Content-Type': 'application/json', 'User-Agent': USER_AGENT},
            timeout=timeout,
            stream=True,
            allow_redirects=False,
        ) as resp:
            body = _read_capped(resp, cap, deadline)
            logger.info('webhook %s -> %s', urlparse(url).netloc, resp.status_code)
            return {
                'success': True,
                'status': resp.status_code,
                'statusText': resp.reason or '',
                'response': body,
                'headers': dict(resp.headers),
            }
    except requests.RequestException as e:
        if _timed_out(e):
            logger.warning('webhook timeout after %ss: %s', timeout, urlparse(url).netloc)
            raise UpstreamTimeout(f'Webhook request timeout ({timeout} seconds exceeded)', success=False)
        logger.warning('webhook failed: %s', e)
        raise UpstreamFailed(details=str(e), success=False)
