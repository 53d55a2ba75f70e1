import logging
from flask import Blueprint, request, jsonify, current_app
from .errors import ValidationFailed, NotFound, Unauthorized
from .models import db, Page, WebhookEndpoint
from .schemas import CreateEndpointBody, UpdateEndpointBody, TriggerBody
from .services.access_tokens import verify_access_token
from .services.rate_limit import check_rate
from .services.session import current_session, require_session
from .services.webhooks import validate_url, check_webhook_id, resolve_endpoint, relay

logger = logging.getLogger(__name__)

bp = Blueprint('webhooks', __name__)


def _own_endpoint(endpoint_id: int, user_id: int) -> WebhookEndpoint:
    ep = WebhookEndpoint.query.filter_by(id=endpoint_id, user_id=user_id).first()
    if ep is None:
        raise NotFound('Webhook endpoint not found')
    return ep


@bp.get('/endpoints')
def list_endpoints():
    sess = require_session()
    eps = WebhookEndpoint.query.filter_by(user_id=sess.user_id).order_by(WebhookEndpoint.id).all()
    return jsonify({'endpoints': [e.to_dict() for e in eps]})


@bp.post('/endpoints')
def create_endpoint():
    sess = require_session()
    body = CreateEndpointBody.model_validate(request.get_json(silent=True) or {})
    ep = WebhookEndpoint(
        user_id=sess.user_id,
        name=body.name,
        url=validate_url(body.url),
        description=(body.description or '').strip() or None,
    )
    db.session.add(ep)
    db.session.commit()
    return jsonify({'endpoint': ep.to_dict()}), 201


@bp.get('/endpoints/<int:endpoint_id>')
def get_endpoint(endpoint_id: int):
    sess = require_session()
    return jsonify({'endpoint': _own_endpoint(endpoint_id, sess.user_id).to_dict()})


@bp.put('/endpoints/<int:endpoint_id>')
def update_endpoint(endpoint_id: int):
    sess = require_session()
    ep = _own_endpoint(endpoint_id, sess.user_id)
    body = UpdateEndpointBody.model_validate(request.get_json(silent=True) or {})
    fields = body.model_fields_set

    if body.name is not None:
        ep.name = body.name
    if body.url is not None:
        ep.url = validate_url(body.url)
    if 'description' in fields:
        ep.description = (body.description or '').strip() or None
    if body.is_active is not None:
        ep.is_active = body.is_active
    db.session.commit()
    return jsonify({'endpoint': ep.to_dict()})


@bp.delete('/endpoints/<int:endpoint_id>')
def delete_endpoint(endpoint_id: int):
    sess = require_session()
    ep = _own_endpoint(endpoint_id, sess.user_id)
    db.session.delete(ep)
    db.session.commit()
    return jsonify({'success': True})


def _client_ip() -> str:
    # ProxyFix already rewrote remote_addr from X-Forwarded-For
    return request.remote_addr or 'unknown'


def _scope_owner(sess, body: TriggerBody) -> int:
    """Whose endpoints a webhookId may resolve to.

    A click made from a page resolves against that page's owner, so buttons
    work for any visitor, signed in or not.
    """
    if body.page_slug:
        page = Page.query.filter_by(slug=body.page_slug).first()
        if page is None or not (page.is_published or (sess is not None and sess.user_id == page.user_id)):
            raise NotFound('Page not found')
        return page.user_id
    if body.access_token:
        page, _ = verify_access_token(body.access_token)
        return page.user_id
    if sess is not None:
        return sess.user_id
    raise Unauthorized()


@bp.post('/trigger')
def trigger():
    sess = current_session()
    identity = f"user:{sess.user_id}" if sess is not None else f"ip:{_client_ip()}"
    rate = check_rate(
        f"webhook:{identity}",
        current_app.config['WEBHOOK_RATE_LIMIT'],
        current_app.config['WEBHOOK_RATE_WINDOW'],
    )

    body = TriggerBody.model_validate(request.get_json(silent=True) or {})
    if body.webhook_id is not None:
        webhook_id = check_webhook_id(body.webhook_id)
        target = resolve_endpoint(webhook_id, _scope_owner(sess, body)).url
    elif body.webhook_url:
        if not current_app.config['WEBHOOK_ALLOW_RAW_URL']:
            raise ValidationFailed('Raw webhook URLs are disabled; register an endpoint instead')
        target = body.webhook_url
    else:
        raise ValidationFailed('Either webhookId or webhookUrl must be provided')

    result = relay(target, body.payload)
    return jsonify(result), 200, rate.headers()
