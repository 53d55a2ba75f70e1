import secrets, logging
from datetime import timedelta
from ..errors import NotFound
from ..models import db, utcnow, Page, PageAccessToken

logger = logging.getLogger(__name__)

INVALID_TOKEN = 'Invalid or expired token'


def issue_access_token(page: Page, now=None) -> PageAccessToken | None:
    """Mint a time-boxed token for the page.

    Returns None when the page has no `qr_expiry_minutes`; callers then
    fall back to the permanent public URL. Tokens are reusable until they
    expire and are never revoked early.
    """
    if not page.qr_expiry_minutes:
        return None
    now = now or utcnow()
    tok = PageAccessToken(
        page_id=page.id,
        token=secrets.token_hex(32),
        expires_at=now + timedelta(minutes=page.qr_expiry_minutes),
    )
    db.session.add(tok)
    db.session.commit()
    logger.info('access token issued for page %s, expires %s', page.id, tok.expires_at)
    return tok


def verify_access_token(token: str, now=None) -> tuple[Page, PageAccessToken]:
    # unknown and expired tokens raise the same error
    now = now or utcnow()
    row = (
        db.session.query(PageAccessToken, Page)
        .join(Page, Page.id == PageAccessToken.page_id)
        .filter(PageAccessToken.token == token, PageAccessToken.expires_at > now)
        .first()
    )
    if row is None:
        raise NotFound(INVALID_TOKEN)
    tok, page = row
    return page, tok


def prune_expired_tokens(before=None) -> int:
    before = before or utcnow()
    n = PageAccessToken.query.filter(PageAccessToken.expires_at <= before).delete(synchronize_session=False)
    db.session.commit()
    return n
