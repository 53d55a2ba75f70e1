import time, logging
from dataclasses import dataclass
import jwt
from flask import current_app, request, g
from ..errors import Unauthorized

logger = logging.getLogger(__name__)

_ALG = 'HS256'


@dataclass
class SessionPayload:
    user_id: int
    email: str
    issued_at: int
    expires_at: int


def _key() -> str:
    return current_app.config['SESSION_SECRET']


def issue_session(user_id: int, email: str, now: int | None = None) -> tuple[str, int]:
    """Sign a session token for the user. Returns (token, expires_at unix ts)."""
    now = int(now if now is not None else time.time())
    exp_ts = now + int(current_app.config['SESSION_DURATION'])
    payload = {
        'userId': user_id,
        'email': email,
        'expiresAt': exp_ts,
        'iat': now,
        'exp': exp_ts,
        'iss': current_app.config['SESSION_ISSUER'],
        'aud': current_app.config['SESSION_AUDIENCE'],
    }
    return jwt.encode(payload, _key(), algorithm=_ALG), exp_ts


def decode_session(token: str | None) -> SessionPayload | None:
    # absent, tampered, expired and malformed tokens all read as "no session"
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, _key(), algorithms=[_ALG],
            issuer=current_app.config['SESSION_ISSUER'],
            audience=current_app.config['SESSION_AUDIENCE'],
            options={'require': ['exp', 'iat', 'iss', 'aud']},
        )
    except jwt.PyJWTError as e:
        logger.debug('session rejected: %s', type(e).__name__)
        return None
    try:
        return SessionPayload(
            user_id=int(payload['userId']),
            email=str(payload['email']),
            issued_at=int(payload['iat']),
            expires_at=int(payload['exp']),
        )
    except (KeyError, TypeError, ValueError):
        return None


def set_session_cookie(resp, token: str, exp_ts: int):
    g.session_cookie_set = True
    resp.set_cookie(
        current_app.config['SESSION_COOKIE'], token,
        expires=exp_ts, httponly=True, samesite='Lax', path='/',
        secure=bool(current_app.config.get('IS_PRODUCTION')),
    )
    return resp


def clear_session_cookie(resp):
    g.session_cookie_set = True
    resp.delete_cookie(current_app.config['SESSION_COOKIE'], path='/')
    return resp


def current_session() -> SessionPayload | None:
    if 'session' not in g:
        g.session = decode_session(request.cookies.get(current_app.config['SESSION_COOKIE']))
    return g.session


def require_session() -> SessionPayload:
    sess = current_session()
    if sess is None:
        raise Unauthorized()
    return sess


def needs_refresh(sess: SessionPayload, now: int | None = None) -> bool:
    now = int(now if now is not None else time.time())
    lifetime = sess.expires_at - sess.issued_at
    return now - sess.issued_at > lifetime / 2


def refresh_session_cookie(resp):
    """after_request hook: reissue the cookie once half the lifetime has passed."""
    if g.get('session_cookie_set'):
        return resp
    sess = current_session()
    if sess is None:
        return resp
    if needs_refresh(sess):
        token, exp_ts = issue_session(sess.user_id, sess.email)
        set_session_cookie(resp, token, exp_ts)
    return resp
