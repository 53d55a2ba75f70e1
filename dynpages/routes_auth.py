import logging
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash
from .errors import ValidationFailed, Unauthorized
from .models import db, User
from .schemas import SignUpBody, SignInBody
from .services.session import (
    issue_session, set_session_cookie, clear_session_cookie, require_session,
)

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

BAD_CREDENTIALS = 'Invalid email or password'


def _signed_in(user: User, status=200):
    token, exp_ts = issue_session(user.id, user.email)
    resp = jsonify({'user': user.to_dict()})
    resp.status_code = status
    return set_session_cookie(resp, token, exp_ts)


@bp.post('/signup')
def signup():
    body = SignUpBody.model_validate(request.get_json(silent=True) or {})
    if User.query.filter_by(email=body.email).first():
        raise ValidationFailed('User with this email already exists')

    user = User(email=body.email, password_hash=generate_password_hash(body.password), email_verified=False)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailed('User with this email already exists')
    logger.info('user %s signed up', user.id)
    return _signed_in(user, 201)


@bp.post('/signin')
def signin():
    body = SignInBody.model_validate(request.get_json(silent=True) or {})
    user = User.query.filter_by(email=body.email).first()
    if not user or not check_password_hash(user.password_hash, body.password):
        raise Unauthorized(BAD_CREDENTIALS)
    return _signed_in(user)


@bp.post('/signout')
def signout():
    return clear_session_cookie(jsonify({'success': True}))


@bp.get('/session')
def session():
    sess = require_session()
    user = db.session.get(User, sess.user_id)
    if user is None:
        raise Unauthorized()
    return jsonify({
        'user': user.to_dict(),
        'session': {'expiresAt': sess.expires_at},
    })
