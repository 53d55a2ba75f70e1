import io, base64, logging
from flask import Blueprint, request, jsonify, send_file, current_app
from sqlalchemy.exc import IntegrityError
from .errors import LimitReached, NotFound, ValidationFailed
from .models import db, iso_utc, Page
from .schemas import CreatePageBody, UpdatePageBody
from .services.session import current_session, require_session
from .services.slug import choose_slug
from .services.access_tokens import issue_access_token
from .services.qr import make_qr_bytes, public_page_url, access_url

logger = logging.getLogger(__name__)

bp = Blueprint('pages', __name__)


def _own_page(slug: str, user_id: int) -> Page:
    page = Page.query.filter_by(slug=slug, user_id=user_id).first()
    if page is None:
        raise NotFound('Page not found')
    return page


@bp.get('')
def list_pages():
    sess = require_session()
    pages = Page.query.filter_by(user_id=sess.user_id).order_by(Page.id).all()
    return jsonify([p.to_dict() for p in pages])


@bp.post('')
def create_page():
    sess = require_session()
    limit = current_app.config['MAX_PAGES']
    if Page.query.filter_by(user_id=sess.user_id).count() >= limit:
        raise LimitReached(f'You have reached the maximum limit of {limit} pages')

    data = request.get_json(silent=True) or {}
    body = CreatePageBody.model_validate(data)
    page = Page(
        user_id=sess.user_id,
        title=body.title,
        slug=choose_slug(body.slug),
        content=data.get('content') or {'blocks': []},
        is_published=body.is_published,
        qr_expiry_minutes=body.qr_expiry_minutes,
    )
    db.session.add(page)
    try:
        db.session.commit()
    except IntegrityError:
        # slug taken between the check and the insert
        db.session.rollback()
        raise ValidationFailed('Unable to generate unique slug. Please try again.')
    logger.info('page %s created by user %s', page.slug, sess.user_id)
    return jsonify(page.to_dict()), 201


@bp.get('/<slug>')
def get_page(slug: str):
    sess = current_session()
    if sess is not None:
        page = Page.query.filter_by(slug=slug, user_id=sess.user_id).first()
        if page is not None:
            return jsonify(page.to_dict())
    page = Page.query.filter_by(slug=slug, is_published=True).first()
    if page is None:
        raise NotFound('Page not found')
    return jsonify(page.to_dict())


@bp.put('/<slug>')
def update_page(slug: str):
    sess = require_session()
    page = _own_page(slug, sess.user_id)
    data = request.get_json(silent=True) or {}
    body = UpdatePageBody.model_validate(data)
    fields = body.model_fields_set

    if body.title:
        page.title = body.title
    if 'content' in fields and body.content is not None:
        page.content = data['content']
    if 'is_published' in fields and body.is_published is not None:
        page.is_published = body.is_published
    if 'qr_expiry_minutes' in fields:
        page.qr_expiry_minutes = body.qr_expiry_minutes
    db.session.commit()
    return jsonify(page.to_dict())


@bp.delete('/<slug>')
def delete_page(slug: str):
    sess = require_session()
    page = _own_page(slug, sess.user_id)
    db.session.delete(page)
    db.session.commit()
    return jsonify({'message': 'Page deleted successfully'})


def _share_link(page: Page) -> dict:
    tok = issue_access_token(page)
    if tok is None:
        return {'token': None, 'expiresAt': None, 'url': public_page_url(page.slug),
                'message': 'Page has no expiry configured'}
    return {'token': tok.token, 'expiresAt': iso_utc(tok.expires_at),
            'expiryMinutes': page.qr_expiry_minutes, 'url': access_url(tok.token)}


@bp.post('/<slug>/access-token')
def create_access_token(slug: str):
    sess = require_session()
    page = _own_page(slug, sess.user_id)
    return jsonify(_share_link(page))


@bp.get('/<slug>/qr')
def page_qr(slug: str):
    sess = require_session()
    page = _own_page(slug, sess.user_id)
    link = _share_link(page)
    png = make_qr_bytes(link['url'])

    if 'image/png' in request.headers.get('Accept', ''):
        return send_file(
            io.BytesIO(png), mimetype='image/png', as_attachment=False,
            download_name=f"qr_{page.slug}.png", etag=False,
        )
    link['qrPngB64'] = base64.b64encode(png).decode('ascii')
    return jsonify(link)
