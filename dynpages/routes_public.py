from flask import Blueprint, render_template, current_app, send_from_directory, abort
from .errors import NotFound
from .models import Page, iso_utc
from .services.access_tokens import verify_access_token
from .services.blocks import render_blocks

bp = Blueprint('public', __name__)


@bp.get('/')
def home():
    return render_template('home.html')


@bp.get('/p/<slug>')
def page_view(slug: str):
    page = Page.query.filter_by(slug=slug, is_published=True).first()
    if page is None:
        return render_template('not_found.html'), 404
    return render_template('page.html', page=page, title=page.title, body=render_blocks(page.content))


@bp.get('/access/<token>')
def access_view(token: str):
    try:
        page, tok = verify_access_token(token)
    except NotFound as e:
        return render_template('not_found.html', message=e.message), 404
    return render_template(
        'page.html', page=page, title=page.title, body=render_blocks(page.content),
        expires_at=iso_utc(tok.expires_at), access_token=token,
    )


@bp.get('/uploads/<path:name>')
def uploaded_file(name: str):
    folder = current_app.config['UPLOAD_FOLDER']
    if not folder:
        abort(404)
    return send_from_directory(folder, name)
