import io, os, uuid, logging
from flask import Blueprint, request, jsonify, send_file, current_app, url_for
from .errors import ValidationFailed, ApiError
from .models import db, iso_utc, UploadedFile
from .schemas import QrGenerateBody
from .services.access_tokens import verify_access_token
from .services.link_preview import fetch_meta
from .services.qr import make_qr_bytes, make_qr_data_url
from .services.session import require_session

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__)

ALLOWED_IMAGE_TYPES = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
}


@bp.get('/access-token/verify')
def verify_token():
    token = request.args.get('token', '')
    if not token:
        raise ValidationFailed('Token is required')
    page, tok = verify_access_token(token)
    return jsonify({'valid': True, 'page': page.to_public_dict(), 'expiresAt': iso_utc(tok.expires_at)})


def _png(data: bytes):
    return send_file(io.BytesIO(data), mimetype='image/png', etag=False)


@bp.get('/qr')
def qr_image():
    text = request.args.get('text', '')
    if not text:
        raise ValidationFailed('Text parameter is required')
    return _png(make_qr_bytes(text))


@bp.post('/qr/generate')
def qr_generate():
    body = QrGenerateBody.model_validate(request.get_json(silent=True) or {})
    if body.format == 'buffer':
        return _png(make_qr_bytes(body.text))
    return jsonify({'qrCode': make_qr_data_url(body.text)})


@bp.get('/link-preview')
def link_preview():
    url = request.args.get('url', '')
    if not url:
        return jsonify({'success': 0, 'error': 'URL parameter is required'}), 400
    try:
        meta = fetch_meta(url)
    except ValidationFailed:
        return jsonify({'success': 0, 'error': 'Invalid URL'}), 400
    return jsonify({'success': 1, 'meta': meta})


@bp.post('/upload')
def upload():
    sess = require_session()
    f = request.files.get('file')
    if f is None or not f.filename:
        raise ValidationFailed('No file provided')
    if f.mimetype not in ALLOWED_IMAGE_TYPES:
        raise ValidationFailed('Invalid file type. Only images are allowed')

    max_size = current_app.config['MAX_UPLOAD_SIZE']
    data = f.read(max_size + 1)
    if len(data) > max_size:
        raise ValidationFailed(f'File too large. Maximum size is {max_size} bytes')
    if not data:
        raise ValidationFailed('Empty file')

    file_id = uuid.uuid4().hex
    stored = f"{file_id}.{ALLOWED_IMAGE_TYPES[f.mimetype]}"
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    try:
        with open(os.path.join(folder, stored), 'wb') as out:
            out.write(data)
    except OSError as e:
        logger.error('upload write failed: %s', e)
        raise ApiError('Failed to upload file')

    rec = UploadedFile(
        file_id=file_id,
        file_url=url_for('public.uploaded_file', name=stored, _external=True),
        user_id=sess.user_id,
        file_name=f.filename,
        file_size=len(data),
        mime_type=f.mimetype,
    )
    db.session.add(rec)
    db.session.commit()
    return jsonify({
        'success': 1,
        'file': {'url': rec.file_url, 'id': rec.file_id, 'name': rec.file_name, 'size': rec.file_size},
    })


@bp.get('/upload')
def list_uploads():
    sess = require_session()
    files = UploadedFile.query.filter_by(user_id=sess.user_id).order_by(UploadedFile.created_at, UploadedFile.id).all()
    return jsonify({'files': [f.to_dict() for f in files]})
