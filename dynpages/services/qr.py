import io, base64
import qrcode
from flask import current_app


def make_qr_bytes(url: str) -> bytes:
    """Return QR PNG bytes for the provided URL."""
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


def make_qr_data_url(url: str) -> str:
    return 'data:image/png;base64,' + base64.b64encode(make_qr_bytes(url)).decode('ascii')


def public_page_url(slug: str) -> str:
    return f"{current_app.config['BASE_URL'].rstrip('/')}/p/{slug}"


def access_url(token: str) -> str:
    return f"{current_app.config['BASE_URL'].rstrip('/')}/access/{token}"
