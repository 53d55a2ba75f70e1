import io, os
import requests
from dynpages.services import link_preview as lp_mod
from dynpages.services.blocks import render_blocks
from .conftest import create_page

PNG = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


def test_upload_and_list(app, client, owner):
    resp = client.post('/api/upload', data={'file': (io.BytesIO(PNG), 'cat.png', 'image/png')},
                       content_type='multipart/form-data')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] == 1
    assert body['file']['name'] == 'cat.png'
    assert body['file']['size'] == len(PNG)
    stored = os.path.join(app.config['UPLOAD_FOLDER'], f"{body['file']['id']}.png")
    assert os.path.exists(stored)

    served = client.get(body['file']['url'].replace('http://localhost', ''))
    assert served.status_code == 200
    assert served.data == PNG

    files = client.get('/api/upload').get_json()['files']
    assert [f['fileId'] for f in files] == [body['file']['id']]


def test_upload_rejections(app, client, owner):
    assert client.post('/api/upload', data={}, content_type='multipart/form-data').status_code == 400
    wrong = client.post('/api/upload', data={'file': (io.BytesIO(b'hello'), 'a.txt', 'text/plain')},
                        content_type='multipart/form-data')
    assert wrong.status_code == 400
    assert wrong.get_json()['error'] == 'Invalid file type. Only images are allowed'

    app.config['MAX_UPLOAD_SIZE'] = 16
    big = client.post('/api/upload', data={'file': (io.BytesIO(PNG), 'big.png', 'image/png')},
                      content_type='multipart/form-data')
    assert big.status_code == 400


def test_upload_requires_session(client):
    resp = client.post('/api/upload', data={'file': (io.BytesIO(PNG), 'cat.png', 'image/png')},
                       content_type='multipart/form-data')
    assert resp.status_code == 401


def test_qr_endpoints(client):
    png = client.get('/api/qr', query_string={'text': 'https://example.com'})
    assert png.mimetype == 'image/png'
    assert png.data.startswith(b'\x89PNG')
    assert client.get('/api/qr').status_code == 400

    data_url = client.post('/api/qr/generate', json={'text': 'hello'}).get_json()['qrCode']
    assert data_url.startswith('data:image/png;base64,')
    buf = client.post('/api/qr/generate', json={'text': 'hello', 'format': 'buffer'})
    assert buf.data.startswith(b'\x89PNG')
    assert client.post('/api/qr/generate', json={}).status_code == 400


class _HtmlResponse:
    status_code = 200
    encoding = 'utf-8'
    headers = {'Content-Type': 'text/html; charset=utf-8'}
    body = (b'<html><head><title> Plain </title>'
            b'<meta property="og:title" content="OG Title">'
            b'<meta name="description" content="About things">'
            b'<meta property="og:image" content="/img.png"></head></html>')

    def iter_content(self, chunk_size=1):
        yield self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_link_preview_parses_meta(client, monkeypatch):
    monkeypatch.setattr(lp_mod.requests, 'get', lambda url, **kw: _HtmlResponse())
    body = client.get('/api/link-preview', query_string={'url': 'https://example.com/post'}).get_json()
    assert body == {'success': 1, 'meta': {
        'title': 'OG Title', 'description': 'About things', 'image': {'url': 'https://example.com/img.png'},
    }}


def test_link_preview_falls_back_on_failure(client, monkeypatch):
    def boom(url, **kw):
        raise requests.ConnectionError('down')
    monkeypatch.setattr(lp_mod.requests, 'get', boom)
    body = client.get('/api/link-preview', query_string={'url': 'https://example.com/x'}).get_json()
    assert body['success'] == 1
    assert body['meta']['title'] == 'example.com'
    assert 'favicons?domain=example.com' in body['meta']['image']['url']


def test_link_preview_validation(client):
    assert client.get('/api/link-preview').get_json() == {'success': 0, 'error': 'URL parameter is required'}
    resp = client.get('/api/link-preview', query_string={'url': 'ftp://example.com'})
    assert resp.status_code == 400


def test_render_blocks_escapes_text():
    html = render_blocks({'blocks': [
        {'type': 'paragraph', 'data': {'text': 'hi <b>there</b> <script>x()</script>'}},
        {'type': 'list', 'data': {'style': 'ordered', 'items': ['one', {'content': 'two', 'items': []}]}},
        {'type': 'image', 'data': {'file': {'url': 'javascript:alert(1)'}}},
        {'type': 'button', 'data': {'text': 'Go', 'webhookId': 3}},
        {'type': 'delimiter', 'data': {}},
    ]})
    assert '<p>hi there x()</p>' in html
    assert '<script>' not in html
    assert '<ol><li>one</li><li>two</li></ol>' in html
    assert 'javascript:' not in html
    assert 'data-webhook-id="3"' in html
    assert '<hr>' in html
    assert render_blocks(None) == ''


def test_public_page_view(app, client, owner):
    page = create_page(client, title='Hello <world>', isPublished=True)
    resp = app.test_client().get(f"/p/{page['slug']}")
    assert resp.status_code == 200
    assert b'Hello &lt;world&gt;' in resp.data

    draft = create_page(client)
    assert app.test_client().get(f"/p/{draft['slug']}").status_code == 404


def test_health_and_unknown_route(client):
    assert client.get('/health').get_json() == {'ok': True}
    assert client.get('/api/nope').status_code == 404


def test_render_blocks_tolerates_malformed_data():
    html = render_blocks({'blocks': [
        {'type': 'paragraph', 'data': 'x'},
        {'type': 'image', 'data': {'file': 'https://x.example/y.png'}},
        {'type': 'linkTool', 'data': {'link': 'https://x.example', 'meta': 'nope'}},
        {'type': 'list', 'data': {'items': 5}},
        {'type': 'checklist', 'data': {'items': 'abc'}},
        {'type': 'header', 'data': ['level', 2]},
    ]})
    assert '<p></p>' in html
    assert '<a class="link" href="https://x.example"' in html
    assert '<ul></ul>' in html


def test_public_page_with_malformed_blocks_still_renders(app, client, owner):
    page = create_page(client, title='Odd', isPublished=True, content={'blocks': [
        {'type': 'paragraph', 'data': 'hello'},
        {'type': 'image', 'data': {'file': 'https://x.example/y.png'}},
    ]})
    resp = app.test_client().get(f"/p/{page['slug']}")
    assert resp.status_code == 200
    assert b'Odd' in resp.data


def test_qr_generate_rejects_non_object_body(client):
    assert client.post('/api/qr/generate', json=[1]).status_code == 400
    assert client.post('/api/qr/generate', json='hello').status_code == 400
    assert client.post('/api/qr/generate', json={'text': 'hi', 'format': 'gif'}).status_code == 400


class _ChunkedHtmlResponse(_HtmlResponse):
    def iter_content(self, chunk_size=1):
        yield b'<html><head><title>Long</title></head><body>'
        while True:
            yield b'y' * chunk_size


def test_link_preview_reads_chunked_body_up_to_cap(client, monkeypatch):
    monkeypatch.setattr(lp_mod.requests, 'get', lambda url, **kw: _ChunkedHtmlResponse())
    body = client.get('/api/link-preview', query_string={'url': 'https://example.com/long'}).get_json()
    assert body['meta']['title'] == 'Long'
