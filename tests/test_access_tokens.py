import base64
from datetime import timedelta
import pytest
from dynpages.errors import NotFound
from dynpages.models import db, utcnow, Page, PageAccessToken
from dynpages.services.access_tokens import (
    issue_access_token, verify_access_token, prune_expired_tokens,
)
from .conftest import create_page


def test_no_expiry_falls_back_to_public_url(client, owner):
    page = create_page(client)
    body = client.post(f"/api/pages/{page['slug']}/access-token").get_json()
    assert body['token'] is None
    assert body['expiresAt'] is None
    assert body['url'] == f"http://testserver/p/{page['slug']}"


def test_issue_and_verify(client, owner):
    page = create_page(client, qrExpiryMinutes=15, content={'blocks': [{'type': 'paragraph', 'data': {'text': 'x'}}]})
    issued = client.post(f"/api/pages/{page['slug']}/access-token").get_json()
    assert len(issued['token']) == 64
    assert issued['expiryMinutes'] == 15
    assert issued['url'].endswith(f"/access/{issued['token']}")

    resp = client.get('/api/access-token/verify', query_string={'token': issued['token']})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['valid'] is True
    assert body['page'] == {'id': page['id'], 'title': page['title'], 'slug': page['slug'], 'content': page['content']}
    assert body['expiresAt'] == issued['expiresAt']


def test_verify_requires_token(client):
    resp = client.get('/api/access-token/verify')
    assert resp.status_code == 400


def test_expired_and_unknown_tokens_look_the_same(app, client, owner):
    page = create_page(client, qrExpiryMinutes=15)
    with app.app_context():
        p = db.session.get(Page, page['id'])
        stale = issue_access_token(p, now=utcnow() - timedelta(minutes=16)).token

    expired = client.get('/api/access-token/verify', query_string={'token': stale})
    unknown = client.get('/api/access-token/verify', query_string={'token': 'f' * 64})
    assert expired.status_code == unknown.status_code == 404
    assert expired.get_json() == unknown.get_json() == {'error': 'Invalid or expired token'}


def test_token_valid_only_before_expiry(app, client, owner):
    page = create_page(client, qrExpiryMinutes=5)
    with app.app_context():
        p = db.session.get(Page, page['id'])
        t0 = utcnow()
        tok = issue_access_token(p, now=t0)
        value, expires_at = tok.token, tok.expires_at
        got, _ = verify_access_token(value, now=expires_at - timedelta(seconds=1))
        assert got.id == page['id']
        with pytest.raises(NotFound):
            verify_access_token(value, now=expires_at)


def test_multiple_tokens_are_independent_and_reusable(client, owner):
    page = create_page(client, qrExpiryMinutes=30)
    a = client.post(f"/api/pages/{page['slug']}/access-token").get_json()['token']
    b = client.post(f"/api/pages/{page['slug']}/access-token").get_json()['token']
    assert a != b
    for t in (a, b, a):
        assert client.get('/api/access-token/verify', query_string={'token': t}).status_code == 200


def test_access_token_requires_owner(app, client, owner):
    page = create_page(client, qrExpiryMinutes=30)
    other = app.test_client()
    assert other.post(f"/api/pages/{page['slug']}/access-token").status_code == 401


def test_prune_only_removes_expired(app, client, owner):
    page = create_page(client, qrExpiryMinutes=10)
    with app.app_context():
        p = db.session.get(Page, page['id'])
        issue_access_token(p, now=utcnow() - timedelta(hours=1))
        live = issue_access_token(p).token
        assert prune_expired_tokens() == 1
        assert [t.token for t in PageAccessToken.query.all()] == [live]


def test_page_qr_png_and_json(client, owner):
    page = create_page(client, qrExpiryMinutes=10)
    png = client.get(f"/api/pages/{page['slug']}/qr", headers={'Accept': 'image/png'})
    assert png.status_code == 200
    assert png.mimetype == 'image/png'
    assert png.data.startswith(b'\x89PNG')

    body = client.get(f"/api/pages/{page['slug']}/qr").get_json()
    assert body['token']
    assert base64.b64decode(body['qrPngB64']).startswith(b'\x89PNG')


def test_access_view_renders_page(client, owner):
    page = create_page(client, title='Secret menu', qrExpiryMinutes=10,
                       content={'blocks': [{'type': 'header', 'data': {'text': 'Today', 'level': 2}}]})
    token = client.post(f"/api/pages/{page['slug']}/access-token").get_json()['token']
    resp = client.get(f'/access/{token}')
    assert resp.status_code == 200
    assert b'<h2>Today</h2>' in resp.data
    assert b'Access expires at' in resp.data
    assert client.get('/access/' + 'f' * 64).status_code == 404
