import pytest
from dynpages import create_app
from dynpages.models import db
from dynpages.services import rate_limit


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SESSION_SECRET': 's' * 48,
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'BASE_URL': 'http://testserver',
        'USE_REDIS': False,
        'WEBHOOK_RATE_LIMIT': 5,
    })
    rate_limit._set(rate_limit._MemStore(clock=clock))
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    rate_limit._set(None)


@pytest.fixture
def client(app):
    return app.test_client()


def signup(client, email='owner@example.com', password='correct-horse'):
    resp = client.post('/api/auth/signup', json={'email': email, 'password': password})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['user']


def create_page(client, **fields):
    body = {'title': 'My page', 'content': {'blocks': []}}
    body.update(fields)
    resp = client.post('/api/pages', json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def owner(client):
    return signup(client)
