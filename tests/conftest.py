import pytest
from app import create_app
from models import db


@pytest.fixture
def app():
    """
    Fresh application on an in-memory SQLite database for each test.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret',
        'APP_ENV': 'testing',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def signup(client, email='alice@example.com', password='correct-horse', name='Alice'):
    resp = client.post('/api/auth/signup', json={'email': email, 'password': password, 'name': name})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['user']


@pytest.fixture
def user(client):
    """Signs up a user; the client keeps the auth cookie."""
    return signup(client)


class FakeResponse:
    def __init__(self, resp):
        self._resp = resp
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400

    def json(self):
        data = self._resp.get_json(silent=True)
        if data is None:
            raise ValueError('response is not JSON')
        return data


class FlaskSession:
    """Minimal requests.Session stand-in that routes calls to the Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, params=None, json=None, timeout=None):
        return FakeResponse(self.client.open(url, method=method, query_string=params, json=json))
