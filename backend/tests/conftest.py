import os
import random
import sys
import pytest

# Ensure the backend root (containing the `bingo_live` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from bingo_live import create_app, db, socketio
from bingo_live.realtime import NAMESPACE
from bingo_live.repository import MemoryRepository
from bingo_live.services.game import GameService


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REPOSITORY_BACKEND = 'sql'
    MASTER_USERNAME = 'master'
    MASTER_PASSWORD = 'master1'
    CORS_ORIGINS = []


# Row 0 is B-3 I-20 N-40 G-50 O-70
WINNING_ROW_CARD = [
    [3, 20, 40, 50, 70],
    [1, 16, 31, 46, 61],
    [2, 17, 32, 47, 62],
    [4, 18, 33, 48, 63],
    [5, 19, 34, 49, 64],
]
WINNING_ROW_TOKENS = ['B-3', 'I-20', 'N-40', 'G-50', 'O-70']


class RecordingBroadcaster:
    def __init__(self):
        self.events = []
        self.closed = []

    def broadcast(self, session_id, event, payload):
        self.events.append((session_id, event, payload))

    def close(self, session_id):
        self.closed.append(session_id)

    def names(self):
        return [name for _, name, _ in self.events]

    def payloads(self, name):
        return [payload for _, n, payload in self.events if n == name]


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def repo():
    return MemoryRepository()


@pytest.fixture()
def service(repo, broadcaster):
    return GameService(repo, broadcaster, rng=random.Random(1234))


class InAppContext:
    """Forwards calls to ``target``, each inside its own app context.

    Requests and socket events get a fresh context (and ``g``) every time;
    calls made straight from a test should too, so a login cached by one
    client never shows up for another.
    """

    def __init__(self, flask_app, target):
        self._app = flask_app
        self._target = target

    def __getattr__(self, name):
        attr = getattr(self._target, name)
        if not callable(attr):
            return InAppContext(self._app, attr)

        def call(*args, **kwargs):
            with self._app.app_context():
                return attr(*args, **kwargs)
        return call


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import bingo_live.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def game(flask_app):
    return InAppContext(flask_app, flask_app.extensions['bingo_live']['game'])


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def host_client(flask_app):
    test_client = flask_app.test_client()
    res = test_client.post('/api/auth', json={'username': 'master', 'password': 'master1'})
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def session_id(host_client):
    res = host_client.post('/api/sessions', json={'modality': 'Línea Horizontal'})
    assert res.status_code == 201
    return res.get_json()['session_id']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=NAMESPACE
    )
    yield test_client
    try:
        test_client.disconnect(namespace=NAMESPACE)
    except Exception:
        pass


@pytest.fixture()
def sio_host(flask_app, host_client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=host_client,
        namespace=NAMESPACE
    )
    yield test_client
    try:
        test_client.disconnect(namespace=NAMESPACE)
    except Exception:
        pass
