import os
import sys
import pytest

# Ensure the backend root (containing the `lobby` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from lobby import create_app, db, socketio
from lobby.services.rooms import SessionContext
from lobby.services.rooms.feed import feed


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WAITING_WINDOW_SEC = 600
    CLEANUP_MAX_PLAYERS = 1
    CLEANUP_SCHEDULER_ENABLED = False
    TXN_MAX_ATTEMPTS = 5
    TXN_BACKOFF_MS = 0
    MAX_DISPLAY_NAME_LENGTH = 64


def _build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import lobby.models  # noqa: F401
        db.create_all()
    return application


def _teardown_app(application):
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def flask_app():
    """App with its tables; no app context is left pushed.

    HTTP and socket tests must run without an outer context so every
    request gets its own ``g`` and Flask-Login cannot leak users
    between test clients.
    """
    application = _build_app(TestConfig)
    yield application
    _teardown_app(application)


@pytest.fixture()
def app_ctx(flask_app):
    """Pushed app context for calling repository and sweeper code directly."""
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def file_app_ctx(tmp_path):
    """Like ``app_ctx`` but backed by a SQLite file, so separate sessions
    get separate connections."""
    class FileTestConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'lobby.db'}"

    application = _build_app(FileTestConfig)
    with application.app_context():
        yield application
        db.session.remove()
    _teardown_app(application)


@pytest.fixture(autouse=True)
def _reset_feed():
    yield
    from lobby import socketio_events
    socketio_events._sid_watches.clear()
    feed._subscribers.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_player(flask_app):
    """Factory for HTTP clients signed in as distinct anonymous users."""
    def _make(name='Player'):
        player_client = flask_app.test_client()
        res = player_client.post('/api/session', json={'display_name': name})
        assert res.status_code == 201
        player_client.uid = res.get_json()['uid']
        return player_client
    return _make


@pytest.fixture()
def alice():
    return SessionContext(uid='alice')


@pytest.fixture()
def bob():
    return SessionContext(uid='bob')


@pytest.fixture()
def cara():
    return SessionContext(uid='cara')


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
