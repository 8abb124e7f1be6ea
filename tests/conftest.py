import os
import sys
import pytest

# Ensure the project root (containing `config.py` and `latefine`) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from latefine import create_app, db, socketio


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    PUBLIC_BASE_URL = 'http://latefine.test'
    LEDGER_TIMEZONE = 'UTC'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import latefine.models  # noqa: F401
        db.create_all()
    # No context stays pushed: Flask-Login caches the user on `g`, and a
    # shared context would make every test client act as one account
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    """App context for tests that call the services directly."""
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def file_app(tmp_path):
    """App backed by a SQLite file, so several threads can hold connections."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"

    application = create_app(FileConfig)
    with application.app_context():
        import latefine.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_account(app_ctx):
    from latefine.models import Account

    def _make(email, password='password'):
        account = Account(email=email)
        account.set_password(password)
        db.session.add(account)
        db.session.commit()
        return account
    return _make


@pytest.fixture()
def owner(make_account):
    return make_account('a@example.com')


@pytest.fixture()
def friend(make_account):
    return make_account('b@example.com')


@pytest.fixture()
def stranger(make_account):
    return make_account('c@example.com')


@pytest.fixture()
def signed_in(flask_app):
    """Return a test client signed up and signed in as ``email``."""
    def _client(email, password='password'):
        test_client = flask_app.test_client()
        res = test_client.post('/api/auth/signup', json={'email': email, 'password': password})
        assert res.status_code == 201
        return test_client
    return _client


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
