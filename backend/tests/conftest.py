import os
import sys
from datetime import datetime
import pytest
from flask import g

# Ensure the backend root (containing the `facepoints` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)
if CURRENT_DIR not in sys.path:
    sys.path.insert(0, CURRENT_DIR)

from facepoints import create_app, db, socketio
from facepoints.models import Contest, Operator, ONE_PER_USER
from facepoints.recognition.storage import LocalPhotoStore
from facepoints.services.identity import EnrollmentProfile, get_directory
from fakes import FakeOracle, FrozenClock, photo

T0 = datetime(2025, 6, 1, 12, 0, 0)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    FACE_MATCH_THRESHOLD = 90
    MAX_IMAGE_BYTES = 64 * 1024
    SESSION_TTL_HOURS = 24
    RANKING_DEFAULT_LIMIT = 50
    RANKING_MAX_LIMIT = 500
    EMPLOYEE_CODE_REQUIRED = False


@pytest.fixture()
def oracle():
    return FakeOracle()


@pytest.fixture()
def clock():
    return FrozenClock(T0)


@pytest.fixture()
def photo_dir(tmp_path):
    return str(tmp_path / 'photos')


@pytest.fixture()
def flask_app(oracle, clock, photo_dir):
    application = create_app(TestConfig, oracle=oracle, photo_store=LocalPhotoStore(photo_dir), clock=clock)

    # Test requests share the outer app context and so its `g`; Flask-Login
    # caches the user there, so each request must load its own.
    @application.before_request
    def forget_cached_user():
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import facepoints.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def operator_client(flask_app):
    operator = Operator(username='admin')
    operator.set_password('password')
    db.session.add(operator)
    db.session.commit()
    test_client = flask_app.test_client()
    res = test_client.post('/operators/login', json={'username': 'admin', 'password': 'password'})
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def enroll(flask_app, clock):
    """Enroll a person through the directory; later calls enroll later."""
    def _enroll(name, **profile):
        identity = get_directory().enroll(photo(name), EnrollmentProfile(display_name=name, **profile))
        clock.advance(seconds=1)
        return identity
    return _enroll


@pytest.fixture()
def make_contest(flask_app):
    def _make(points=100, mode=ONE_PER_USER, active=True, name='Booth'):
        contest = Contest(name=name, points_awarded=points, mode=mode, active=active)
        db.session.add(contest)
        db.session.commit()
        return contest
    return _make


@pytest.fixture()
def file_app(oracle, clock, tmp_path):
    """App on a file-backed SQLite database, for tests that use threads."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'contest.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30, 'check_same_thread': False}}

    application = create_app(
        FileConfig, oracle=oracle, photo_store=LocalPhotoStore(str(tmp_path / 'photos')), clock=clock
    )
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
