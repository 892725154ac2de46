import pytest

from app import create_app
from extensions import db
from models_activity import ActivityEvent
from models_users import User
from timeutil import utcnow


class RecordingChannel:
    """Delivery channel double that keeps every handed-off message."""

    name = "recording"

    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
            "RATELIMIT_ENABLED": False,
            "REPORTING_TIMEZONE": "UTC",
            "CHALLENGE_DELIVERY": "log",
        }
    )
    app.extensions["challenge_channel"] = RecordingChannel()

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def channel(app):
    return app.extensions["challenge_channel"]


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(username=None, xp=0, created_at=None, **fields):
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            xp=xp,
            created_at=created_at or utcnow(),
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_event(app):
    def _make(user, created_at, kind="commit", weight=10):
        event = ActivityEvent(user_id=user.id, kind=kind, weight=weight, created_at=created_at)
        db.session.add(event)
        db.session.commit()
        return event

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess["user_id"] = user.id

    return _login


@pytest.fixture
def admin(make_user):
    return make_user("root", is_admin=True)


@pytest.fixture
def admin_client(client, login, admin):
    login(admin)
    return client
