import pytest

from activity import record_activity
from errors import NotFoundError, ValidationError
from extensions import db
from models_activity import ActivityEvent
from models_users import User


def test_record_uses_default_weight(app, make_user):
    user = make_user(xp=5)

    event = record_activity(user.id, "pull_request")

    db.session.expire_all()
    assert event.weight == 25
    assert db.session.get(User, user.id).xp == 30
    assert db.session.get(User, user.id).last_active is not None


def test_record_with_explicit_weight(app, make_user):
    user = make_user()

    record_activity(user.id, "Commit", weight=3)
    record_activity(user.id, "commit", weight=0)

    db.session.expire_all()
    assert db.session.get(User, user.id).xp == 3
    assert ActivityEvent.query.filter_by(user_id=user.id, kind="commit").count() == 2


@pytest.mark.parametrize("kind,weight", [("deploy", None), ("", None), (None, None), ("commit", -1), ("commit", "lots"), ("commit", True)])
def test_invalid_events_are_rejected(app, make_user, kind, weight):
    user = make_user()

    with pytest.raises(ValidationError):
        record_activity(user.id, kind, weight)

    assert ActivityEvent.query.count() == 0


def test_unknown_or_deleted_user(app, make_user):
    from timeutil import utcnow

    gone = make_user(deleted_at=utcnow())

    with pytest.raises(NotFoundError):
        record_activity("nobody", "commit")
    with pytest.raises(NotFoundError):
        record_activity(gone.id, "commit")
    assert ActivityEvent.query.count() == 0


def test_endpoint(client, login, make_user):
    assert client.post("/api/activity", json={"kind": "commit"}).status_code == 401

    user = make_user(xp=100)
    login(user)

    resp = client.post("/api/activity", json={"kind": "review"})
    body = resp.get_json()

    assert resp.status_code == 201
    assert body["event"]["kind"] == "review"
    assert body["xp"] == 120
    assert client.post("/api/activity", json={"kind": "deploy"}).status_code == 400
