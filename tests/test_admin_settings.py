import pytest

from extensions import db
from models_admin_logs import AdminLogEntry
from models_settings import FLAG_SHARE_CARDS, FLAG_SOCIAL_CHALLENGES, AdminSetting, FeatureFlag, is_feature_enabled


@pytest.fixture
def setting(app):
    row = AdminSetting(key="leaderboard.banner", category="leaderboard", value_json='"Top 10 get a badge"')
    db.session.add(row)
    db.session.commit()
    return row


def _flag(name):
    return FeatureFlag.query.filter_by(name=name).one()


def test_default_flags_are_seeded_enabled(app):
    names = {f.name: f.is_enabled for f in FeatureFlag.query.all()}

    assert names == {FLAG_SHARE_CARDS: True, FLAG_SOCIAL_CHALLENGES: True}
    assert is_feature_enabled("never_heard_of_it") is True


def test_settings_listing(admin_client, setting):
    body = admin_client.get("/api/admin/settings").get_json()

    assert [f["name"] for f in body["featureFlags"]] == [FLAG_SHARE_CARDS, FLAG_SOCIAL_CHALLENGES]
    assert body["settings"] == [setting.to_dict()]


def test_flag_update_is_audited(admin_client, admin):
    flag = _flag(FLAG_SOCIAL_CHALLENGES)

    resp = admin_client.post("/api/admin/settings", json={"type": "feature_flag", "id": flag.id, "value": False})

    assert resp.status_code == 200
    assert resp.get_json()["featureFlag"]["is_enabled"] is False
    entry = AdminLogEntry.query.one()
    assert entry.action == "feature_flag.update"
    assert entry.target_type == "feature_flag"
    assert entry.target_id == str(flag.id)
    assert entry.target_name == FLAG_SOCIAL_CHALLENGES
    assert entry.to_dict()["details"] == {"enabled": False}
    assert _flag(FLAG_SOCIAL_CHALLENGES).updated_by == admin.id


def test_flag_can_be_addressed_by_name(admin_client):
    resp = admin_client.post("/api/admin/settings", json={"type": "feature_flag", "key": FLAG_SHARE_CARDS, "value": False})

    assert resp.status_code == 200
    assert is_feature_enabled(FLAG_SHARE_CARDS) is False


def test_setting_update_is_audited(admin_client, setting):
    resp = admin_client.post(
        "/api/admin/settings",
        json={"type": "setting", "key": "leaderboard.banner", "value": {"text": "Double XP weekend", "on": True}},
    )

    assert resp.status_code == 200
    db.session.expire_all()
    assert db.session.get(AdminSetting, "leaderboard.banner").value == {"text": "Double XP weekend", "on": True}
    entry = AdminLogEntry.query.one()
    assert entry.action == "setting.update"
    assert entry.target_type == "setting"
    assert entry.target_name == "leaderboard.banner"


@pytest.mark.parametrize(
    "body,status",
    [
        ({"type": "feature_flag", "key": FLAG_SHARE_CARDS, "value": "off"}, 400),
        ({"type": "feature_flag", "value": True}, 400),
        ({"type": "feature_flag", "key": "no_such_flag", "value": True}, 404),
        ({"type": "setting", "key": "missing.key", "value": 1}, 404),
        ({"type": "setting", "key": "leaderboard.banner"}, 400),
        ({"type": "theme", "key": "x", "value": 1}, 400),
    ],
)
def test_bad_updates_are_not_audited(admin_client, setting, body, status):
    assert admin_client.post("/api/admin/settings", json=body).status_code == status
    assert AdminLogEntry.query.count() == 0


def test_settings_require_admin(client, login, make_user):
    assert client.get("/api/admin/settings").status_code == 401

    login(make_user("pleb"))
    resp = client.post("/api/admin/settings", json={"type": "feature_flag", "key": FLAG_SHARE_CARDS, "value": False})

    assert resp.status_code == 403
    assert is_feature_enabled(FLAG_SHARE_CARDS) is True


def test_verify(client, login, make_user):
    assert client.get("/api/admin/verify").get_json() == {"isAdmin": False}

    login(make_user("pleb"))
    assert client.get("/api/admin/verify").get_json() == {"isAdmin": False}

    login(make_user("boss", is_admin=True))
    assert client.get("/api/admin/verify").get_json() == {"isAdmin": True}

    login(make_user("benched", is_admin=True, is_suspended=True))
    assert client.get("/api/admin/verify").get_json() == {"isAdmin": False}


def test_disabled_flags_switch_features_off(admin_client, admin, channel):
    for name in (FLAG_SHARE_CARDS, FLAG_SOCIAL_CHALLENGES):
        admin_client.post("/api/admin/settings", json={"type": "feature_flag", "key": name, "value": False})

    share = admin_client.post("/api/sharing", json={"payload": {"a": 1}})
    challenge = admin_client.post(
        "/api/social/challenge", json={"email": "friend@example.com", "fromRank": 1, "fromScore": 10}
    )

    assert share.status_code == 403
    assert share.get_json()["code"] == "feature_disabled"
    assert challenge.status_code == 403
    assert channel.sent == []
