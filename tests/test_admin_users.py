from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

import admin_users
import audit_log
from errors import AuditLogError
from extensions import db
from models_activity import ActivityEvent
from models_admin_logs import AdminLogEntry
from models_users import User
from timeutil import utcnow


def _logged_actions():
    return [e.action for e in AdminLogEntry.query.order_by(AdminLogEntry.id).all()]


def test_list_users_paginates_and_searches(admin_client, make_user):
    for i in range(4):
        make_user(f"dev{i}", created_at=utcnow() - timedelta(days=i))
    make_user("designer", display_name="Pixel Pusher")

    page = admin_client.get("/api/admin/users?limit=2&page=1&sortBy=username&sortOrder=asc").get_json()
    found = admin_client.get("/api/admin/users?search=pixel").get_json()

    # root admin + five users
    assert page["total"] == 6
    assert page["total_pages"] == 3
    assert [u["username"] for u in page["users"]] == ["designer", "dev0"]
    assert [u["username"] for u in found["users"]] == ["designer"]


def test_list_users_search_treats_wildcards_literally(admin_client, make_user):
    make_user("under_score")
    make_user("underXscore")

    found = admin_client.get("/api/admin/users?search=under_").get_json()

    assert [u["username"] for u in found["users"]] == ["under_score"]


def test_list_users_status_filter(admin_client, make_user):
    make_user("banned", is_suspended=True)
    make_user("fine")

    body = admin_client.get("/api/admin/users?status=suspended").get_json()

    assert [u["username"] for u in body["users"]] == ["banned"]


@pytest.mark.parametrize(
    "query", ["status=weird", "sortBy=password", "sortOrder=sideways", "limit=0", "limit=101", "page=0"]
)
def test_list_users_rejects_bad_params(admin_client, query):
    assert admin_client.get(f"/api/admin/users?{query}").status_code == 400


def test_non_admin_cannot_list(client, login, make_user):
    login(make_user("pleb"))
    assert client.get("/api/admin/users").status_code == 403


def test_user_detail_includes_activity_trend(admin_client, make_user, make_event):
    user = make_user("busy")
    make_event(user, utcnow())

    body = admin_client.get(f"/api/admin/users/{user.id}?days=7").get_json()

    assert body["user"]["username"] == "busy"
    assert len(body["activity"]) == 7
    assert body["activity"][-1]["count"] == 1
    assert admin_client.get("/api/admin/users/missing").status_code == 404


def test_suspend_and_unsuspend_are_audited(admin_client, admin, make_user):
    target = make_user("mallory")

    resp = admin_client.patch(f"/api/admin/users/{target.id}", json={"action": "suspend", "reason": "spam"})

    assert resp.status_code == 200
    assert resp.get_json()["user"]["is_suspended"] is True
    entry = AdminLogEntry.query.one()
    assert entry.action == "user.suspend"
    assert entry.admin_id == admin.id
    assert entry.target_id == target.id
    assert entry.to_dict()["details"] == {"reason": "spam"}

    resp = admin_client.patch(f"/api/admin/users/{target.id}", json={"action": "unsuspend"})

    assert resp.status_code == 200
    assert db.session.get(User, target.id).is_suspended is False
    assert _logged_actions() == ["user.suspend", "user.unsuspend"]


def test_invalid_update_is_not_audited(admin_client, admin, make_user):
    target = make_user()

    assert admin_client.patch(f"/api/admin/users/{target.id}", json={"action": "promote"}).status_code == 400
    assert admin_client.patch(f"/api/admin/users/{admin.id}", json={"action": "suspend"}).status_code == 400
    assert AdminLogEntry.query.count() == 0


def test_audit_failure_reports_partial_success(admin_client, make_user, monkeypatch):
    target = make_user("mallory")

    def broken_append(*args, **kwargs):
        raise AuditLogError("log store down")

    monkeypatch.setattr(audit_log, "append", broken_append)

    resp = admin_client.patch(f"/api/admin/users/{target.id}", json={"action": "suspend"})
    body = resp.get_json()

    assert resp.status_code == 500
    assert body["success"] is False
    assert body["partial"] is True
    assert body["action"] == "user.suspend"
    # the mutation itself stays committed
    db.session.expire_all()
    assert db.session.get(User, target.id).is_suspended is True


def test_soft_delete(admin_client, make_user):
    target = make_user("leaving")

    resp = admin_client.delete(f"/api/admin/users/{target.id}")

    assert resp.status_code == 200
    assert resp.get_json()["permanent"] is False
    assert db.session.get(User, target.id).deleted_at is not None
    assert _logged_actions() == ["user.delete"]
    assert admin_client.delete(f"/api/admin/users/{target.id}").status_code == 404


def test_hard_delete_removes_events(admin_client, make_user, make_event):
    target = make_user("gone")
    target_id = target.id
    make_event(target, utcnow())

    resp = admin_client.delete(f"/api/admin/users/{target_id}?permanent=true")

    assert resp.status_code == 200
    db.session.expire_all()
    assert db.session.get(User, target_id) is None
    assert ActivityEvent.query.filter_by(user_id=target_id).count() == 0
    assert AdminLogEntry.query.one().target_name == "gone"


def test_cannot_delete_self(admin_client, admin):
    assert admin_client.delete(f"/api/admin/users/{admin.id}").status_code == 400
    assert AdminLogEntry.query.count() == 0


def test_xp_adjust(admin_client, make_user):
    target = make_user("grinder", xp=40)

    up = admin_client.post(f"/api/admin/users/{target.id}/xp", json={"amount": 15, "reason": "bonus"})
    down = admin_client.post(f"/api/admin/users/{target.id}/xp", json={"amount": -100})

    assert up.status_code == 200
    assert up.get_json()["xp"] == 55
    assert down.status_code == 400
    db.session.expire_all()
    assert db.session.get(User, target.id).xp == 55
    assert _logged_actions() == ["user.xp_adjust"]


@pytest.mark.parametrize("amount", [0, "10", 1.5, True, None])
def test_xp_adjust_rejects_bad_amount(admin_client, make_user, amount):
    target = make_user()
    assert admin_client.post(f"/api/admin/users/{target.id}/xp", json={"amount": amount}).status_code == 400


def test_admin_stats_endpoint(admin_client, make_user):
    make_user("new")

    resp = admin_client.get("/api/admin/stats?days=7")
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["days"] == 7
    assert len(body["signupTrends"]) == 7
    assert len(body["activityTrends"]) == 7
    assert body["signupTrends"][-1]["count"] == 2
    assert body["stats"]["total_users"] == 2

    assert admin_client.get("/api/admin/stats?days=0").status_code == 400
    assert admin_client.get("/api/admin/stats?days=400").status_code == 400


def test_admin_stats_store_outage_is_503(admin_client, monkeypatch):
    def unreachable(self):
        raise OperationalError("SELECT", {}, Exception("timeout expired"))

    monkeypatch.setattr(Query, "count", unreachable)

    resp = admin_client.get("/api/admin/stats?days=7")
    body = resp.get_json()

    assert resp.status_code == 503
    assert body["retryable"] is True
    assert "signupTrends" not in body


def test_xp_adjust_on_user_deleted_mid_request(admin_client, monkeypatch):
    # lookup succeeds but the row is gone by the time the UPDATE runs
    monkeypatch.setattr(admin_users, "_get_live_user", lambda user_id: SimpleNamespace(id=user_id, username="ghost"))

    resp = admin_client.post("/api/admin/users/ghost-id/xp", json={"amount": 5})

    assert resp.status_code == 404
    assert AdminLogEntry.query.count() == 0
