"""Admin settings, feature flags and the admin check used by the dashboard.

Routes:
- GET  /api/admin/verify      (any caller; {"isAdmin": bool})
- GET  /api/admin/settings
- POST /api/admin/settings    {"type": "feature_flag", "id" | "key", "value": bool}
                              {"type": "setting", "key", "value": <json>}
"""

from __future__ import annotations

import json

from flask import Blueprint, jsonify, request

from errors import NotFoundError, ValidationError, store_guard
from extensions import db
from identity import AuditedResult, admin_required, current_user_id, privileged
from models_settings import AdminSetting, FeatureFlag
from models_users import User


admin_settings = Blueprint("admin_settings", __name__)


@admin_settings.get("/api/admin/verify")
def api_admin_verify():
    uid = current_user_id()
    if not uid:
        return jsonify({"isAdmin": False})
    with store_guard("admin verify"):
        user = db.session.get(User, uid)
    ok = bool(user and user.is_admin and not user.is_suspended and user.deleted_at is None)
    return jsonify({"isAdmin": ok})


@admin_settings.get("/api/admin/settings")
@admin_required
def api_admin_get_settings():
    with store_guard("settings list"):
        flags = FeatureFlag.query.order_by(FeatureFlag.name.asc()).all()
        settings = AdminSetting.query.order_by(AdminSetting.category.asc(), AdminSetting.key.asc()).all()
    return jsonify(
        {
            "success": True,
            "featureFlags": [f.to_dict() for f in flags],
            "settings": [s.to_dict() for s in settings],
        }
    )


def _find_flag(flag_id, name) -> FeatureFlag:
    with store_guard("feature flag lookup"):
        if flag_id is not None:
            if isinstance(flag_id, bool) or not isinstance(flag_id, int):
                raise ValidationError("id must be an integer")
            flag = db.session.get(FeatureFlag, flag_id)
        elif isinstance(name, str) and name.strip():
            flag = FeatureFlag.query.filter_by(name=name.strip()).first()
        else:
            raise ValidationError("id or key is required")
    if flag is None:
        raise NotFoundError("Feature flag not found")
    return flag


def _update_flag(admin, data: dict) -> AuditedResult:
    value = data.get("value")
    if not isinstance(value, bool):
        raise ValidationError("value must be true or false for a feature flag")
    flag = _find_flag(data.get("id"), data.get("key"))

    flag.is_enabled = value
    flag.updated_by = admin.id
    with store_guard("feature flag update"):
        db.session.commit()

    return AuditedResult(
        payload={"featureFlag": flag.to_dict()},
        action="feature_flag.update",
        target_type="feature_flag",
        target_id=str(flag.id),
        target_name=flag.name,
        details={"enabled": value},
    )


def _update_setting(admin, data: dict) -> AuditedResult:
    key = data.get("key")
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("key is required")
    key = key.strip()
    if "value" not in data:
        raise ValidationError("value is required")
    value = data["value"]
    value_json = json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    with store_guard("setting lookup"):
        setting = db.session.get(AdminSetting, key)
    if setting is None:
        raise NotFoundError("Setting not found")

    setting.value_json = value_json
    setting.updated_by = admin.id
    with store_guard("setting update"):
        db.session.commit()

    return AuditedResult(
        payload={"setting": setting.to_dict()},
        target_type="setting",
        target_name=key,
        details={"value": value},
    )


@admin_settings.post("/api/admin/settings")
@privileged("setting.update", target_type="setting")
def api_admin_update_settings(admin):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")

    kind = data.get("type")
    if kind == "feature_flag":
        return _update_flag(admin, data)
    if kind == "setting":
        return _update_setting(admin, data)
    raise ValidationError("type must be feature_flag or setting")
