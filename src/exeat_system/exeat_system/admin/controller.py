from __future__ import annotations

from flask import Flask, request

from ..common.http import client_ip, current_user, json_body, json_endpoint, ok, require_roles, token_required
from ..common.validators import optional_str, parse_date, parse_int
from ..core.permissions import HEADMASTER_ONLY
from ..container import Container


def _arg_int(name: str):
    value = optional_str(request.args.get(name))
    return parse_int(value, name) if value is not None else None


def _arg_date(name: str):
    value = optional_str(request.args.get(name))
    return parse_date(value, name) if value is not None else None


def register(app: Flask, container: Container) -> None:
    login_required = token_required(container.auth_service)

    # ---- audit log

    @app.route("/api/admin/audit-logs", methods=["GET"], endpoint="admin_audit_logs")
    @json_endpoint("Failed to fetch audit logs")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def audit_logs():
        logs = container.audit_service.query(
            current_user(),
            user_id=_arg_int("user_id"),
            action=request.args.get("action"),
            start_date=_arg_date("start_date"),
            end_date=_arg_date("end_date"),
            limit=_arg_int("limit"),
        )
        return ok(logs)

    @app.route("/api/admin/audit-logs/stats", methods=["GET"], endpoint="admin_audit_stats")
    @json_endpoint("Failed to fetch audit statistics")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def audit_stats():
        return ok(container.audit_service.stats(current_user()))

    # ---- settings

    @app.route("/api/admin/settings", methods=["GET"], endpoint="admin_settings")
    @json_endpoint("Failed to fetch settings")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def list_settings():
        return ok(container.settings_service.list_settings(current_user()))

    @app.route("/api/admin/settings/<key>", methods=["PUT"], endpoint="admin_update_setting")
    @json_endpoint("Failed to update setting")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def update_setting(key: str):
        setting = container.settings_service.update(
            current_user(), key=key, value=json_body().get("value"), origin=client_ip()
        )
        return ok(setting, "Setting updated successfully")

    # ---- two-factor

    @app.route("/api/admin/2fa/setup", methods=["POST"], endpoint="admin_2fa_setup")
    @json_endpoint("Failed to setup 2FA")
    @login_required
    def two_factor_setup():
        setup = container.two_factor_service.setup(current_user(), origin=client_ip())
        return ok({"secret": setup.secret, "otpauth_url": setup.otpauth_url, "qrCode": setup.qr_code})

    @app.route("/api/admin/2fa/verify", methods=["POST"], endpoint="admin_2fa_verify")
    @json_endpoint("Failed to verify 2FA")
    @login_required
    def two_factor_verify():
        container.two_factor_service.verify(current_user(), json_body().get("token"), origin=client_ip())
        return ok(message="2FA enabled successfully")

    @app.route("/api/admin/2fa/disable", methods=["POST"], endpoint="admin_2fa_disable")
    @json_endpoint("Failed to disable 2FA")
    @login_required
    def two_factor_disable():
        container.two_factor_service.disable(current_user(), json_body().get("password"), origin=client_ip())
        return ok(message="2FA disabled successfully")

    # ---- user directory

    @app.route("/api/admin/users", methods=["GET"], endpoint="admin_users")
    @json_endpoint("Failed to fetch users")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def list_users():
        users = container.user_admin_service.list_users(
            current_user(),
            role=optional_str(request.args.get("role")),
            house_id=_arg_int("house_id"),
            search=request.args.get("search"),
        )
        return ok(users)

    @app.route("/api/admin/users/<int:user_id>/toggle-active", methods=["PUT"], endpoint="admin_toggle_user")
    @json_endpoint("Failed to update user status")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def toggle_active(user_id: int):
        user = container.user_admin_service.toggle_active(current_user(), user_id, origin=client_ip())
        state = "activated" if user.is_active else "deactivated"
        return ok(user, f"User {state} successfully")

    # ---- analytics

    @app.route("/api/admin/analytics/comprehensive", methods=["GET"], endpoint="admin_analytics")
    @json_endpoint("Failed to fetch analytics")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def analytics():
        report = container.analytics_service.comprehensive(
            current_user(),
            start_date=_arg_date("start_date"),
            end_date=_arg_date("end_date"),
        )
        return ok(report)
