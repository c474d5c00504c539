from __future__ import annotations

from flask import Flask, Response, render_template, request

from ..common.datetime_utils import now_local
from ..common.http import (
    client_ip,
    current_user,
    json_body,
    json_endpoint,
    ok,
    require_roles,
    to_jsonable,
    token_required,
)
from ..core.permissions import STAFF_ROLES, STUDENT_ONLY
from ..container import Container
from .export import build_pass_context, csv_filename, write_requests_csv
from .filters import RequestFilter

_DETAIL_FIELDS = (
    "departure_date",
    "departure_time",
    "duration",
    "destination",
    "reason",
    "guardian_name",
    "guardian_phone",
)


def _details_from(data: dict) -> dict:
    return {name: data.get(name) for name in _DETAIL_FIELDS}


def register(app: Flask, container: Container) -> None:
    login_required = token_required(container.auth_service)
    service = container.request_service

    @app.route("/api/requests", methods=["GET"], endpoint="requests_list")
    @json_endpoint("Failed to fetch requests")
    @login_required
    def list_requests():
        filters = RequestFilter.from_args(request.args)
        return ok(service.list(current_user(), filters))

    @app.route("/api/requests/export.csv", methods=["GET"], endpoint="requests_export")
    @json_endpoint("Failed to export requests")
    @login_required
    def export_requests():
        filters = RequestFilter.from_args(request.args)
        body = "\ufeff" + write_requests_csv(service.list(current_user(), filters))
        return Response(
            body.encode("utf-8"),
            mimetype="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{csv_filename(now_local().date())}"',
            },
        )

    @app.route("/api/requests/stats/overview", methods=["GET"], endpoint="requests_stats")
    @json_endpoint("Failed to fetch statistics")
    @login_required
    def stats_overview():
        return ok(service.stats(current_user()))

    @app.route("/api/requests/stats/houses", methods=["GET"], endpoint="requests_house_stats")
    @json_endpoint("Failed to fetch house statistics")
    @login_required
    @require_roles(STAFF_ROLES)
    def stats_houses():
        return ok(service.house_stats(current_user()))

    @app.route("/api/requests/<int:request_id>", methods=["GET"], endpoint="requests_get")
    @json_endpoint("Failed to fetch request")
    @login_required
    def get_request(request_id: int):
        user = current_user()
        req = service.get(user, request_id)
        data = to_jsonable(req)
        data["notes"] = to_jsonable(service.list_notes(user, req.id))
        return ok(data)

    @app.route("/api/requests/<int:request_id>/pass", methods=["GET"], endpoint="requests_pass")
    @json_endpoint("Failed to generate exeat pass")
    @login_required
    def exeat_pass(request_id: int):
        req = service.get(current_user(), request_id)
        return render_template("requests/pass.html", **build_pass_context(req))

    @app.route("/api/requests", methods=["POST"], endpoint="requests_create")
    @json_endpoint("Failed to create request")
    @login_required
    @require_roles(STUDENT_ONLY)
    def create_request():
        req = service.create(current_user(), **_details_from(json_body()), origin=client_ip())
        return ok(req, "Exeat request submitted successfully", 201)

    @app.route("/api/requests/<int:request_id>", methods=["PUT"], endpoint="requests_edit")
    @json_endpoint("Failed to update request")
    @login_required
    @require_roles(STUDENT_ONLY)
    def edit_request(request_id: int):
        req = service.edit(current_user(), request_id, **_details_from(json_body()), origin=client_ip())
        return ok(req, "Request updated successfully")

    @app.route("/api/requests/<int:request_id>/cancel", methods=["POST"], endpoint="requests_cancel")
    @json_endpoint("Failed to cancel request")
    @login_required
    @require_roles(STUDENT_ONLY)
    def cancel_request(request_id: int):
        data = json_body()
        req = service.cancel(
            current_user(),
            request_id,
            data.get("cancellation_reason") or data.get("reason"),
            origin=client_ip(),
        )
        return ok(req, "Request cancelled successfully")

    @app.route("/api/requests/<int:request_id>/approve", methods=["POST"], endpoint="requests_approve")
    @json_endpoint("Failed to approve request")
    @login_required
    @require_roles(STAFF_ROLES)
    def approve_request(request_id: int):
        req = service.approve(current_user(), request_id, origin=client_ip())
        return ok(req, "Request approved successfully")

    @app.route("/api/requests/batch/approve", methods=["POST"], endpoint="requests_batch_approve")
    @json_endpoint("Failed to approve requests")
    @login_required
    @require_roles(STAFF_ROLES)
    def batch_approve():
        ids = json_body().get("ids") or []
        if not isinstance(ids, list):
            ids = [ids]
        approved = service.batch_approve(current_user(), ids, origin=client_ip())
        return ok(approved, f"{len(approved)} request(s) approved")

    @app.route("/api/requests/<int:request_id>/reject", methods=["POST"], endpoint="requests_reject")
    @json_endpoint("Failed to reject request")
    @login_required
    @require_roles(STAFF_ROLES)
    def reject_request(request_id: int):
        req = service.reject(
            current_user(), request_id, json_body().get("rejection_reason"), origin=client_ip()
        )
        return ok(req, "Request rejected")

    @app.route("/api/requests/<int:request_id>/notes", methods=["GET"], endpoint="requests_notes")
    @json_endpoint("Failed to fetch notes")
    @login_required
    @require_roles(STAFF_ROLES)
    def list_notes(request_id: int):
        return ok(service.list_notes(current_user(), request_id))

    @app.route("/api/requests/<int:request_id>/notes", methods=["POST"], endpoint="requests_add_note")
    @json_endpoint("Failed to add note")
    @login_required
    @require_roles(STAFF_ROLES)
    def add_note(request_id: int):
        note = service.add_note(current_user(), request_id, json_body().get("note"), origin=client_ip())
        return ok(note, "Note added", 201)
