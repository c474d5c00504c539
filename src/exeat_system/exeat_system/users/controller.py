from __future__ import annotations

from flask import Flask

from ..common.http import client_ip, current_user, json_body, json_endpoint, ok, require_roles, token_required
from ..core.permissions import HEADMASTER_ONLY, STAFF_ROLES
from ..container import Container


def register(app: Flask, container: Container) -> None:
    login_required = token_required(container.auth_service)

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    @json_endpoint("Login failed")
    def login():
        data = json_body()
        result = container.auth_service.login(
            data.get("email", ""),
            data.get("password", ""),
            data.get("otp") or data.get("token"),
            origin=client_ip(),
        )
        return ok({"user": result.user, "token": result.token})

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @json_endpoint("Failed to load profile")
    @login_required
    def me():
        return ok(current_user())

    @app.route("/api/houses", methods=["GET"], endpoint="houses_list")
    @json_endpoint("Failed to fetch houses")
    def houses():
        return ok(container.houses_repo.list_all())

    @app.route("/api/users/students", methods=["GET"], endpoint="students_list")
    @json_endpoint("Failed to fetch students")
    @login_required
    @require_roles(STAFF_ROLES)
    def list_students():
        return ok(container.student_service.list_students(current_user()))

    @app.route("/api/users/students", methods=["POST"], endpoint="students_add")
    @json_endpoint("Failed to add student")
    @login_required
    @require_roles(STAFF_ROLES)
    def add_student():
        student = container.student_service.add_student(current_user(), json_body(), origin=client_ip())
        return ok(student, "Student added successfully", 201)

    @app.route("/api/users/students/<int:student_id>", methods=["PUT"], endpoint="students_update")
    @json_endpoint("Failed to update student")
    @login_required
    @require_roles(STAFF_ROLES)
    def update_student(student_id: int):
        student = container.student_service.update_student(
            current_user(), student_id, json_body(), origin=client_ip()
        )
        return ok(student, "Student updated successfully")

    @app.route("/api/users/students/<int:student_id>", methods=["DELETE"], endpoint="students_remove")
    @json_endpoint("Failed to remove student")
    @login_required
    @require_roles(STAFF_ROLES)
    def remove_student(student_id: int):
        container.student_service.remove_student(current_user(), student_id, origin=client_ip())
        return ok(message="Student removed successfully")

    @app.route("/api/users/students/<int:student_id>/reactivate", methods=["PUT"], endpoint="students_reactivate")
    @json_endpoint("Failed to reactivate student")
    @login_required
    @require_roles(HEADMASTER_ONLY)
    def reactivate_student(student_id: int):
        student = container.student_service.reactivate_student(current_user(), student_id, origin=client_ip())
        return ok(student, "Student reactivated successfully")

    @app.route(
        "/api/users/students/<int:student_id>/reset-password",
        methods=["POST"],
        endpoint="students_reset_password",
    )
    @json_endpoint("Failed to reset password")
    @login_required
    @require_roles(STAFF_ROLES)
    def reset_password(student_id: int):
        container.student_service.reset_password(
            current_user(), student_id, json_body().get("new_password"), origin=client_ip()
        )
        return ok(message="Password reset successfully")
