"""JSON API plumbing shared by the controllers.

Every response uses the envelope ``{"success": bool, "data"?: ..., "message"?: str}``.
Services raise `DomainError` subclasses; `json_endpoint` maps them to HTTP
status codes at the route boundary.
"""
from __future__ import annotations

import logging
from dataclasses import fields, is_dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import AbstractSet, Any, Dict, Mapping, Optional

from flask import g, jsonify, request
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from ..core.permissions import authorize

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (QuotaExceededError, 429),
    (ConflictError, 409),
    (ValidationError, 400),
)


def status_for(exc: DomainError) -> int:
    for exc_type, status in STATUS_BY_ERROR:
        if isinstance(exc, exc_type):
            return status
    return 400


def to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "public_dict"):
        return to_jsonable(value.public_dict())
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return str(value)


def ok(data: Any = None, message: Optional[str] = None, status: int = 200, **extra: Any):
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = to_jsonable(data)
    for k, v in extra.items():
        body[k] = to_jsonable(v)
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def client_ip() -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or request.remote_addr
    return request.remote_addr


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def current_user():
    return g.current_user


def json_endpoint(failure_message: str):
    """Convert domain errors to envelopes; anything unexpected becomes a logged 500."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except DomainError as e:
                return fail(str(e), status_for(e))
            except HTTPException as e:
                return fail(e.description or failure_message, e.code or 500)
            except Exception:
                logger.exception("%s (%s %s)", failure_message, request.method, request.path)
                return fail(failure_message, 500)

        return wrapper

    return decorator


def token_required(auth_service):
    """Decorator factory: resolve the bearer token into `g.current_user`."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.current_user = auth_service.authenticate(bearer_token())
            return view(*args, **kwargs)

        return wrapper

    return decorator


def require_roles(allowed: AbstractSet[Role]):
    """Role gate; must sit below the token decorator."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            authorize(g.current_user, allowed)
            return view(*args, **kwargs)

        return wrapper

    return decorator
