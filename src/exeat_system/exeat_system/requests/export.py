"""CSV report and printable pass for exeat requests."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Iterable, List, Optional

from ..core.enums import RequestStatus
from ..core.exceptions import ValidationError
from .model import ExeatRequest

CSV_HEADERS = [
    "Student Name",
    "House",
    "Class",
    "Date",
    "Time",
    "Duration",
    "Destination",
    "Reason",
    "Status",
    "Submitted",
]

PASS_INSTRUCTIONS = [
    "This pass must be presented to security upon departure and return",
    "Student must return by the specified time",
    "Any extension must be approved by the Housemaster",
    "This pass is non-transferable",
]


def _fmt_dt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def export_row(req: ExeatRequest) -> List[str]:
    return [
        req.student_name or "",
        req.house_name or "",
        req.class_name or "",
        req.departure_date.strftime("%Y-%m-%d"),
        req.departure_time.strftime("%H:%M"),
        req.duration,
        req.destination,
        req.reason,
        req.status.value,
        _fmt_dt(req.created_at),
    ]


def write_requests_csv(requests: Iterable[ExeatRequest]) -> str:
    """One row per request; text containing commas, quotes or newlines is quoted with inner quotes doubled."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for req in requests:
        writer.writerow(export_row(req))
    return out.getvalue()


def csv_filename(today: date) -> str:
    return f"exeat-requests-{today.isoformat()}.csv"


def pass_number(request_id: int) -> str:
    return f"{int(request_id):05d}"


def build_pass_context(req: ExeatRequest) -> dict:
    if req.status != RequestStatus.APPROVED:
        raise ValidationError("Only approved requests have an exeat pass")

    guardian = req.guardian_name or "-"
    if req.guardian_phone:
        guardian = f"{guardian} ({req.guardian_phone})"

    return {
        "pass_number": pass_number(req.id),
        "student_name": req.student_name or "",
        "student_code": req.student_code or "",
        "house_name": req.house_name or "",
        "class_name": req.class_name or "",
        "departure_date": req.departure_date.strftime("%d %B %Y"),
        "departure_time": req.departure_time.strftime("%H:%M"),
        "duration": req.duration,
        "destination": req.destination,
        "reason": req.reason,
        "guardian": guardian,
        "approved_by": req.approved_by_name or "-",
        "approved_at": _fmt_dt(req.approved_at),
        "instructions": PASS_INSTRUCTIONS,
    }
