"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SESSION_DAYS = 7
JWT_ALGORITHM = "HS256"

DEFAULT_MAX_REQUESTS_PER_SEMESTER = 5
DEFAULT_REQUEST_EXPIRY_HOURS = 48
DEFAULT_CURRENT_SEMESTER = "1"
DEFAULT_ACADEMIC_YEAR = "2025/2026"

DEFAULT_AUDIT_LIMIT = 100
MAX_AUDIT_LIMIT = 500
TOP_REQUESTERS_LIMIT = 10

MIN_PASSWORD_LENGTH = 6
TOTP_VALID_WINDOW = 2
TOTP_ISSUER = "Exeat System"

DEFAULT_CANCELLATION_REASON = "Cancelled by student"
