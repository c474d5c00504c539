from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from typing import Optional

import pyotp
import qrcode

from ..audit.service import AuditService
from ..core.constants import TOTP_ISSUER, TOTP_VALID_WINDOW
from ..core.enums import AuditAction
from ..core.exceptions import AuthenticationError, NotFoundError, ValidationError
from .passwords import verify_password
from .repository import UserRepository


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    otpauth_url: str
    qr_code: str


def render_qr_data_url(payload: str) -> str:
    """PNG QR code for `payload` as a data URL."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def verify_totp(secret: Optional[str], code: Optional[str]) -> bool:
    code = (code or "").strip().replace(" ", "")
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=TOTP_VALID_WINDOW)


class TwoFactorService:
    """Use case: optional TOTP two-factor authentication."""

    def __init__(self, users: UserRepository, audit: AuditService, *, issuer: str = TOTP_ISSUER):
        self._users = users
        self._audit = audit
        self._issuer = issuer

    def _reload(self, user):
        fresh = self._users.get_by_id(user.id)
        if not fresh:
            raise NotFoundError("User not found")
        return fresh

    def setup(self, user, *, origin: Optional[str] = None) -> TwoFactorSetup:
        user = self._reload(user)
        if user.two_factor_enabled:
            raise ValidationError("2FA is already enabled")

        secret = pyotp.random_base32(length=32)
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=self._issuer)

        self._users.set_two_factor(user.id, secret=secret, enabled=False)
        self._audit.log(user.id, AuditAction.TWO_FACTOR_SETUP, "Two-factor authentication setup started", origin)

        return TwoFactorSetup(secret=secret, otpauth_url=otpauth_url, qr_code=render_qr_data_url(otpauth_url))

    def verify(self, user, code: Optional[str], *, origin: Optional[str] = None) -> None:
        if not (code or "").strip():
            raise ValidationError("Token is required")

        user = self._reload(user)
        if not user.two_factor_secret:
            raise ValidationError("Please setup 2FA first")
        if not verify_totp(user.two_factor_secret, code):
            raise ValidationError("Invalid token")

        self._users.set_two_factor(user.id, secret=user.two_factor_secret, enabled=True)
        self._audit.log(user.id, AuditAction.TWO_FACTOR_ENABLED, "Two-factor authentication enabled", origin)

    def disable(self, user, password: Optional[str], *, origin: Optional[str] = None) -> None:
        user = self._reload(user)
        if not verify_password(user.password_hash, password or ""):
            raise AuthenticationError("Password is incorrect")

        self._users.set_two_factor(user.id, secret=None, enabled=False)
        self._audit.log(user.id, AuditAction.TWO_FACTOR_DISABLED, "Two-factor authentication disabled", origin)
