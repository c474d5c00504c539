from __future__ import annotations

import re
from typing import Dict, Optional, Sequence

from ..common.datetime_utils import now_local
from ..core.enums import AuditAction
from ..core.exceptions import ValidationError
from ..core.permissions import HEADMASTER_ONLY, authorize
from ..audit.service import AuditService
from .model import SystemSetting, SystemSettings, normalize_value
from .repository import SettingsRepository

_KEY_RE = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


class SettingsService:
    """Use case: read and change system-wide configuration."""

    def __init__(self, settings: SettingsRepository, audit: AuditService):
        self._settings = settings
        self._audit = audit

    def get_all(self) -> Dict[str, str]:
        return {s.key: s.value for s in self._settings.list_all()}

    def current(self) -> SystemSettings:
        return SystemSettings.from_map(self.get_all())

    def list_settings(self, caller) -> Sequence[SystemSetting]:
        authorize(caller, HEADMASTER_ONLY)
        return self._settings.list_all()

    def update(self, caller, *, key: str, value, origin: Optional[str] = None) -> SystemSetting:
        authorize(caller, HEADMASTER_ONLY)

        key = (key or "").strip()
        if not _KEY_RE.match(key):
            raise ValidationError("Invalid setting key")
        normalized = normalize_value(key, value)

        setting = self._settings.upsert(key=key, value=normalized, updated_by=caller.id, updated_at=now_local())
        self._audit.log(caller.id, AuditAction.SETTING_UPDATED, f"Updated setting: {key} = {normalized}", origin)
        return setting
