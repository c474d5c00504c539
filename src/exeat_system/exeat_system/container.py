from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .analytics.mysql_analytics_repository import MySQLAnalyticsRepository
from .analytics.repository import AnalyticsRepository
from .analytics.service import AnalyticsService
from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.repository import AuditRepository
from .audit.service import AuditService
from .common.datetime_utils import now_local
from .database.connection import DBConfig, DatabaseConnection
from .requests.mysql_request_repository import MySQLRequestRepository
from .requests.repository import RequestRepository
from .requests.service import RequestService
from .settings.mysql_settings_repository import MySQLSettingsRepository
from .settings.repository import SettingsRepository
from .settings.service import SettingsService
from .users.house_repository import HouseRepository
from .users.mysql_house_repository import MySQLHouseRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, StudentService, UserAdminService
from .users.tokens import TokenService
from .users.two_factor import TwoFactorService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    houses_repo: HouseRepository
    requests_repo: RequestRepository
    settings_repo: SettingsRepository
    audit_repo: AuditRepository
    analytics_repo: AnalyticsRepository

    audit_service: AuditService
    settings_service: SettingsService
    token_service: TokenService
    auth_service: AuthService
    two_factor_service: TwoFactorService
    student_service: StudentService
    user_admin_service: UserAdminService
    request_service: RequestService
    analytics_service: AnalyticsService

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()


def assemble_container(
    *,
    users_repo: UserRepository,
    houses_repo: HouseRepository,
    requests_repo: RequestRepository,
    settings_repo: SettingsRepository,
    audit_repo: AuditRepository,
    analytics_repo: AnalyticsRepository,
    jwt_secret: str,
    conn: Optional[DatabaseConnection] = None,
    clock: Callable[[], datetime] = now_local,
) -> Container:
    """Wire services around already-built repositories."""
    audit_service = AuditService(audit_repo)
    settings_service = SettingsService(settings_repo, audit_service)
    token_service = TokenService(jwt_secret)

    return Container(
        conn=conn,
        users_repo=users_repo,
        houses_repo=houses_repo,
        requests_repo=requests_repo,
        settings_repo=settings_repo,
        audit_repo=audit_repo,
        analytics_repo=analytics_repo,
        audit_service=audit_service,
        settings_service=settings_service,
        token_service=token_service,
        auth_service=AuthService(users_repo, token_service, audit_service, clock=clock),
        two_factor_service=TwoFactorService(users_repo, audit_service),
        student_service=StudentService(users_repo, houses_repo, audit_service),
        user_admin_service=UserAdminService(users_repo, audit_service),
        request_service=RequestService(requests_repo, settings_service, audit_service, clock=clock),
        analytics_service=AnalyticsService(analytics_repo),
    )


def build_container(*, db_config: dict, jwt_secret: str) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection(config)

    return assemble_container(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        houses_repo=MySQLHouseRepository(conn),
        requests_repo=MySQLRequestRepository(conn),
        settings_repo=MySQLSettingsRepository(conn),
        audit_repo=MySQLAuditRepository(conn),
        analytics_repo=MySQLAnalyticsRepository(conn),
        jwt_secret=jwt_secret,
    )
