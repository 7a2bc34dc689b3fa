from __future__ import annotations

from dataclasses import dataclass

from .attendance.factory import DayStatusFactory
from .attendance.service import AttendanceService
from .core.constants import (
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_IMMINENT_EXPIRY_DAYS,
    DEFAULT_PAGE_LIMIT,
    QR_PAYLOAD_TYPE,
)
from .core.enums import SplitPolicy
from .database.connection import DBConfig, DatabaseConnection
from .database.unit_of_work import UnitOfWorkFactory, mysql_uow_factory
from .fees.ledger import FeeLedger
from .fees.service import FeeService
from .membership.service import MembershipService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    uow_factory: UnitOfWorkFactory
    ledger: FeeLedger

    attendance_service: AttendanceService
    membership_service: MembershipService
    fee_service: FeeService


def build_container(
    *,
    db_config: dict | None = None,
    uow_factory: UnitOfWorkFactory | None = None,
    settings: object = None,
) -> Container:
    """Wire services from a settings module (or defaults).

    Passing ``uow_factory`` skips MySQL wiring, e.g. for in-memory stores.
    """
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config or {}))
    uow_factory = uow_factory or mysql_uow_factory(conn)

    expiring_soon_days = int(getattr(settings, "EXPIRING_SOON_DAYS", DEFAULT_EXPIRING_SOON_DAYS))
    ledger = FeeLedger(split_policy=SplitPolicy(getattr(settings, "FEE_SPLIT_POLICY", SplitPolicy.STRICT.value)))

    attendance_service = AttendanceService(
        uow_factory,
        qr_type=str(getattr(settings, "QR_PAYLOAD_TYPE", QR_PAYLOAD_TYPE)),
        day_factory=DayStatusFactory(),
        expiring_soon_days=expiring_soon_days,
        page_limit=int(getattr(settings, "ORG_ATTENDANCE_PAGE_LIMIT", DEFAULT_PAGE_LIMIT)),
    )
    membership_service = MembershipService(
        uow_factory,
        ledger=ledger,
        expiring_soon_days=expiring_soon_days,
        imminent_expiry_days=int(getattr(settings, "IMMINENT_EXPIRY_DAYS", DEFAULT_IMMINENT_EXPIRY_DAYS)),
        provision_accounts=bool(getattr(settings, "PROVISION_STUDENT_ACCOUNTS", True)),
    )
    fee_service = FeeService(uow_factory, ledger=ledger)

    return Container(
        conn=conn,
        uow_factory=uow_factory,
        ledger=ledger,
        attendance_service=attendance_service,
        membership_service=membership_service,
        fee_service=fee_service,
    )
