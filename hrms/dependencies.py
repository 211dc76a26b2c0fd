"""
Request-scoped service wiring.

Routers depend on these instead of building services themselves, so every
service in a request shares one Session and one UnitOfWork.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from hrms.database import get_db
from hrms.routers.auth_deps import get_current_user, require_approver, require_hr, require_payroll, require_role
from hrms.schemas.auth import Actor, UserRole
from hrms.services.engine_config import LeaveEngineConfig, PayrollEngineConfig
from hrms.services.unit_of_work import UnitOfWork


def get_uow(db: Session = Depends(get_db)) -> UnitOfWork:
    return UnitOfWork(db)


def get_leave_config(db: Session = Depends(get_db)) -> LeaveEngineConfig:
    """Leave-type categories come from the leave_types table on every request."""
    return LeaveEngineConfig.load(db)


def get_payroll_config() -> PayrollEngineConfig:
    return PayrollEngineConfig.from_settings()


__all__ = [
    "get_uow",
    "get_leave_config",
    "get_payroll_config",
    "get_current_user",
    "require_role",
    "require_hr",
    "require_payroll",
    "require_approver",
    "Actor",
    "UserRole",
]
