import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from hrms.core.config import PayrollSettings, settings
from hrms.database import SessionLocal
from hrms.models.leave_type import LeaveCategory, LeaveType

logger = logging.getLogger(__name__)


def default_leave_types(payroll_settings: Optional[PayrollSettings] = None):
    ps = payroll_settings or settings.payroll
    return [
        (ps.default_annual_type_id, "Annual Leave", LeaveCategory.ANNUAL),
        (ps.default_medical_type_id, "Medical Leave", LeaveCategory.MEDICAL),
    ]


def init_system_data(session_factory: Callable[[], Session] = SessionLocal) -> None:
    """
    Checks if the system needs initialization.
    If the leave_types mapping table is empty, seeds the Annual and Medical
    types at their configured ids.
    """
    db = session_factory()
    try:
        if db.query(LeaveType).count() == 0:
            logger.info("Running startup initialization...")
            for type_id, name, category in default_leave_types():
                db.add(LeaveType(id=type_id, name=name, category=category.value))
            db.commit()
            logger.info("✓ Seeded default leave types")
        else:
            logger.info("✓ Leave types already configured")
    except Exception as e:
        db.rollback()
        logger.error(f"✗ System initialization failed: {e}")
        raise
    finally:
        db.close()
