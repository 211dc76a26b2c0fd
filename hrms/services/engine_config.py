"""
Engine configuration value objects.

The leave and payroll engines receive these through their constructors
instead of reading module-level constants, so tests can vary work hours,
leave-type mappings and statutory defaults freely.
"""
from dataclasses import dataclass, field
from datetime import time
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from hrms.core.config import PayrollSettings, settings
from hrms.models.leave_type import LeaveCategory, LeaveType


@dataclass(frozen=True)
class LeaveEngineConfig:
    work_hours_per_day: float = 9.0
    breach_tolerance_days: float = 0.01
    default_start_time: time = time(9, 0)
    default_end_time: time = time(18, 0)
    leave_categories: Dict[int, LeaveCategory] = field(default_factory=dict)

    def category_for(self, leave_type_id: int) -> LeaveCategory:
        return self.leave_categories.get(leave_type_id, LeaveCategory.OTHER)

    def type_ids_for(self, category: LeaveCategory) -> List[int]:
        return sorted(tid for tid, cat in self.leave_categories.items() if cat == category)

    @classmethod
    def from_settings(
        cls,
        payroll_settings: Optional[PayrollSettings] = None,
        leave_categories: Optional[Dict[int, LeaveCategory]] = None,
    ) -> "LeaveEngineConfig":
        ps = payroll_settings or settings.payroll
        if leave_categories is None:
            leave_categories = {
                ps.default_annual_type_id: LeaveCategory.ANNUAL,
                ps.default_medical_type_id: LeaveCategory.MEDICAL,
            }
        return cls(
            work_hours_per_day=ps.work_hours_per_day,
            breach_tolerance_days=ps.breach_tolerance_days,
            default_start_time=time.fromisoformat(ps.default_leave_start),
            default_end_time=time.fromisoformat(ps.default_leave_end),
            leave_categories=dict(leave_categories),
        )

    @classmethod
    def load(cls, db: Session, payroll_settings: Optional[PayrollSettings] = None) -> "LeaveEngineConfig":
        """
        Build the config from the leave_types mapping table.

        Falls back to the configured default type ids when the table is empty.
        """
        rows = db.query(LeaveType.id, LeaveType.category).all()
        mapping = {row.id: LeaveCategory(row.category) for row in rows} if rows else None
        return cls.from_settings(payroll_settings, mapping)


@dataclass(frozen=True)
class PayrollEngineConfig:
    default_epf_rate: float = 8.00
    default_employer_epf_rate: float = 12.00
    default_etf_rate: float = 3.00
    epf_deduction_marker: str = "EPF"
    unpaid_leave_day_divisor: float = 30.0

    @classmethod
    def from_settings(cls, payroll_settings: Optional[PayrollSettings] = None) -> "PayrollEngineConfig":
        ps = payroll_settings or settings.payroll
        return cls(
            default_epf_rate=ps.default_epf_rate,
            default_employer_epf_rate=ps.default_employer_epf_rate,
            default_etf_rate=ps.default_etf_rate,
            epf_deduction_marker=ps.epf_deduction_marker,
            unpaid_leave_day_divisor=ps.unpaid_leave_day_divisor,
        )
