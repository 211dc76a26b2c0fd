"""
Payroll Calculator

Gross earnings and deductions aggregation for one employee in one pay period.
This is the single source of the gross figure: the payslip view, the salary
transfer orchestrator and the ETF/EPF calculator all call `compute_gross`, so
they agree exactly.

Internal accumulation is unrounded; callers round at persistence/response.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from hrms.core.rounding import round2
from hrms.models.etf_epf import EtfEpfConfig
from hrms.models.salary_component import (
    Allowance, Bonus, ComponentStatus, Deduction, DeductionBasis,
    OvertimeAdjustment, Salary,
)
from hrms.models.unpaid_leave import UnpaidLeave, UnpaidLeaveStatus
from hrms.services.base import BaseService
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.period import PayPeriod


@dataclass
class GrossBreakdown:
    basic: float = 0.0
    allowances: float = 0.0
    overtime: float = 0.0
    bonuses: float = 0.0

    @property
    def gross(self) -> float:
        return self.basic + self.allowances + self.overtime + self.bonuses

    def as_dict(self) -> Dict[str, float]:
        return {
            "basic": round2(self.basic),
            "allowances": round2(self.allowances),
            "overtime": round2(self.overtime),
            "bonuses": round2(self.bonuses),
            "gross": round2(self.gross),
        }


@dataclass
class DeductionLine:
    name: str
    basis: str
    fixed_amount: float
    percent: float
    calculated_amount: float


@dataclass
class DeductionBreakdown:
    regular: List[DeductionLine] = field(default_factory=list)
    unpaid_leave_total: float = 0.0
    epf_employee_amount: float = 0.0

    @property
    def regular_total(self) -> float:
        return sum(line.calculated_amount for line in self.regular)

    @property
    def total(self) -> float:
        return self.regular_total + self.unpaid_leave_total + self.epf_employee_amount

    def as_dict(self) -> Dict[str, Any]:
        return {
            "regular": [
                {
                    "name": line.name,
                    "basis": line.basis,
                    "fixed_amount": round2(line.fixed_amount),
                    "percent": line.percent,
                    "calculated_amount": round2(line.calculated_amount),
                }
                for line in self.regular
            ],
            "regular_total": round2(self.regular_total),
            "unpaid_leave_total": round2(self.unpaid_leave_total),
            "epf_employee_amount": round2(self.epf_employee_amount),
            "total": round2(self.total),
        }


@dataclass(frozen=True)
class StatutoryRates:
    epf_rate: float
    employer_epf_rate: float
    etf_rate: float
    configured: bool


def _coerce_employee_id(employee_id: Any) -> Optional[int]:
    if isinstance(employee_id, bool):
        return None
    try:
        value = int(employee_id)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


class PayrollCalculator(BaseService):
    def __init__(self, db: Session, config: Optional[PayrollEngineConfig] = None):
        super().__init__(db)
        self.config = config or PayrollEngineConfig.from_settings()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def basic_salary(self, employee_id: int) -> float:
        """Latest inserted Salary row wins."""
        value = (
            self.db.query(Salary.basic_salary)
            .filter(Salary.employee_id == employee_id)
            .order_by(Salary.id.desc())
            .limit(1)
            .scalar()
        )
        return float(value or 0.0)

    def get_rates(self, employee_id: Any) -> StatutoryRates:
        emp_id = _coerce_employee_id(employee_id)
        row = None
        if emp_id is not None:
            row = self.db.query(EtfEpfConfig).filter(EtfEpfConfig.employee_id == emp_id).first()
        return self.rates_from_config(row)

    def rates_from_config(self, row: Optional[EtfEpfConfig]) -> StatutoryRates:
        def pick(value, default):
            return float(value) if value is not None else default

        if row is None:
            return StatutoryRates(
                epf_rate=self.config.default_epf_rate,
                employer_epf_rate=self.config.default_employer_epf_rate,
                etf_rate=self.config.default_etf_rate,
                configured=False,
            )
        return StatutoryRates(
            epf_rate=pick(row.epf_contribution_rate, self.config.default_epf_rate),
            employer_epf_rate=pick(row.employer_epf_rate, self.config.default_employer_epf_rate),
            etf_rate=pick(row.etf_contribution_rate, self.config.default_etf_rate),
            configured=True,
        )

    # ------------------------------------------------------------------
    # Gross
    # ------------------------------------------------------------------
    def compute_gross(self, employee_id: Any, year: int, month: int) -> GrossBreakdown:
        """
        basic + active allowances overlapping the period + overtime created in
        the month + bonuses effective in the month.

        Malformed employee ids yield a zeroed breakdown instead of an error.
        """
        period = PayPeriod.resolve(year, month)
        emp_id = _coerce_employee_id(employee_id)
        if emp_id is None:
            return GrossBreakdown()

        allowances = (
            self.db.query(func.coalesce(func.sum(Allowance.amount), 0.0))
            .filter(
                Allowance.employee_id == emp_id,
                Allowance.status == ComponentStatus.ACTIVE.value,
                or_(Allowance.effective_from.is_(None), Allowance.effective_from <= period.end),
                or_(Allowance.effective_to.is_(None), Allowance.effective_to >= period.start),
            )
            .scalar()
        )

        overtime = (
            self.db.query(func.coalesce(func.sum(OvertimeAdjustment.ot_hours * OvertimeAdjustment.ot_rate), 0.0))
            .filter(
                OvertimeAdjustment.employee_id == emp_id,
                OvertimeAdjustment.created_at >= period.start_datetime,
                OvertimeAdjustment.created_at < period.end_datetime_exclusive,
            )
            .scalar()
        )

        bonuses = (
            self.db.query(func.coalesce(func.sum(Bonus.amount), 0.0))
            .filter(
                Bonus.employee_id == emp_id,
                Bonus.effective_date >= period.start,
                Bonus.effective_date <= period.end,
            )
            .scalar()
        )

        return GrossBreakdown(
            basic=self.basic_salary(emp_id),
            allowances=float(allowances or 0.0),
            overtime=float(overtime or 0.0),
            bonuses=float(bonuses or 0.0),
        )

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------
    def compute_deductions(self, employee_id: Any, year: int, month: int) -> DeductionBreakdown:
        period = PayPeriod.resolve(year, month)
        emp_id = _coerce_employee_id(employee_id)
        if emp_id is None:
            return DeductionBreakdown()

        basic = self.basic_salary(emp_id)

        rows = (
            self.db.query(Deduction)
            .filter(
                Deduction.employee_id == emp_id,
                Deduction.status == ComponentStatus.ACTIVE.value,
                Deduction.effective_date >= period.start,
                Deduction.effective_date <= period.end,
                ~Deduction.name.ilike(f"%{self.config.epf_deduction_marker}%"),
            )
            .order_by(Deduction.id)
            .all()
        )
        regular = []
        for row in rows:
            fixed_amount = float(row.amount or 0.0)
            percent = float(row.percent or 0.0)
            if row.basis == DeductionBasis.PERCENT.value:
                calculated = percent / 100 * basic
            else:
                calculated = fixed_amount
            regular.append(DeductionLine(
                name=row.name,
                basis=row.basis,
                fixed_amount=fixed_amount,
                percent=percent,
                calculated_amount=calculated,
            ))

        # Keyed off the processing timestamp, not the leave's own dates
        unpaid_total = (
            self.db.query(func.coalesce(func.sum(UnpaidLeave.deduction_amount), 0.0))
            .filter(
                UnpaidLeave.employee_id == emp_id,
                UnpaidLeave.status == UnpaidLeaveStatus.PROCESSED.value,
                UnpaidLeave.processed_at >= period.start_datetime,
                UnpaidLeave.processed_at < period.end_datetime_exclusive,
            )
            .scalar()
        )

        rates = self.get_rates(emp_id)
        epf_employee = basic * rates.epf_rate / 100

        return DeductionBreakdown(
            regular=regular,
            unpaid_leave_total=float(unpaid_total or 0.0),
            epf_employee_amount=epf_employee,
        )

    def compute_net(self, employee_id: Any, year: int, month: int) -> Dict[str, Any]:
        """Fresh gross/deductions/net snapshot; nothing is cached between calls."""
        gross = self.compute_gross(employee_id, year, month)
        deductions = self.compute_deductions(employee_id, year, month)
        return {
            "gross": gross,
            "deductions": deductions,
            "net_salary": gross.gross - deductions.total,
        }
