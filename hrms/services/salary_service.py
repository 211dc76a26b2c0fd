from datetime import date
from typing import Any, Dict, Optional

from hrms.core.exceptions import NotFoundError, ValidationError
from hrms.core.rounding import round2
from hrms.models.employee import Employee
from hrms.models.salary_component import (
    Allowance, Bonus, ComponentStatus, Deduction, DeductionBasis,
    OvertimeAdjustment, Salary,
)
from hrms.services.base import BaseService
from hrms.services.unit_of_work import UnitOfWork


class SalaryComponentService(BaseService):
    """Write surface for the pay inputs the payroll calculator reads."""

    def __init__(self, uow: UnitOfWork, user_id: Optional[int] = None):
        super().__init__(uow.db, user_id)
        self.uow = uow

    def _require_employee(self, employee_id: int) -> Employee:
        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee not found", details={"employee_id": employee_id})
        return employee

    def _create(self, row) -> Dict[str, Any]:
        with self.uow.transaction():
            self._require_employee(row.employee_id)
            self.db.add(row)
            self.db.flush()
            result = {c.name: getattr(row, c.name) for c in row.__table__.columns}
        self.log_info(f"{row.__tablename__} row created", employee_id=row.employee_id, row_id=result["id"])
        return result

    def set_basic_salary(self, employee_id: int, basic_salary: float, effective_date: Optional[date] = None):
        """Appends a new Salary row; the latest row is the one payroll uses."""
        if basic_salary < 0:
            raise ValidationError("basic_salary cannot be negative")
        return self._create(Salary(
            employee_id=employee_id,
            basic_salary=basic_salary,
            effective_date=effective_date or date.today(),
        ))

    def add_allowance(
        self,
        employee_id: int,
        name: str,
        amount: float,
        effective_from: Optional[date] = None,
        effective_to: Optional[date] = None,
        status: str = ComponentStatus.ACTIVE.value,
    ):
        if effective_from and effective_to and effective_from > effective_to:
            raise ValidationError("effective_from must not be after effective_to")
        return self._create(Allowance(
            employee_id=employee_id,
            name=name,
            amount=amount,
            status=status,
            effective_from=effective_from,
            effective_to=effective_to,
        ))

    def add_bonus(self, employee_id: int, amount: float, effective_date: date, name: Optional[str] = None):
        return self._create(Bonus(employee_id=employee_id, name=name, amount=amount, effective_date=effective_date))

    def add_deduction(
        self,
        employee_id: int,
        name: str,
        effective_date: date,
        basis: str = DeductionBasis.FIXED.value,
        amount: Optional[float] = None,
        percent: Optional[float] = None,
        status: str = ComponentStatus.ACTIVE.value,
    ):
        if basis == DeductionBasis.PERCENT.value and percent is None:
            raise ValidationError("percent is required for Percent deductions")
        if basis == DeductionBasis.FIXED.value and amount is None:
            raise ValidationError("amount is required for Fixed deductions")
        return self._create(Deduction(
            employee_id=employee_id,
            name=name,
            basis=basis,
            amount=amount,
            percent=percent,
            status=status,
            effective_date=effective_date,
        ))

    def add_overtime(self, employee_id: int, ot_hours: float, ot_rate: float, note: Optional[str] = None):
        return self._create(OvertimeAdjustment(employee_id=employee_id, ot_hours=ot_hours, ot_rate=ot_rate, note=note))

    def list_earnings(self, employee_id: int) -> Dict[str, Any]:
        self._require_employee(employee_id)
        salaries = self.db.query(Salary).filter(Salary.employee_id == employee_id).order_by(Salary.id.desc()).all()
        allowances = self.db.query(Allowance).filter(Allowance.employee_id == employee_id).order_by(Allowance.id).all()
        bonuses = self.db.query(Bonus).filter(Bonus.employee_id == employee_id).order_by(Bonus.id).all()
        overtime = (
            self.db.query(OvertimeAdjustment)
            .filter(OvertimeAdjustment.employee_id == employee_id)
            .order_by(OvertimeAdjustment.id)
            .all()
        )
        deductions = self.db.query(Deduction).filter(Deduction.employee_id == employee_id).order_by(Deduction.id).all()
        return {
            "employee_id": employee_id,
            "basic_salary": round2(salaries[0].basic_salary) if salaries else 0.0,
            "salary_history": [
                {"id": s.id, "basic_salary": round2(s.basic_salary), "effective_date": s.effective_date}
                for s in salaries
            ],
            "allowances": [
                {"id": a.id, "name": a.name, "amount": round2(a.amount), "status": a.status,
                 "effective_from": a.effective_from, "effective_to": a.effective_to}
                for a in allowances
            ],
            "bonuses": [
                {"id": b.id, "name": b.name, "amount": round2(b.amount), "effective_date": b.effective_date}
                for b in bonuses
            ],
            "overtime": [
                {"id": o.id, "ot_hours": o.ot_hours, "ot_rate": o.ot_rate,
                 "amount": round2(o.ot_hours * o.ot_rate), "note": o.note, "created_at": o.created_at}
                for o in overtime
            ],
            "deductions": [
                {"id": d.id, "name": d.name, "basis": d.basis, "amount": d.amount,
                 "percent": d.percent, "status": d.status, "effective_date": d.effective_date}
                for d in deductions
            ],
        }
