"""
Payroll Service Layer

This module provides the business logic layer for payslips, period summaries
and the salary transfer cycle.

Architecture:
- Router -> PayrollService (this module) -> PayrollCalculator -> Models
- Net pay is always `gross - deductions` computed fresh from the calculator;
  a PayrollTransfer row is a point-in-time snapshot of that figure.
- The "process" path commits the whole batch in one transaction; the
  "initiate" path upserts rows to Processing and tolerates partial
  completion across calls.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from hrms.core.exceptions import NotFoundError, ValidationError
from hrms.core.logging import log_event
from hrms.core.rounding import round2
from hrms.models.employee import Employee, EmployeeStatus
from hrms.models.payroll import PayrollTransfer, TransferStatus
from hrms.models.salary_component import Allowance, Bonus, ComponentStatus, Deduction, OvertimeAdjustment
from hrms.models.unpaid_leave import UnpaidLeave, UnpaidLeaveStatus
from hrms.services.audit import AuditService
from hrms.services.base import BaseService
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.payroll_calculator import PayrollCalculator
from hrms.services.period import PayPeriod
from hrms.services.unit_of_work import UnitOfWork


def _employee_card(employee: Employee) -> Dict[str, Any]:
    return {
        "id": employee.id,
        "employee_code": employee.employee_code,
        "full_name": employee.full_name,
        "email": employee.email,
        "department": employee.department.name if employee.department else None,
        "designation": employee.designation,
    }


def serialize_transfer(row: PayrollTransfer) -> Dict[str, Any]:
    employee = row.employee
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "employee_code": employee.employee_code if employee else None,
        "full_name": employee.full_name if employee else None,
        "department_name": employee.department.name if employee and employee.department else None,
        "period_year": row.period_year,
        "period_month": row.period_month,
        "gross_salary": round2(row.gross_salary),
        "total_deductions": round2(row.total_deductions),
        "net_salary": round2(row.net_salary),
        "payment_date": row.payment_date.isoformat() if row.payment_date else None,
        "status": row.status,
        "processed_by": row.processed_by,
    }


def _month_entry(year: int, month: int) -> Dict[str, Any]:
    period = PayPeriod(year, month)
    return {
        "value": f"{year}-{month:02d}",
        "label": f"{period.month_name} {year}",
        "year": year,
        "month": month,
    }


class PayrollService(BaseService):
    def __init__(
        self,
        uow: UnitOfWork,
        config: Optional[PayrollEngineConfig] = None,
        user_id: Optional[int] = None,
        user_role: Optional[str] = None,
    ):
        super().__init__(uow.db, user_id)
        self.uow = uow
        self.config = config or PayrollEngineConfig.from_settings()
        self.calculator = PayrollCalculator(uow.db, self.config)
        self.user_role = user_role

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def payslip(self, employee_id: int, year: int, month: int) -> Dict[str, Any]:
        """
        Full payroll summary for one employee in one period.

        Args:
            employee_id: ID of the employee
            year: Period year
            month: Period month (1-12)

        Returns:
            Dict with employee, period, earnings, deductions,
            employer_contributions and summary sections.
        """
        period = PayPeriod.resolve(year, month)
        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee not found", details={"employee_id": employee_id})

        gross = self.calculator.compute_gross(employee_id, period.year, period.month)
        deductions = self.calculator.compute_deductions(employee_id, period.year, period.month)
        rates = self.calculator.get_rates(employee_id)
        net = gross.gross - deductions.total

        earnings_breakdown = [
            item for item in (
                {"description": "Basic Salary", "amount": round2(gross.basic), "type": "salary"},
                {"description": "Allowances", "amount": round2(gross.allowances), "type": "allowance"},
                {"description": "Overtime", "amount": round2(gross.overtime), "type": "overtime"},
                {"description": "Bonuses", "amount": round2(gross.bonuses), "type": "bonus"},
            )
            if item["amount"] > 0
        ]
        deductions_breakdown = [
            {"description": line.name, "amount": round2(line.calculated_amount), "type": "regular"}
            for line in deductions.regular
        ]
        deductions_breakdown += [
            {"description": "EPF Contribution", "amount": round2(deductions.epf_employee_amount), "type": "epf"},
            {"description": "Unpaid Leave", "amount": round2(deductions.unpaid_leave_total), "type": "unpaid_leave"},
        ]
        deductions_breakdown = [item for item in deductions_breakdown if item["amount"] > 0]

        # Employer contributions on basic salary, not gross
        return {
            "employee": _employee_card(employee),
            "period": period.as_dict(),
            "earnings": {"breakdown": earnings_breakdown, "total": round2(gross.gross)},
            "deductions": {"breakdown": deductions_breakdown, "total": round2(deductions.total)},
            "employer_contributions": {
                "epf": round2(gross.basic * rates.employer_epf_rate / 100),
                "etf": round2(gross.basic * rates.etf_rate / 100),
            },
            "summary": {
                "gross_salary": round2(gross.gross),
                "total_deductions": round2(deductions.total),
                "net_salary": round2(net),
            },
        }

    def _active_employees(self, department_id: Optional[int] = None):
        query = self.db.query(Employee).filter(Employee.status == EmployeeStatus.ACTIVE.value)
        if department_id:
            query = query.filter(Employee.department_id == department_id)
        return query.order_by(Employee.full_name.asc())

    def department_summary(self, year: int, month: int, department_id: Optional[int] = None) -> Dict[str, Any]:
        period = PayPeriod.resolve(year, month)
        summary = []
        total_gross = total_deductions = total_net = 0.0
        for emp in self._active_employees(department_id).all():
            snapshot = self.calculator.compute_net(emp.id, period.year, period.month)
            gross = snapshot["gross"].gross
            deductions = snapshot["deductions"].total
            net = snapshot["net_salary"]
            summary.append({
                "employee_id": emp.id,
                "employee_code": emp.employee_code,
                "full_name": emp.full_name,
                "department": emp.department.name if emp.department else None,
                "designation": emp.designation,
                "gross_salary": round2(gross),
                "total_deductions": round2(deductions),
                "net_salary": round2(net),
            })
            total_gross += gross
            total_deductions += deductions
            total_net += net
        return {
            "period": period.as_dict(),
            "summary": summary,
            "totals": {
                "total_employees": len(summary),
                "total_gross_salary": round2(total_gross),
                "total_deductions": round2(total_deductions),
                "total_net_salary": round2(total_net),
            },
        }

    def dashboard_summary(self, year: Optional[int] = None, month: Optional[int] = None) -> Dict[str, Any]:
        today = date.today()
        period = PayPeriod.resolve(year or today.year, month or today.month)
        previous = period.previous()

        employees = self._active_employees().all()
        gross_total = deductions_total = net_total = previous_gross = 0.0
        for emp in employees:
            snapshot = self.calculator.compute_net(emp.id, period.year, period.month)
            gross_total += snapshot["gross"].gross
            deductions_total += snapshot["deductions"].total
            net_total += snapshot["net_salary"]
            previous_gross += self.calculator.compute_gross(emp.id, previous.year, previous.month).gross

        gross_change = (gross_total - previous_gross) / previous_gross * 100 if previous_gross > 0 else 0.0
        return {
            "period": period.as_dict(),
            "total_employees": len(employees),
            "gross_salary": round2(gross_total),
            "total_deductions": round2(deductions_total),
            "net_salary": round2(net_total),
            "gross_change_percent": round(gross_change, 1),
            "gross_trend": "up" if gross_change > 0 else "down",
        }

    def list_transfers(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = self.db.query(PayrollTransfer)
        if year and month:
            period = PayPeriod.resolve(year, month)
            query = query.filter(
                PayrollTransfer.period_year == period.year,
                PayrollTransfer.period_month == period.month,
            )
        if status:
            query = query.filter(PayrollTransfer.status == status)
        rows = query.order_by(PayrollTransfer.payment_date.desc(), PayrollTransfer.id.desc()).all()
        return [serialize_transfer(r) for r in rows]

    def transfer_overview(self, year: int, month: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        period = PayPeriod.resolve(year, month)
        page = max(1, page)
        limit = min(100, max(1, limit))

        query = self._active_employees()
        total = query.count()
        employees = query.offset((page - 1) * limit).limit(limit).all()

        statuses = {}
        if employees:
            statuses = dict(
                self.db.query(PayrollTransfer.employee_id, PayrollTransfer.status)
                .filter(
                    PayrollTransfer.employee_id.in_([e.id for e in employees]),
                    PayrollTransfer.period_year == period.year,
                    PayrollTransfer.period_month == period.month,
                )
                .all()
            )

        data = []
        for emp in employees:
            snapshot = self.calculator.compute_net(emp.id, period.year, period.month)
            data.append({
                "id": emp.id,
                "name": emp.full_name,
                "employee_code": emp.employee_code,
                "phone": emp.phone or "N/A",
                "department": emp.department.name if emp.department else "N/A",
                "gross_salary": round2(snapshot["gross"].gross),
                "deductions": round2(snapshot["deductions"].total),
                "net_salary": round2(snapshot["net_salary"]),
                "bank_status": statuses.get(emp.id, TransferStatus.PENDING.value),
            })
        return {
            "data": data,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        }

    def available_months(self, employee_id: Optional[int] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Distinct (year, month) pairs that carry pay inputs, newest first.

        The current and next month are always offered.
        """
        sources = (
            (Allowance.created_at, Allowance.employee_id, Allowance.status == ComponentStatus.ACTIVE.value),
            (OvertimeAdjustment.created_at, OvertimeAdjustment.employee_id, None),
            (Bonus.effective_date, Bonus.employee_id, None),
            (Deduction.effective_date, Deduction.employee_id, Deduction.status == ComponentStatus.ACTIVE.value),
            (UnpaidLeave.processed_at, UnpaidLeave.employee_id,
             UnpaidLeave.status == UnpaidLeaveStatus.PROCESSED.value),
        )
        months: set = set()
        for column, employee_column, condition in sources:
            query = self.db.query(column).filter(column.isnot(None))
            if condition is not None:
                query = query.filter(condition)
            if employee_id is not None:
                query = query.filter(employee_column == employee_id)
            for (value,) in query.distinct().all():
                months.add((value.year, value.month))

        today = today or date.today()
        current = (today.year, today.month)
        upcoming = PayPeriod(*current)
        upcoming = (upcoming.next_start.year, upcoming.next_start.month)

        ordered: List[Tuple[int, int]] = sorted(months | {current, upcoming}, reverse=True)
        return [_month_entry(y, m) for y, m in ordered]

    # ------------------------------------------------------------------
    # Transfer cycle
    # ------------------------------------------------------------------
    def _validate_batch(self, employee_ids: List[int], year: int, month: int) -> PayPeriod:
        period = PayPeriod.resolve(year, month)
        if not employee_ids:
            raise ValidationError("employee_ids array required")
        return period

    def _existing_transfer(self, employee_id: int, period: PayPeriod) -> Optional[PayrollTransfer]:
        return (
            self.db.query(PayrollTransfer)
            .filter(
                PayrollTransfer.employee_id == employee_id,
                PayrollTransfer.period_year == period.year,
                PayrollTransfer.period_month == period.month,
            )
            .with_for_update()
            .first()
        )

    def _snapshot(self, employee_id: int, period: PayPeriod) -> Optional[Dict[str, float]]:
        if self.db.get(Employee, employee_id) is None:
            log_event("SALARY_TRANSFER_SKIP", level="warning", user_id=self.user_id,
                      employee_id=employee_id, year=period.year, month=period.month,
                      reason="Payroll data not found")
            return None
        snapshot = self.calculator.compute_net(employee_id, period.year, period.month)
        return {
            "gross_salary": round2(snapshot["gross"].gross),
            "total_deductions": round2(snapshot["deductions"].total),
            "net_salary": round2(snapshot["net_salary"]),
        }

    def process_salary_transfer(
        self,
        employee_ids: List[int],
        year: int,
        month: int,
        payment_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Record a Completed transfer per employee; one transaction for the batch.

        Employees that already have a transfer for the period are skipped, so
        calling this twice with the same ids leaves one row per employee.
        """
        period = self._validate_batch(employee_ids, year, month)
        payment_date = payment_date or date.today()

        processed: List[Dict[str, Any]] = []
        skipped = 0
        with self.uow.transaction():
            for employee_id in employee_ids:
                if self._existing_transfer(employee_id, period) is not None:
                    self.log_info(
                        "Salary already transferred; skipping",
                        employee_id=employee_id, year=period.year, month=period.month,
                    )
                    skipped += 1
                    continue

                snapshot = self._snapshot(employee_id, period)
                if snapshot is None:
                    skipped += 1
                    continue

                transfer = PayrollTransfer(
                    employee_id=employee_id,
                    period_year=period.year,
                    period_month=period.month,
                    payment_date=payment_date,
                    status=TransferStatus.COMPLETED.value,
                    processed_by=self.user_id,
                    **snapshot,
                )
                self.db.add(transfer)
                self.db.flush()
                processed.append({
                    "employee_id": employee_id,
                    "transfer_id": transfer.id,
                    "net_salary": snapshot["net_salary"],
                })

            AuditService.log(
                self.db,
                action="PROCESS_SALARY_TRANSFER",
                entity_type="payroll_transfers",
                entity_id=[p["transfer_id"] for p in processed],
                user_id=self.user_id,
                user_role=self.user_role,
                after_state={"year": period.year, "month": period.month, "processed_count": len(processed)},
            )

        return {
            "message": f"Salary transfer processed for {len(processed)} employee(s)",
            "processed": processed,
            "processed_count": len(processed),
            "skipped_count": skipped,
        }

    def initiate_bank_transfer(self, employee_ids: List[int], year: int, month: int) -> Dict[str, Any]:
        """
        Move employees into Processing with a fresh net-pay snapshot.

        Only Completed transfers are left alone; Pending or Processing rows
        are recomputed and set to Processing.
        """
        period = self._validate_batch(employee_ids, year, month)

        processed: List[int] = []
        skipped = 0
        with self.uow.transaction():
            for employee_id in employee_ids:
                existing = self._existing_transfer(employee_id, period)
                if existing is not None and existing.status == TransferStatus.COMPLETED.value:
                    skipped += 1
                    continue

                snapshot = self._snapshot(employee_id, period)
                if snapshot is None:
                    skipped += 1
                    continue

                if existing is None:
                    existing = PayrollTransfer(
                        employee_id=employee_id,
                        period_year=period.year,
                        period_month=period.month,
                    )
                    self.db.add(existing)
                for key, value in snapshot.items():
                    setattr(existing, key, value)
                existing.status = TransferStatus.PROCESSING.value
                existing.processed_by = self.user_id
                self.db.flush()
                processed.append(employee_id)

            AuditService.log(
                self.db,
                action="INITIATE_BANK_TRANSFER",
                entity_type="payroll_transfers",
                entity_id=processed,
                user_id=self.user_id,
                user_role=self.user_role,
                after_state={"year": period.year, "month": period.month, "processed_count": len(processed)},
            )

        return {
            "message": f"Bank transfer initiated for {len(processed)} employee(s)",
            "processed": processed,
            "processed_count": len(processed),
            "skipped_count": skipped,
        }

    def complete_bank_transfer(
        self,
        employee_ids: List[int],
        year: int,
        month: int,
        payment_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Mark Processing transfers Completed; anything else is skipped."""
        period = self._validate_batch(employee_ids, year, month)
        payment_date = payment_date or date.today()

        completed: List[int] = []
        skipped = 0
        with self.uow.transaction():
            for employee_id in employee_ids:
                existing = self._existing_transfer(employee_id, period)
                if existing is None or existing.status != TransferStatus.PROCESSING.value:
                    skipped += 1
                    continue
                existing.status = TransferStatus.COMPLETED.value
                existing.payment_date = payment_date
                existing.processed_by = self.user_id
                completed.append(employee_id)
            self.db.flush()

            AuditService.log(
                self.db,
                action="COMPLETE_BANK_TRANSFER",
                entity_type="payroll_transfers",
                entity_id=completed,
                user_id=self.user_id,
                user_role=self.user_role,
                after_state={"year": period.year, "month": period.month, "completed_count": len(completed)},
            )

        return {
            "message": f"Bank transfer completed for {len(completed)} employee(s)",
            "processed": completed,
            "processed_count": len(completed),
            "skipped_count": skipped,
        }
