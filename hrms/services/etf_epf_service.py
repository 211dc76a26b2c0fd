"""
ETF/EPF Service Layer

Statutory contribution processing (employee EPF, employer EPF, employer ETF)
and the per-employee rate configuration it reads.

Gross for EPF comes from PayrollCalculator.compute_gross, the same
aggregator the payslip and salary transfer use.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from hrms.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from hrms.core.logging import log_event
from hrms.core.rounding import round2
from hrms.models.employee import Employee, EmployeeStatus
from hrms.models.etf_epf import EtfEpfConfig, EtfEpfTransaction
from hrms.services.audit import AuditService
from hrms.services.base import BaseService
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.payroll_calculator import PayrollCalculator, StatutoryRates
from hrms.services.period import PayPeriod
from hrms.services.unit_of_work import UnitOfWork

# Fields a partial update may touch; None in the payload means "keep"
_UPDATABLE_FIELDS = (
    "epf_number",
    "etf_number",
    "epf_effective_date",
    "etf_effective_date",
    "epf_status",
    "etf_status",
    "epf_contribution_rate",
    "employer_epf_rate",
    "etf_contribution_rate",
)


def contributions_on(amount: float, rates: StatutoryRates) -> Dict[str, float]:
    """Unrounded employee EPF, employer EPF and employer ETF on `amount`."""
    employee_epf = amount * rates.epf_rate / 100
    employer_epf = amount * rates.employer_epf_rate / 100
    employer_etf = amount * rates.etf_rate / 100
    return {
        "employee_epf": employee_epf,
        "employer_epf": employer_epf,
        "employer_etf": employer_etf,
        "total": employee_epf + employer_epf + employer_etf,
    }


def serialize_config(row: EtfEpfConfig) -> Dict[str, Any]:
    employee = row.employee
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "employee_code": employee.employee_code if employee else None,
        "full_name": employee.full_name if employee else None,
        "department": employee.department.name if employee and employee.department else None,
        "epf_number": row.epf_number,
        "etf_number": row.etf_number,
        "epf_effective_date": row.epf_effective_date.isoformat() if row.epf_effective_date else None,
        "etf_effective_date": row.etf_effective_date.isoformat() if row.etf_effective_date else None,
        "epf_status": row.epf_status,
        "etf_status": row.etf_status,
        "epf_contribution_rate": row.epf_contribution_rate,
        "employer_epf_rate": row.employer_epf_rate,
        "etf_contribution_rate": row.etf_contribution_rate,
    }


def serialize_transaction(row: EtfEpfTransaction) -> Dict[str, Any]:
    employee = row.employee
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "employee_code": employee.employee_code if employee else None,
        "full_name": employee.full_name if employee else None,
        "period_year": row.period_year,
        "period_month": row.period_month,
        "gross_salary": round2(row.gross_salary),
        "employee_epf_amount": round2(row.employee_epf_amount),
        "epf_employer_share": round2(row.epf_employer_share),
        "employer_etf_amount": round2(row.employer_etf_amount),
        "processed_by": row.processed_by,
        "processed_at": row.processed_at.isoformat() if row.processed_at else None,
    }


class EtfEpfService(BaseService):
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
    # Processing
    # ------------------------------------------------------------------
    def process_list(self, year: int, month: int) -> List[Dict[str, Any]]:
        """
        Active employees payable in the period, with a contribution preview
        on basic salary. Employees who joined after the period are excluded.
        """
        period = PayPeriod.resolve(year, month)
        employees = (
            self.db.query(Employee)
            .filter(Employee.status == EmployeeStatus.ACTIVE.value)
            .order_by(Employee.full_name.asc())
            .all()
        )
        configs = {
            row.employee_id: row
            for row in self.db.query(EtfEpfConfig).filter(
                EtfEpfConfig.employee_id.in_([e.id for e in employees])
            ).all()
        } if employees else {}

        results = []
        for emp in employees:
            if not period.has_joined(emp.joining_date):
                continue
            basic = self.calculator.basic_salary(emp.id)
            rates = self.calculator.rates_from_config(configs.get(emp.id))
            amounts = contributions_on(basic, rates)
            results.append({
                "employee_id": emp.id,
                "employee_code": emp.employee_code,
                "full_name": emp.full_name,
                "joining_date": emp.joining_date.isoformat() if emp.joining_date else None,
                "department_name": emp.department.name if emp.department else None,
                "has_config": rates.configured,
                "basic_salary": round2(basic),
                "epf_rate": rates.epf_rate,
                "employer_epf_rate": rates.employer_epf_rate,
                "etf_rate": rates.etf_rate,
                "epf_employee_amount": round2(amounts["employee_epf"]),
                "epf_employer_share": round2(amounts["employer_epf"]),
                "etf_employer_contribution": round2(amounts["employer_etf"]),
                "total_statutory": round2(amounts["total"]),
            })
        return results

    def process_payments(self, employee_ids: List[int], year: int, month: int) -> Dict[str, Any]:
        """
        Record one immutable EtfEpfTransaction per eligible employee.

        Employees already transacted for the period, without a rate config,
        or with zero gross are skipped and logged. The whole batch commits
        or rolls back together.
        """
        period = PayPeriod.resolve(year, month)
        if not employee_ids:
            raise ValidationError("Invalid payload: month, year, and employee_ids required")

        processed: List[int] = []
        skipped = 0
        with self.uow.transaction():
            for employee_id in employee_ids:
                existing = (
                    self.db.query(EtfEpfTransaction.id)
                    .filter(
                        EtfEpfTransaction.employee_id == employee_id,
                        EtfEpfTransaction.period_year == period.year,
                        EtfEpfTransaction.period_month == period.month,
                    )
                    .first()
                )
                if existing:
                    self.log_info(
                        "ETF/EPF already processed; skipping",
                        employee_id=employee_id, year=period.year, month=period.month,
                    )
                    skipped += 1
                    continue

                config_row = self.db.query(EtfEpfConfig).filter(EtfEpfConfig.employee_id == employee_id).first()
                if config_row is None:
                    log_event("ETF_EPF_RATES_MISSING", level="warning", user_id=self.user_id,
                              employee_id=employee_id, year=period.year, month=period.month)
                    skipped += 1
                    continue

                gross = self.calculator.compute_gross(employee_id, period.year, period.month).gross
                if gross <= 0:
                    log_event("ETF_EPF_GROSS_ZERO", level="warning", user_id=self.user_id,
                              employee_id=employee_id, year=period.year, month=period.month)
                    skipped += 1
                    continue

                amounts = contributions_on(gross, self.calculator.rates_from_config(config_row))
                self.db.add(EtfEpfTransaction(
                    employee_id=employee_id,
                    period_year=period.year,
                    period_month=period.month,
                    gross_salary=round2(gross),
                    employee_epf_amount=round2(amounts["employee_epf"]),
                    epf_employer_share=round2(amounts["employer_epf"]),
                    employer_etf_amount=round2(amounts["employer_etf"]),
                    processed_by=self.user_id,
                ))
                # Later duplicates of the same id in this batch must see this row
                self.db.flush()
                processed.append(employee_id)

            AuditService.log(
                self.db,
                action="PROCESS_ETF_EPF_PAYMENT",
                entity_type="payroll_etf_epf_transactions",
                entity_id=processed,
                user_id=self.user_id,
                user_role=self.user_role,
                after_state={"year": period.year, "month": period.month, "processed": processed},
            )

        return {
            "message": f"Successfully processed {len(processed)} records.",
            "processed": processed,
            "processed_count": len(processed),
            "skipped_count": skipped,
        }

    # ------------------------------------------------------------------
    # Config records
    # ------------------------------------------------------------------
    def list_records(self) -> List[Dict[str, Any]]:
        """Every Active employee, with their config when one exists."""
        employees = (
            self.db.query(Employee)
            .filter(Employee.status == EmployeeStatus.ACTIVE.value)
            .order_by(Employee.full_name.asc())
            .all()
        )
        rows = {r.employee_id: r for r in self.db.query(EtfEpfConfig).all()}
        data = []
        for emp in employees:
            row = rows.get(emp.id)
            if row is not None:
                item = serialize_config(row)
            else:
                item = {
                    "id": None,
                    "employee_id": emp.id,
                    "employee_code": emp.employee_code,
                    "full_name": emp.full_name,
                    "department": emp.department.name if emp.department else None,
                    "epf_number": emp.epf_no,
                    "epf_status": "Not Set",
                    "etf_status": "Not Set",
                }
            item["has_etf_epf_record"] = row is not None
            data.append(item)
        return data

    def get_record(self, record_id: int) -> Dict[str, Any]:
        row = self.db.get(EtfEpfConfig, record_id)
        if row is None:
            raise NotFoundError("ETF/EPF record not found", details={"id": record_id})
        return serialize_config(row)

    def create_record(self, employee_id: int, **fields: Any) -> Dict[str, Any]:
        with self.uow.transaction():
            employee = self.db.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found", details={"employee_id": employee_id})
            if self.db.query(EtfEpfConfig.id).filter(EtfEpfConfig.employee_id == employee_id).first():
                raise InvalidStateError("Record already exists", details={"employee_id": employee_id})

            epf_number = fields.get("epf_number") or employee.epf_no
            if not epf_number:
                raise ValidationError("EPF number required")

            joined = employee.joining_date
            row = EtfEpfConfig(
                employee_id=employee_id,
                epf_number=epf_number,
                etf_number=fields.get("etf_number"),
                epf_effective_date=fields.get("epf_effective_date") or joined,
                etf_effective_date=fields.get("etf_effective_date") or joined,
                epf_status=fields.get("epf_status") or "Active",
                etf_status=fields.get("etf_status") or "Active",
                epf_contribution_rate=fields.get("epf_contribution_rate"),
                employer_epf_rate=fields.get("employer_epf_rate"),
                etf_contribution_rate=fields.get("etf_contribution_rate"),
            )
            self.db.add(row)
            self.db.flush()

            result = serialize_config(row)
            AuditService.log(
                self.db,
                action="UPSERT_ETF_EPF",
                entity_type="employee_etf_epf",
                entity_id=row.id,
                user_id=self.user_id,
                user_role=self.user_role,
                after_state=result,
            )
        return result

    def update_record(self, record_id: int, **fields: Any) -> Dict[str, Any]:
        with self.uow.transaction():
            row = self.db.get(EtfEpfConfig, record_id)
            if row is None:
                raise NotFoundError("ETF/EPF record not found", details={"id": record_id})
            before = serialize_config(row)
            for name in _UPDATABLE_FIELDS:
                value = fields.get(name)
                if value is not None:
                    setattr(row, name, value)
            self.db.flush()

            result = serialize_config(row)
            AuditService.log(
                self.db,
                action="UPSERT_ETF_EPF",
                entity_type="employee_etf_epf",
                entity_id=row.id,
                user_id=self.user_id,
                user_role=self.user_role,
                before_state=before,
                after_state=result,
            )
        return result

    def delete_record(self, record_id: int) -> None:
        with self.uow.transaction():
            row = self.db.get(EtfEpfConfig, record_id)
            if row is None:
                raise NotFoundError("ETF/EPF record not found", details={"id": record_id})
            before = serialize_config(row)
            self.db.delete(row)
            self.db.flush()
            AuditService.log(
                self.db,
                action="DELETE_ETF_EPF",
                entity_type="employee_etf_epf",
                entity_id=record_id,
                user_id=self.user_id,
                user_role=self.user_role,
                before_state=before,
            )

    def calculate_contributions(self, employee_id: int, basic_salary: float) -> Dict[str, Any]:
        if not basic_salary or basic_salary <= 0:
            raise ValidationError("basic_salary must be positive")
        row = self.db.query(EtfEpfConfig).filter(EtfEpfConfig.employee_id == employee_id).first()
        if row is None:
            raise NotFoundError("No record found", details={"employee_id": employee_id})
        rates = self.calculator.rates_from_config(row)
        amounts = contributions_on(float(basic_salary), rates)
        return {
            "employee_id": employee_id,
            "basic_salary": round2(basic_salary),
            "epf_rate": rates.epf_rate,
            "employer_epf_rate": rates.employer_epf_rate,
            "etf_rate": rates.etf_rate,
            "employee_epf": round2(amounts["employee_epf"]),
            "employer_epf": round2(amounts["employer_epf"]),
            "employer_etf": round2(amounts["employer_etf"]),
            "total_contribution": round2(amounts["total"]),
        }

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def payment_summary(self) -> List[Dict[str, Any]]:
        """Transaction totals per period, newest first."""
        rows = (
            self.db.query(
                EtfEpfTransaction.period_year,
                EtfEpfTransaction.period_month,
                func.count(EtfEpfTransaction.id),
                func.sum(EtfEpfTransaction.gross_salary),
                func.sum(EtfEpfTransaction.employee_epf_amount),
                func.sum(EtfEpfTransaction.epf_employer_share),
                func.sum(EtfEpfTransaction.employer_etf_amount),
            )
            .group_by(EtfEpfTransaction.period_year, EtfEpfTransaction.period_month)
            .order_by(EtfEpfTransaction.period_year.desc(), EtfEpfTransaction.period_month.desc())
            .all()
        )
        return [
            {
                "year": year,
                "month": month,
                "employee_count": count,
                "total_gross": round2(gross),
                "total_employee_epf": round2(emp_epf),
                "total_employer_epf": round2(er_epf),
                "total_etf": round2(etf),
                "total_contribution": round2((emp_epf or 0) + (er_epf or 0) + (etf or 0)),
            }
            for year, month, count, gross, emp_epf, er_epf, etf in rows
        ]

    def payment_history(self, year: int, month: int) -> Dict[str, Any]:
        period = PayPeriod.resolve(year, month)
        rows = (
            self.db.query(EtfEpfTransaction)
            .filter(
                EtfEpfTransaction.period_year == period.year,
                EtfEpfTransaction.period_month == period.month,
            )
            .order_by(EtfEpfTransaction.employee_id.asc())
            .all()
        )
        data = [serialize_transaction(r) for r in rows]
        totals = {
            key: round2(sum(item[key] for item in data))
            for key in ("gross_salary", "employee_epf_amount", "epf_employer_share", "employer_etf_amount")
        }
        return {"period": period.as_dict(), "data": data, "totals": totals}
