from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from hrms.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from hrms.core.rounding import round2
from hrms.models.unpaid_leave import UnpaidLeave, UnpaidLeaveStatus
from hrms.services.audit import AuditService
from hrms.services.base import BaseService
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.payroll_calculator import PayrollCalculator
from hrms.services.unit_of_work import UnitOfWork


def serialize_unpaid_leave(row: UnpaidLeave) -> Dict[str, Any]:
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "start_date": row.start_date.isoformat() if row.start_date else None,
        "end_date": row.end_date.isoformat() if row.end_date else None,
        "total_days": round2(row.total_days),
        "reason": row.reason,
        "status": row.status,
        "source_request_id": row.source_request_id,
        "deduction_amount": round2(row.deduction_amount) if row.deduction_amount is not None else None,
        "processed_at": row.processed_at.isoformat() if row.processed_at else None,
        "processed_by_user_id": row.processed_by_user_id,
    }


class UnpaidLeaveService(BaseService):
    """
    Moves generated unpaid leave from Pending to Processed.

    Once processed, the deduction amount is picked up by the deductions
    aggregator for the calendar month of `processed_at`.
    """

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

    def list_unpaid_leaves(self, employee_id: Optional[int] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.query(UnpaidLeave)
        if employee_id is not None:
            query = query.filter(UnpaidLeave.employee_id == employee_id)
        if status:
            query = query.filter(UnpaidLeave.status == status)
        return [serialize_unpaid_leave(r) for r in query.order_by(UnpaidLeave.id.desc()).all()]

    def process(self, unpaid_leave_id: int, deduction_amount: Optional[float] = None) -> Dict[str, Any]:
        if deduction_amount is not None and deduction_amount < 0:
            raise ValidationError("deduction_amount cannot be negative")

        with self.uow.transaction():
            row = (
                self.db.query(UnpaidLeave)
                .filter(UnpaidLeave.id == unpaid_leave_id)
                .with_for_update()
                .first()
            )
            if row is None:
                raise NotFoundError("Unpaid leave not found", details={"id": unpaid_leave_id})
            if row.status == UnpaidLeaveStatus.PROCESSED.value:
                raise InvalidStateError(
                    "Unpaid leave already processed",
                    error_code="ALREADY_PROCESSED",
                    details={"id": unpaid_leave_id},
                )

            if deduction_amount is None:
                basic = self.calculator.basic_salary(row.employee_id)
                deduction_amount = row.total_days * basic / self.config.unpaid_leave_day_divisor

            row.deduction_amount = round2(deduction_amount)
            row.status = UnpaidLeaveStatus.PROCESSED.value
            row.processed_at = datetime.now(timezone.utc)
            row.processed_by_user_id = self.user_id
            self.db.flush()

            AuditService.log(
                self.db,
                action="PROCESS_UNPAID_LEAVE",
                entity_type="unpaid_leaves",
                entity_id=row.id,
                user_id=self.user_id,
                user_role=self.user_role,
                details={"employee_id": row.employee_id, "total_days": row.total_days},
                before_state={"status": UnpaidLeaveStatus.PENDING.value},
                after_state={"status": row.status, "deduction_amount": row.deduction_amount},
            )
            result = serialize_unpaid_leave(row)

        self.log_info("Unpaid leave processed", unpaid_leave_id=unpaid_leave_id, deduction=result["deduction_amount"])
        return result
