"""
Leave Service Layer

Duration computation, decision state machine, additive balance ledger and
entitlement breach detection for leave requests.

Architecture:
- Router -> LeaveService (this module) -> Models
- Every decision runs inside a single UnitOfWork transaction: status update,
  balance upsert, ledger entry, unpaid-leave generation and audit row commit
  or roll back together.
"""
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Optional, Union

from sqlalchemy import func

from hrms.core.exceptions import AlreadyDecidedError, NotFoundError, ValidationError
from hrms.core.rounding import round2
from hrms.models.employee import Employee
from hrms.models.leave_balance import LeaveBalance, LeaveBalanceEntry
from hrms.models.leave_request import LeaveAction, LeaveRequest, LeaveStatus
from hrms.models.leave_rule import LeaveRule
from hrms.models.leave_type import LeaveCategory, LeaveType
from hrms.models.unpaid_leave import UnpaidLeave, UnpaidLeaveStatus
from hrms.services.audit import AuditService
from hrms.services.base import BaseService
from hrms.services.engine_config import LeaveEngineConfig
from hrms.services.unit_of_work import UnitOfWork

# Which LeaveRule column caps each category; None means never breach-checked.
_ENTITLEMENT_FIELDS = {
    LeaveCategory.ANNUAL: ("annual_limit", "Annual Leave"),
    LeaveCategory.MEDICAL: ("medical_limit", "Medical Leave"),
    LeaveCategory.OTHER: None,
}
if set(_ENTITLEMENT_FIELDS) != set(LeaveCategory):
    raise RuntimeError("FATAL: every leave category needs an entitlement mapping.")


def _as_time(value: Union[time, str, None]) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(value)


def calculate_full_days(start: Optional[date], end: Optional[date]) -> int:
    """Inclusive calendar-day count; not used when a request is created."""
    if not start or not end or start > end:
        return 0
    return (end - start).days + 1


def compute_duration_hours(
    start_date: date,
    end_date: date,
    start_time: Union[time, str, None] = None,
    end_time: Union[time, str, None] = None,
    config: Optional[LeaveEngineConfig] = None,
) -> float:
    """
    Naive elapsed time between start and end, in hours.

    Weekends, holidays and multi-day spans are not special-cased: a request
    from Monday 09:00 to Tuesday 18:00 is 33 hours.
    """
    cfg = config or LeaveEngineConfig.from_settings()
    start_dt = datetime.combine(start_date, _as_time(start_time) or cfg.default_start_time)
    end_dt = datetime.combine(end_date, _as_time(end_time) or cfg.default_end_time)
    minutes = int((end_dt - start_dt).total_seconds() // 60)
    return round(max(0, minutes) / 60, 2)


def hours_to_days(hours: float, config: Optional[LeaveEngineConfig] = None) -> float:
    cfg = config or LeaveEngineConfig.from_settings()
    return float(hours or 0.0) / cfg.work_hours_per_day


class LeaveService(BaseService):
    def __init__(
        self,
        uow: UnitOfWork,
        config: Optional[LeaveEngineConfig] = None,
        user_id: Optional[int] = None,
        user_role: Optional[str] = None,
    ):
        super().__init__(uow.db, user_id)
        self.uow = uow
        self.config = config or LeaveEngineConfig.from_settings()
        self.user_role = user_role

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_request(
        self,
        employee_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        start_time: Union[time, str, None] = None,
        end_time: Union[time, str, None] = None,
        duration_hours: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        """
        File a PENDING leave request.

        An explicit `duration_hours` (e.g. 4.0 for a half day) is stored
        verbatim; otherwise the duration is computed from the date/time span.
        """
        if duration_hours is not None and duration_hours < 0:
            raise ValidationError("duration_hours cannot be negative")

        with self.uow.transaction():
            employee = self.db.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found", details={"employee_id": employee_id})
            if self.db.get(LeaveType, leave_type_id) is None:
                raise NotFoundError("Leave type not found", details={"leave_type_id": leave_type_id})

            if duration_hours is None:
                duration_hours = compute_duration_hours(
                    start_date, end_date, start_time, end_time, self.config
                )

            request = LeaveRequest(
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                department_id=employee.department_id,
                start_date=start_date,
                end_date=end_date,
                start_time=_as_time(start_time),
                end_time=_as_time(end_time),
                duration_hours=float(duration_hours),
                reason=reason,
                status=LeaveStatus.PENDING.value,
                created_by_user_id=self.user_id,
            )
            self.db.add(request)
            self.db.flush()

        self.log_info(
            "Leave request created",
            leave_request_id=request.id,
            employee_id=employee_id,
            duration_hours=request.duration_hours,
        )
        return request

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------
    def decide(self, request_id: int, action: Union[LeaveAction, str], note: Optional[str] = None) -> Dict[str, Any]:
        """
        Apply APPROVE / REJECT / RESPOND to a leave request.

        APPROVE also records usage against the balance ledger and files an
        UnpaidLeave row when the post-approval total exceeds the grade limit.
        """
        try:
            action = LeaveAction(action)
        except ValueError:
            raise ValidationError(
                f"Unknown action '{action}'", details={"allowed": [a.value for a in LeaveAction]}
            )

        unpaid = None
        with self.uow.transaction():
            request = (
                self.db.query(LeaveRequest)
                .filter(LeaveRequest.id == request_id)
                .with_for_update()
                .first()
            )
            if request is None:
                raise NotFoundError("Request not found", details={"request_id": request_id})
            if request.status != LeaveStatus.PENDING.value and action != LeaveAction.RESPOND:
                raise AlreadyDecidedError(request.id, request.status)

            before_state = {"status": request.status, "decision_note": request.decision_note}

            if action != LeaveAction.RESPOND:
                request.status = (
                    LeaveStatus.APPROVED.value if action == LeaveAction.APPROVE else LeaveStatus.REJECTED.value
                )
                request.decided_by_user_id = self.user_id
                request.decided_at = datetime.now(timezone.utc)
            # Empty note keeps the previous one
            if note:
                request.decision_note = note
            self.db.flush()

            if action == LeaveAction.APPROVE:
                used_days = self._record_usage(request)
                unpaid = self._generate_unpaid_leave(request, used_days)

            AuditService.log(
                self.db,
                action="DECIDE_LEAVE_REQUEST",
                entity_type="leave_requests",
                entity_id=request.id,
                user_id=self.user_id,
                user_role=self.user_role,
                details={"action": action.value, "note": note},
                before_state=before_state,
                after_state={
                    "status": request.status,
                    "decision_note": request.decision_note,
                    "unpaid_leave_id": unpaid.id if unpaid else None,
                },
            )
            status = request.status

        if action == LeaveAction.RESPOND:
            message = "Response saved"
        else:
            message = f"Request {status.lower()}"
        return {
            "id": request_id,
            "status": status,
            "message": message,
            "unpaid_leave_id": unpaid.id if unpaid else None,
        }

    def _record_usage(self, request: LeaveRequest) -> float:
        """
        Additively upsert the balance row and append a ledger entry.

        The balance row is locked for the rest of the transaction so
        concurrent approvals for the same employee/type/year serialize.
        Returns the post-upsert used_days total.
        """
        year = request.start_date.year
        delta = round2(hours_to_days(request.duration_hours, self.config))

        balance = (
            self.db.query(LeaveBalance)
            .filter(
                LeaveBalance.employee_id == request.employee_id,
                LeaveBalance.leave_type_id == request.leave_type_id,
                LeaveBalance.year == year,
            )
            .with_for_update()
            .first()
        )
        if balance is None:
            balance = LeaveBalance(
                employee_id=request.employee_id,
                leave_type_id=request.leave_type_id,
                year=year,
                entitled_days=0.0,
                used_days=delta,
            )
            self.db.add(balance)
        else:
            balance.used_days = round2(balance.used_days + delta)

        self.db.add(LeaveBalanceEntry(
            employee_id=request.employee_id,
            leave_type_id=request.leave_type_id,
            year=year,
            delta_days=delta,
            source_request_id=request.id,
        ))
        self.db.flush()

        # Read back inside the same transaction so the breach check sees this write
        used = (
            self.db.query(func.coalesce(func.sum(LeaveBalance.used_days), 0.0))
            .filter(
                LeaveBalance.employee_id == request.employee_id,
                LeaveBalance.leave_type_id == request.leave_type_id,
                LeaveBalance.year == year,
            )
            .scalar()
        )
        return float(used or 0.0)

    def entitlement_limit(self, employee_id: int, category: LeaveCategory) -> float:
        """Grade-based day limit for the category; 0 when unset or not capped."""
        mapping = _ENTITLEMENT_FIELDS[category]
        if mapping is None:
            return 0.0
        column, _ = mapping
        rule = (
            self.db.query(LeaveRule)
            .join(Employee, Employee.grade_id == LeaveRule.grade_id)
            .filter(Employee.id == employee_id)
            .first()
        )
        if rule is None:
            return 0.0
        return float(getattr(rule, column) or 0.0)

    def _generate_unpaid_leave(self, request: LeaveRequest, used_days: float) -> Optional[UnpaidLeave]:
        """
        File the excess over entitlement as unpaid leave.

        Only the category of this request is checked. Every qualifying
        approval files a new row; earlier rows for the same breach are never
        updated.
        """
        category = self.config.category_for(request.leave_type_id)
        mapping = _ENTITLEMENT_FIELDS[category]
        if mapping is None:
            return None
        _, label = mapping

        limit = self.entitlement_limit(request.employee_id, category)
        if limit <= 0 or used_days <= limit:
            return None

        excess = used_days - limit
        if excess <= self.config.breach_tolerance_days:
            return None

        unpaid = UnpaidLeave(
            employee_id=request.employee_id,
            start_date=request.start_date,
            end_date=request.end_date,
            total_days=round2(excess),
            reason=f"{label} limit ({limit:g} days) exceeded by {excess:.2f} days by this request.",
            status=UnpaidLeaveStatus.PENDING.value,
            source_request_id=request.id,
        )
        self.db.add(unpaid)
        self.db.flush()

        self.log_warning(
            "Leave entitlement exceeded; unpaid leave filed",
            employee_id=request.employee_id,
            leave_request_id=request.id,
            excess_days=round2(excess),
        )
        return unpaid

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_request(self, request_id: int) -> LeaveRequest:
        request = self.db.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found", details={"request_id": request_id})
        return request

    def used_days(self, employee_id: int, leave_type_id: int, year: int) -> float:
        value = (
            self.db.query(LeaveBalance.used_days)
            .filter(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
            .scalar()
        )
        return float(value or 0.0)

    def ledger_total(self, employee_id: int, leave_type_id: int, year: int) -> float:
        value = (
            self.db.query(func.coalesce(func.sum(LeaveBalanceEntry.delta_days), 0.0))
            .filter(
                LeaveBalanceEntry.employee_id == employee_id,
                LeaveBalanceEntry.leave_type_id == leave_type_id,
                LeaveBalanceEntry.year == year,
            )
            .scalar()
        )
        return float(value or 0.0)
