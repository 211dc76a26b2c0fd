"""
Leave administration: listings, calendar, summaries and grade rules.

Read-mostly companion to LeaveService. Restriction and rule writes run in
their own UnitOfWork transaction.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from hrms.core.exceptions import NotFoundError, ValidationError
from hrms.core.rounding import round2
from hrms.models.calendar_restriction import CalendarRestriction
from hrms.models.department import Department
from hrms.models.employee import Employee, Grade
from hrms.models.leave_balance import LeaveBalance
from hrms.models.leave_request import LeaveRequest, LeaveStatus
from hrms.models.leave_rule import LeaveRule
from hrms.models.leave_type import LeaveCategory, LeaveType
from hrms.services.audit import AuditService
from hrms.services.base import BaseService
from hrms.services.engine_config import LeaveEngineConfig
from hrms.services.unit_of_work import UnitOfWork

MAX_PAGE_SIZE = 100


def _clamp_page(page: int, page_size: int) -> tuple:
    return max(1, page), min(MAX_PAGE_SIZE, max(1, page_size))


def serialize_request(request: LeaveRequest) -> Dict[str, Any]:
    employee = request.employee
    return {
        "id": request.id,
        "employee_id": request.employee_id,
        "employee_code": employee.employee_code if employee else None,
        "full_name": employee.full_name if employee else None,
        "department_id": request.department_id,
        "department_name": request.department.name if request.department else None,
        "leave_type_id": request.leave_type_id,
        "leave_type": request.leave_type.name if request.leave_type else None,
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat(),
        "start_time": request.start_time.strftime("%H:%M") if request.start_time else None,
        "end_time": request.end_time.strftime("%H:%M") if request.end_time else None,
        "duration_hours": round2(request.duration_hours),
        "reason": request.reason,
        "status": request.status,
        "decision_note": request.decision_note,
        "decided_by_user_id": request.decided_by_user_id,
        "decided_at": request.decided_at.isoformat() if request.decided_at else None,
        "created_at": request.created_at.isoformat() if request.created_at else None,
    }


def serialize_restriction(row: CalendarRestriction) -> Dict[str, Any]:
    return {"id": row.id, "date": row.date.isoformat(), "type": row.type, "reason": row.reason}


class LeaveAdminService(BaseService):
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
    # Requests
    # ------------------------------------------------------------------
    def list_requests(
        self,
        status: Optional[str] = None,
        department_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        page, page_size = _clamp_page(page, page_size)

        query = self.db.query(LeaveRequest).join(Employee, Employee.id == LeaveRequest.employee_id)
        if status:
            query = query.filter(LeaveRequest.status == status.upper())
        if department_id:
            query = query.filter(LeaveRequest.department_id == department_id)
        if date_from:
            query = query.filter(LeaveRequest.start_date >= date_from)
        if date_to:
            query = query.filter(LeaveRequest.end_date <= date_to)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Employee.full_name.ilike(pattern), Employee.email.ilike(pattern)))

        total = query.count()
        rows = (
            query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "page": page,
            "page_size": page_size,
            "total": total,
            "data": [serialize_request(r) for r in rows],
        }

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------
    def calendar_feed(self, date_from: date, date_to: date) -> Dict[str, Any]:
        """Approved leave overlapping the window, plus restricted dates in it."""
        if date_from > date_to:
            raise ValidationError("'from' must not be after 'to'")

        rows = (
            self.db.query(LeaveRequest)
            .filter(
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.end_date >= date_from,
                LeaveRequest.start_date <= date_to,
            )
            .order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc())
            .all()
        )
        events = []
        for r in rows:
            full_name = r.employee.full_name if r.employee else None
            leave_type = r.leave_type.name if r.leave_type else None
            events.append({
                "id": r.id,
                "employee_id": r.employee_id,
                "employee_code": r.employee.employee_code if r.employee else None,
                "full_name": full_name,
                "leave_type": leave_type,
                "start_date": r.start_date.isoformat(),
                "end_date": r.end_date.isoformat(),
                "status": r.status,
                "duration_hours": r.duration_hours,
                "title": f"{full_name} - {leave_type}",
                "hours": round(float(r.duration_hours or 0.0), 1),
            })

        restrictions = (
            self.db.query(CalendarRestriction)
            .filter(CalendarRestriction.date >= date_from, CalendarRestriction.date <= date_to)
            .order_by(CalendarRestriction.date.asc())
            .all()
        )
        return {"events": events, "restrictions": [serialize_restriction(r) for r in restrictions]}

    def save_restriction(self, on_date: date, restriction_type: str, reason: Optional[str] = None) -> Dict[str, Any]:
        """Upsert by unique date."""
        if not restriction_type:
            raise ValidationError("date and type are required")
        with self.uow.transaction():
            row = self.db.query(CalendarRestriction).filter(CalendarRestriction.date == on_date).first()
            if row is None:
                row = CalendarRestriction(date=on_date, created_by_user_id=self.user_id)
                self.db.add(row)
            row.type = restriction_type
            row.reason = reason
            self.db.flush()
            result = serialize_restriction(row)
        return result

    def delete_restriction(self, restriction_id: Optional[int] = None, on_date: Optional[date] = None) -> int:
        if restriction_id is None and on_date is None:
            raise ValidationError("id or date is required")
        with self.uow.transaction():
            query = self.db.query(CalendarRestriction)
            if restriction_id is not None:
                query = query.filter(CalendarRestriction.id == restriction_id)
            else:
                query = query.filter(CalendarRestriction.date == on_date)
            affected = query.delete(synchronize_session=False)
        return affected

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------
    def leave_summary(self, year: int, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        by_type = (
            self.db.query(LeaveType.name, func.coalesce(func.sum(LeaveRequest.duration_hours), 0.0))
            .join(LeaveRequest, LeaveRequest.leave_type_id == LeaveType.id)
            .filter(
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
            .group_by(LeaveType.name)
            .order_by(LeaveType.name.asc())
            .all()
        )
        on_leave_today = (
            self.db.query(func.count(LeaveRequest.id))
            .filter(
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= today,
                LeaveRequest.end_date >= today,
            )
            .scalar()
        )
        return {
            "year": year,
            "on_leave_today": int(on_leave_today or 0),
            "by_type": [{"leave_type": name, "hours": round2(hours)} for name, hours in by_type],
        }

    def employee_balances(
        self,
        year: int,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Annual and medical days used against grade entitlement, per employee."""
        page, page_size = _clamp_page(page, page_size)
        annual_ids = self.config.type_ids_for(LeaveCategory.ANNUAL)
        medical_ids = self.config.type_ids_for(LeaveCategory.MEDICAL)

        query = self.db.query(Employee)
        if department_id:
            query = query.filter(Employee.department_id == department_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Employee.full_name.ilike(pattern), Employee.employee_code.ilike(pattern)))

        total = query.count()
        employees = query.order_by(Employee.full_name.asc()).offset((page - 1) * page_size).limit(page_size).all()

        used_by_key = {}
        if employees:
            rows = (
                self.db.query(LeaveBalance.employee_id, LeaveBalance.leave_type_id, LeaveBalance.used_days)
                .filter(LeaveBalance.employee_id.in_([e.id for e in employees]), LeaveBalance.year == year)
                .all()
            )
            for emp_id, type_id, used in rows:
                used_by_key[(emp_id, type_id)] = float(used or 0.0)

        data = []
        for emp in employees:
            rule = emp.grade.leave_rule if emp.grade else None
            data.append({
                "employee_id": emp.id,
                "employee_code": emp.employee_code,
                "name": emp.full_name,
                "department": emp.department.name if emp.department else "N/A",
                "annual_used": round2(sum(used_by_key.get((emp.id, t), 0.0) for t in annual_ids)),
                "annual_total": float(rule.annual_limit) if rule else 0.0,
                "medical_used": round2(sum(used_by_key.get((emp.id, t), 0.0) for t in medical_ids)),
                "medical_total": float(rule.medical_limit) if rule else 0.0,
            })
        return {"page": page, "page_size": page_size, "total": total, "year": year, "data": data}

    # ------------------------------------------------------------------
    # Grade rules
    # ------------------------------------------------------------------
    def get_rules(self) -> List[Dict[str, Any]]:
        grades = self.db.query(Grade).order_by(Grade.id.asc()).all()
        return [
            {
                "grade_id": g.id,
                "grade_name": g.name,
                "annual_limit": g.leave_rule.annual_limit if g.leave_rule else None,
                "medical_limit": g.leave_rule.medical_limit if g.leave_rule else None,
            }
            for g in grades
        ]

    def save_rule(self, grade_id: int, annual_limit: float, medical_limit: float) -> Dict[str, Any]:
        if annual_limit is None or medical_limit is None:
            raise ValidationError("Grade ID, annual limit, and medical limit are required")
        if annual_limit < 0 or medical_limit < 0:
            raise ValidationError("Limits cannot be negative")

        with self.uow.transaction():
            grade = self.db.get(Grade, grade_id)
            if grade is None:
                raise NotFoundError("Grade not found", details={"grade_id": grade_id})

            rule = self.db.query(LeaveRule).filter(LeaveRule.grade_id == grade_id).first()
            before = None
            if rule is None:
                rule = LeaveRule(grade_id=grade_id)
                self.db.add(rule)
            else:
                before = {"annual_limit": rule.annual_limit, "medical_limit": rule.medical_limit}
            rule.annual_limit = float(annual_limit)
            rule.medical_limit = float(medical_limit)
            self.db.flush()

            AuditService.log(
                self.db,
                action="SAVE_LEAVE_RULE",
                entity_type="leave_rules",
                entity_id=rule.id,
                user_id=self.user_id,
                user_role=self.user_role,
                details={"grade_id": grade_id},
                before_state=before,
                after_state={"annual_limit": rule.annual_limit, "medical_limit": rule.medical_limit},
            )
            result = {
                "id": rule.id,
                "grade_id": grade_id,
                "grade_name": grade.name,
                "annual_limit": rule.annual_limit,
                "medical_limit": rule.medical_limit,
            }
        return result
