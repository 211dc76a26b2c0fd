from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from hrms.core.schemas import ApiResponse
from hrms.dependencies import (
    get_current_user, get_leave_config, get_payroll_config, get_uow,
    require_approver, require_hr, require_payroll,
)
from hrms.schemas.auth import Actor
from hrms.schemas.leave import (
    CalendarRestrictionSave, LeaveDecisionRequest, LeaveRequestCreate,
    LeaveRequestCreated, LeaveRuleSave, UnpaidLeaveProcess,
)
from hrms.services.engine_config import LeaveEngineConfig, PayrollEngineConfig
from hrms.services.leave_admin_service import LeaveAdminService, serialize_request
from hrms.services.leave_service import LeaveService
from hrms.services.unit_of_work import UnitOfWork
from hrms.services.unpaid_leave_service import UnpaidLeaveService

router = APIRouter(prefix="/leave", tags=["leave"])


def _admin(uow: UnitOfWork, config: LeaveEngineConfig, actor: Actor) -> LeaveAdminService:
    return LeaveAdminService(uow, config, user_id=actor.id, user_role=actor.role.value)


# --- Requests ---

@router.post("/requests", status_code=status.HTTP_201_CREATED)
def create_leave_request(
    payload: LeaveRequestCreate,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(get_current_user),
):
    service = LeaveService(uow, config, user_id=actor.id, user_role=actor.role.value)
    request = service.create_request(**payload.model_dump())
    created = LeaveRequestCreated(id=request.id, duration_hours=request.duration_hours, status=request.status)
    return ApiResponse.ok(created)


@router.get("/requests")
def list_leave_requests(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    department_id: Optional[int] = None,
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_approver()),
):
    result = _admin(uow, config, actor).list_requests(
        status=status_filter,
        department_id=department_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        page_size=page_size,
    )
    return ApiResponse.ok(
        result["data"],
        metadata={"page": result["page"], "page_size": result["page_size"], "total": result["total"]},
    )


@router.get("/requests/{request_id}")
def get_leave_request(
    request_id: int,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_approver()),
):
    request = LeaveService(uow, config, user_id=actor.id).get_request(request_id)
    return ApiResponse.ok(serialize_request(request))


@router.post("/requests/{request_id}/decision")
def decide_leave_request(
    request_id: int,
    decision: LeaveDecisionRequest,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_approver()),
):
    service = LeaveService(uow, config, user_id=actor.id, user_role=actor.role.value)
    return ApiResponse.ok(service.decide(request_id, decision.action, decision.note))


# --- Calendar ---

@router.get("/calendar")
def calendar_feed(
    date_from: date = Query(alias="from"),
    date_to: date = Query(alias="to"),
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(get_current_user),
):
    return ApiResponse.ok(_admin(uow, config, actor).calendar_feed(date_from, date_to))


@router.put("/calendar/restrictions")
def save_restriction(
    payload: CalendarRestrictionSave,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_hr()),
):
    return ApiResponse.ok(_admin(uow, config, actor).save_restriction(payload.date, payload.type, payload.reason))


@router.delete("/calendar/restrictions/{restriction_id}")
def delete_restriction(
    restriction_id: int,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_hr()),
):
    affected = _admin(uow, config, actor).delete_restriction(restriction_id=restriction_id)
    return ApiResponse.ok({"affected_rows": affected})


@router.delete("/calendar/restrictions")
def delete_restriction_by_date(
    on_date: date = Query(alias="date"),
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_hr()),
):
    affected = _admin(uow, config, actor).delete_restriction(on_date=on_date)
    return ApiResponse.ok({"affected_rows": affected})


# --- Summaries ---

@router.get("/summary")
def leave_summary(
    year: Optional[int] = None,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_approver()),
):
    return ApiResponse.ok(_admin(uow, config, actor).leave_summary(year or date.today().year))


@router.get("/balances")
def employee_balances(
    year: Optional[int] = None,
    department_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_approver()),
):
    result = _admin(uow, config, actor).employee_balances(
        year or date.today().year, department_id=department_id, search=search, page=page, page_size=page_size
    )
    return ApiResponse.ok(
        result["data"],
        metadata={"year": result["year"], "page": result["page"], "page_size": result["page_size"],
                  "total": result["total"]},
    )


# --- Grade rules ---

@router.get("/rules")
def get_leave_rules(
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(get_current_user),
):
    return ApiResponse.ok(_admin(uow, config, actor).get_rules())


@router.put("/rules")
def save_leave_rule(
    payload: LeaveRuleSave,
    uow: UnitOfWork = Depends(get_uow),
    config: LeaveEngineConfig = Depends(get_leave_config),
    actor: Actor = Depends(require_payroll()),
):
    rule = _admin(uow, config, actor).save_rule(payload.grade_id, payload.annual_limit, payload.medical_limit)
    return ApiResponse.ok(rule, metadata={"message": "Leave rule saved successfully"})


# --- Unpaid leave ---

@router.get("/unpaid")
def list_unpaid_leaves(
    employee_id: Optional[int] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    uow: UnitOfWork = Depends(get_uow),
    config: PayrollEngineConfig = Depends(get_payroll_config),
    actor: Actor = Depends(require_payroll()),
):
    service = UnpaidLeaveService(uow, config, user_id=actor.id, user_role=actor.role.value)
    return ApiResponse.ok(service.list_unpaid_leaves(employee_id=employee_id, status=status_filter))


@router.post("/unpaid/{unpaid_leave_id}/process")
def process_unpaid_leave(
    unpaid_leave_id: int,
    payload: Optional[UnpaidLeaveProcess] = None,
    uow: UnitOfWork = Depends(get_uow),
    config: PayrollEngineConfig = Depends(get_payroll_config),
    actor: Actor = Depends(require_payroll()),
):
    service = UnpaidLeaveService(uow, config, user_id=actor.id, user_role=actor.role.value)
    amount = payload.deduction_amount if payload else None
    return ApiResponse.ok(service.process(unpaid_leave_id, deduction_amount=amount))
