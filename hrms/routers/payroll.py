from typing import Optional

from fastapi import APIRouter, Depends, Query

from hrms.core.schemas import ApiResponse
from hrms.dependencies import get_payroll_config, get_uow, require_payroll
from hrms.schemas.auth import Actor
from hrms.schemas.payroll import PeriodBatchRequest, SalaryTransferRequest
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.payroll_service import PayrollService
from hrms.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/payroll", tags=["payroll"])


def get_payroll_service(
    uow: UnitOfWork = Depends(get_uow),
    config: PayrollEngineConfig = Depends(get_payroll_config),
    actor: Actor = Depends(require_payroll()),
) -> PayrollService:
    return PayrollService(uow, config, user_id=actor.id, user_role=actor.role.value)


@router.get("/payslip")
def get_payslip(
    employee_id: int,
    year: int,
    month: int,
    service: PayrollService = Depends(get_payroll_service),
):
    """Earnings, deductions, employer contributions and net pay for one employee."""
    return ApiResponse.ok(service.payslip(employee_id, year, month))


@router.get("/department-summary")
def department_summary(
    year: int,
    month: int,
    department_id: Optional[int] = None,
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.department_summary(year, month, department_id))


@router.get("/dashboard")
def dashboard_summary(
    year: Optional[int] = None,
    month: Optional[int] = None,
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.dashboard_summary(year, month))


@router.get("/available-months")
def available_months(
    employee_id: Optional[int] = None,
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.available_months(employee_id))


# --- Transfers ---

@router.get("/transfers")
def list_transfers(
    year: Optional[int] = None,
    month: Optional[int] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.list_transfers(year, month, status_filter))


@router.get("/transfers/overview")
def transfer_overview(
    year: int,
    month: int,
    page: int = 1,
    limit: int = 10,
    service: PayrollService = Depends(get_payroll_service),
):
    result = service.transfer_overview(year, month, page, limit)
    return ApiResponse.ok(result["data"], metadata={"pagination": result["pagination"]})


@router.post("/transfers/process")
def process_salary_transfer(
    payload: SalaryTransferRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    """Completed transfers for the batch; employees already transferred are skipped."""
    return ApiResponse.ok(service.process_salary_transfer(
        payload.employee_ids, payload.year, payload.month, payload.payment_date
    ))


@router.post("/transfers/initiate")
def initiate_bank_transfer(
    payload: PeriodBatchRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.initiate_bank_transfer(payload.employee_ids, payload.year, payload.month))


@router.post("/transfers/complete")
def complete_bank_transfer(
    payload: SalaryTransferRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    return ApiResponse.ok(service.complete_bank_transfer(
        payload.employee_ids, payload.year, payload.month, payload.payment_date
    ))
