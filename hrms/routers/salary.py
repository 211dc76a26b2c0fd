from fastapi import APIRouter, Depends, status

from hrms.core.schemas import ApiResponse
from hrms.dependencies import get_uow, require_payroll
from hrms.schemas.auth import Actor
from hrms.schemas.payroll import AllowanceCreate, BasicSalaryCreate, BonusCreate, DeductionCreate, OvertimeCreate
from hrms.services.salary_service import SalaryComponentService
from hrms.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/salary/employees/{employee_id}", tags=["salary"])


def get_salary_service(
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(require_payroll()),
) -> SalaryComponentService:
    return SalaryComponentService(uow, user_id=actor.id)


@router.get("")
def list_earnings(employee_id: int, service: SalaryComponentService = Depends(get_salary_service)):
    return ApiResponse.ok(service.list_earnings(employee_id))


@router.post("/basic", status_code=status.HTTP_201_CREATED)
def set_basic_salary(
    employee_id: int,
    payload: BasicSalaryCreate,
    service: SalaryComponentService = Depends(get_salary_service),
):
    return ApiResponse.ok(service.set_basic_salary(employee_id, payload.basic_salary, payload.effective_date))


@router.post("/allowances", status_code=status.HTTP_201_CREATED)
def add_allowance(
    employee_id: int,
    payload: AllowanceCreate,
    service: SalaryComponentService = Depends(get_salary_service),
):
    return ApiResponse.ok(service.add_allowance(
        employee_id,
        payload.name,
        payload.amount,
        effective_from=payload.effective_from,
        effective_to=payload.effective_to,
        status=payload.status.value,
    ))


@router.post("/bonuses", status_code=status.HTTP_201_CREATED)
def add_bonus(
    employee_id: int,
    payload: BonusCreate,
    service: SalaryComponentService = Depends(get_salary_service),
):
    return ApiResponse.ok(service.add_bonus(employee_id, payload.amount, payload.effective_date, name=payload.name))


@router.post("/deductions", status_code=status.HTTP_201_CREATED)
def add_deduction(
    employee_id: int,
    payload: DeductionCreate,
    service: SalaryComponentService = Depends(get_salary_service),
):
    return ApiResponse.ok(service.add_deduction(
        employee_id,
        payload.name,
        payload.effective_date,
        basis=payload.basis.value,
        amount=payload.amount,
        percent=payload.percent,
        status=payload.status.value,
    ))


@router.post("/overtime", status_code=status.HTTP_201_CREATED)
def add_overtime(
    employee_id: int,
    payload: OvertimeCreate,
    service: SalaryComponentService = Depends(get_salary_service),
):
    return ApiResponse.ok(service.add_overtime(employee_id, payload.ot_hours, payload.ot_rate, note=payload.note))
