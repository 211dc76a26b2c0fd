from fastapi import APIRouter, Depends

from hrms.core.schemas import ApiResponse
from hrms.dependencies import get_payroll_config, get_uow, require_payroll
from hrms.schemas.auth import Actor
from hrms.schemas.payroll import (
    ContributionPreviewRequest, EtfEpfConfigCreate, EtfEpfConfigUpdate, PeriodBatchRequest,
)
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.etf_epf_service import EtfEpfService
from hrms.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/etf-epf", tags=["etf-epf"])


def get_etf_epf_service(
    uow: UnitOfWork = Depends(get_uow),
    config: PayrollEngineConfig = Depends(get_payroll_config),
    actor: Actor = Depends(require_payroll()),
) -> EtfEpfService:
    return EtfEpfService(uow, config, user_id=actor.id, user_role=actor.role.value)


# --- Processing ---

@router.get("/process-list")
def process_list(year: int, month: int, service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.process_list(year, month))


@router.post("/process")
def process_payments(payload: PeriodBatchRequest, service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.process_payments(payload.employee_ids, payload.year, payload.month))


@router.get("/payments/summary")
def payment_summary(service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.payment_summary())


@router.get("/payments/history")
def payment_history(year: int, month: int, service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.payment_history(year, month))


@router.post("/calculate")
def calculate_contributions(
    payload: ContributionPreviewRequest,
    service: EtfEpfService = Depends(get_etf_epf_service),
):
    return ApiResponse.ok(service.calculate_contributions(payload.employee_id, payload.basic_salary))


# --- Config records ---

@router.get("/records")
def list_records(service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.list_records())


@router.get("/records/{record_id}")
def get_record(record_id: int, service: EtfEpfService = Depends(get_etf_epf_service)):
    return ApiResponse.ok(service.get_record(record_id))


@router.post("/records", status_code=201)
def create_record(payload: EtfEpfConfigCreate, service: EtfEpfService = Depends(get_etf_epf_service)):
    fields = payload.model_dump(exclude={"employee_id"})
    return ApiResponse.ok(service.create_record(payload.employee_id, **fields))


@router.patch("/records/{record_id}")
def update_record(
    record_id: int,
    payload: EtfEpfConfigUpdate,
    service: EtfEpfService = Depends(get_etf_epf_service),
):
    return ApiResponse.ok(service.update_record(record_id, **payload.model_dump(exclude_unset=True)))


@router.delete("/records/{record_id}")
def delete_record(record_id: int, service: EtfEpfService = Depends(get_etf_epf_service)):
    service.delete_record(record_id)
    return ApiResponse.ok({"deleted": record_id})
