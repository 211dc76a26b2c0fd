from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from hrms.models.salary_component import ComponentStatus, DeductionBasis


class PeriodBatchRequest(BaseModel):
    """Employees to act on for one (year, month) pay period."""
    employee_ids: List[int] = Field(min_length=1)
    year: int = Field(gt=0)
    month: int = Field(ge=1, le=12)


class SalaryTransferRequest(PeriodBatchRequest):
    payment_date: Optional[date] = None


class EtfEpfConfigCreate(BaseModel):
    employee_id: int = Field(gt=0)
    epf_number: Optional[str] = None
    etf_number: Optional[str] = None
    epf_effective_date: Optional[date] = None
    etf_effective_date: Optional[date] = None
    epf_status: Optional[str] = None
    etf_status: Optional[str] = None
    epf_contribution_rate: Optional[float] = Field(default=None, ge=0, le=100)
    employer_epf_rate: Optional[float] = Field(default=None, ge=0, le=100)
    etf_contribution_rate: Optional[float] = Field(default=None, ge=0, le=100)


class EtfEpfConfigUpdate(BaseModel):
    epf_number: Optional[str] = None
    etf_number: Optional[str] = None
    epf_effective_date: Optional[date] = None
    etf_effective_date: Optional[date] = None
    epf_status: Optional[str] = None
    etf_status: Optional[str] = None
    epf_contribution_rate: Optional[float] = Field(default=None, ge=0, le=100)
    employer_epf_rate: Optional[float] = Field(default=None, ge=0, le=100)
    etf_contribution_rate: Optional[float] = Field(default=None, ge=0, le=100)


class ContributionPreviewRequest(BaseModel):
    employee_id: int = Field(gt=0)
    basic_salary: float = Field(gt=0)


class BasicSalaryCreate(BaseModel):
    basic_salary: float = Field(ge=0)
    effective_date: Optional[date] = None


class AllowanceCreate(BaseModel):
    name: str = Field(min_length=1)
    amount: float = Field(ge=0)
    status: ComponentStatus = ComponentStatus.ACTIVE
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class BonusCreate(BaseModel):
    name: Optional[str] = None
    amount: float = Field(ge=0)
    effective_date: date


class DeductionCreate(BaseModel):
    name: str = Field(min_length=1)
    basis: DeductionBasis = DeductionBasis.FIXED
    amount: Optional[float] = Field(default=None, ge=0)
    percent: Optional[float] = Field(default=None, ge=0, le=100)
    status: ComponentStatus = ComponentStatus.ACTIVE
    effective_date: date


class OvertimeCreate(BaseModel):
    ot_hours: float = Field(ge=0)
    ot_rate: float = Field(ge=0)
    note: Optional[str] = None
