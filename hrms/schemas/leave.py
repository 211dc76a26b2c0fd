from pydantic import BaseModel, Field
from datetime import date, time
from typing import Optional

from hrms.models.leave_request import LeaveAction


class LeaveRequestCreate(BaseModel):
    employee_id: int = Field(gt=0)
    leave_type_id: int = Field(gt=0)
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    # Explicit duration (e.g. 4.0 for a half day) overrides the computed span
    duration_hours: Optional[float] = Field(default=None, ge=0)
    reason: Optional[str] = None


class LeaveRequestCreated(BaseModel):
    id: int
    duration_hours: float
    status: str


class LeaveDecisionRequest(BaseModel):
    action: LeaveAction
    note: Optional[str] = None


class CalendarRestrictionSave(BaseModel):
    date: date
    type: str = Field(min_length=1)
    reason: Optional[str] = None


class LeaveRuleSave(BaseModel):
    grade_id: int = Field(gt=0)
    annual_limit: float = Field(ge=0)
    medical_limit: float = Field(ge=0)


class UnpaidLeaveProcess(BaseModel):
    deduction_amount: Optional[float] = Field(default=None, ge=0)

