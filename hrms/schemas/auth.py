from pydantic import BaseModel
from typing import Optional
import enum


class UserRole(str, enum.Enum):
    """
    Roles forwarded by the upstream auth gateway.

    - HR: leave decisions, rules, payroll and statutory processing
    - FINANCE: payroll, transfers and statutory processing
    - MANAGER: leave decisions for their team
    - EMPLOYEE: self-service (filing leave)
    """
    HR = "HR"
    FINANCE = "Finance"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"


class Actor(BaseModel):
    """The caller on whose behalf a request runs."""
    id: int
    role: UserRole
    name: Optional[str] = None
