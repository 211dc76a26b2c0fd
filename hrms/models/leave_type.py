from sqlalchemy import Column, Integer, String
from hrms.database import Base
import enum

class LeaveCategory(str, enum.Enum):
    """
    Entitlement bucket a leave type counts against.

    ANNUAL and MEDICAL are capped by the grade's LeaveRule; OTHER is never
    breach-checked.
    """
    ANNUAL = "ANNUAL"
    MEDICAL = "MEDICAL"
    OTHER = "OTHER"

class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)  # e.g. "Personal", "Sick", "Maternity"
    category = Column(String, default=LeaveCategory.OTHER.value, nullable=False)
