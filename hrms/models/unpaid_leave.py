from sqlalchemy import Column, Integer, String, Date, Float, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from hrms.database import Base
import enum

class UnpaidLeaveStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSED = "Processed"

class UnpaidLeave(Base):
    __tablename__ = "unpaid_leaves"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    total_days = Column(Float, nullable=False)  # the excess over entitlement, not the request span
    reason = Column(Text, nullable=True)
    status = Column(String, default=UnpaidLeaveStatus.PENDING.value, nullable=False, index=True)

    source_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=True)
    deduction_amount = Column(Float, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    processed_by_user_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
