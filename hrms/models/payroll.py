from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base
import enum

class TransferStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"

class PayrollTransfer(Base):
    """Point-in-time snapshot of one employee's net pay for a period."""
    __tablename__ = "payroll_transfers"
    __table_args__ = (
        UniqueConstraint("employee_id", "period_year", "period_month", name="uq_transfer_employee_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    gross_salary = Column(Float, nullable=False)
    total_deductions = Column(Float, nullable=False)
    net_salary = Column(Float, nullable=False)
    payment_date = Column(Date, nullable=True)
    status = Column(String, default=TransferStatus.PENDING.value, nullable=False, index=True)
    processed_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee")
