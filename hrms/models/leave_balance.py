from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from hrms.database import Base

class LeaveBalance(Base):
    """
    Running total of days used per (employee, leave type, year).

    Only ever incremented; every increment has a matching LeaveBalanceEntry.
    """
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), index=True, nullable=False)
    year = Column(Integer, nullable=False)
    entitled_days = Column(Float, default=0.0, nullable=False)
    used_days = Column(Float, default=0.0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class LeaveBalanceEntry(Base):
    """Append-only ledger line: one per approved leave request."""
    __tablename__ = "leave_balance_entries"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False)
    delta_days = Column(Float, nullable=False)
    source_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
