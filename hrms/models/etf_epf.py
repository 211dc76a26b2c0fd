from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base

class EtfEpfConfig(Base):
    """Per-employee statutory rates (percent). NULL rates fall back to configured defaults."""
    __tablename__ = "employee_etf_epf"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), unique=True, nullable=False)
    epf_number = Column(String, nullable=False)
    etf_number = Column(String, nullable=True)
    epf_effective_date = Column(Date, nullable=True)
    etf_effective_date = Column(Date, nullable=True)
    epf_status = Column(String, default="Active")
    etf_status = Column(String, default="Active")
    epf_contribution_rate = Column(Float, nullable=True)  # employee share
    employer_epf_rate = Column(Float, nullable=True)
    etf_contribution_rate = Column(Float, nullable=True)  # employer only
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee")

class EtfEpfTransaction(Base):
    """Immutable record of one period's statutory calculation."""
    __tablename__ = "payroll_etf_epf_transactions"
    __table_args__ = (
        UniqueConstraint("employee_id", "period_year", "period_month", name="uq_etf_epf_employee_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    gross_salary = Column(Float, nullable=False)
    employee_epf_amount = Column(Float, nullable=False)
    epf_employer_share = Column(Float, nullable=False)
    employer_etf_amount = Column(Float, nullable=False)
    processed_by = Column(Integer, nullable=True)
    processed_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee")
