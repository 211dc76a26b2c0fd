"""
Pay inputs consumed by the payroll calculator.

Salary rows are versioned by insertion order (latest id wins). Allowances are
filtered into a period by effective-window overlap; overtime, bonuses and
deductions by the calendar month of their timestamp/date.
"""
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from hrms.database import Base
import enum

class ComponentStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"

class DeductionBasis(str, enum.Enum):
    FIXED = "Fixed"
    PERCENT = "Percent"

class Salary(Base):
    __tablename__ = "salaries"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    basic_salary = Column(Float, nullable=False)
    effective_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Allowance(Base):
    __tablename__ = "allowances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String, default=ComponentStatus.ACTIVE.value, nullable=False)
    effective_from = Column(Date, nullable=True)  # open-ended when NULL
    effective_to = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Bonus(Base):
    __tablename__ = "bonuses"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    name = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    effective_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Deduction(Base):
    __tablename__ = "deductions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    basis = Column(String, default=DeductionBasis.FIXED.value, nullable=False)
    amount = Column(Float, nullable=True)
    percent = Column(Float, nullable=True)
    status = Column(String, default=ComponentStatus.ACTIVE.value, nullable=False)
    effective_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class OvertimeAdjustment(Base):
    __tablename__ = "overtime_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), index=True, nullable=False)
    ot_hours = Column(Float, nullable=False)
    ot_rate = Column(Float, nullable=False)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
