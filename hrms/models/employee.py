"""
Employee directory models.

The payroll core only reads these: department, grade and joining date drive
leave entitlement and period eligibility.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from hrms.database import Base


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Grade(Base):
    __tablename__ = "grades"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)

    employees = relationship("Employee", back_populates="grade")
    leave_rule = relationship("LeaveRule", back_populates="grade", uselist=False)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_code = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    designation = Column(String, nullable=True)

    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    grade_id = Column(Integer, ForeignKey("grades.id"), nullable=True)

    joining_date = Column(Date, nullable=True)
    status = Column(String, default=EmployeeStatus.ACTIVE.value, nullable=False)
    epf_no = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    department = relationship("Department", back_populates="employees")
    grade = relationship("Grade", back_populates="employees")

    def __repr__(self):
        return f"<Employee {self.employee_code}: {self.full_name}>"
