import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from hrms.database import Base, get_db
from hrms.main import app
from hrms.models import (
    Allowance, Department, EmployeeStatus, Employee, EtfEpfConfig, Grade,
    LeaveCategory, LeaveRule, LeaveType, Salary,
)
from hrms.services.engine_config import LeaveEngineConfig
from hrms.services.unit_of_work import UnitOfWork
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ANNUAL_TYPE_ID = 1
MEDICAL_TYPE_ID = 2
CASUAL_TYPE_ID = 3

HR_HEADERS = {"X-User-ID": "100", "X-User-Role": "HR"}
FINANCE_HEADERS = {"X-User-ID": "200", "X-User-Role": "Finance"}
MANAGER_HEADERS = {"X-User-ID": "300", "X-User-Role": "Manager"}
EMPLOYEE_HEADERS = {"X-User-ID": "400", "X-User-Role": "Employee"}


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema per test.

    Services commit and roll back for real, so isolation comes from
    recreating the tables rather than from an outer transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def uow(db_session):
    return UnitOfWork(db_session)


@pytest.fixture(scope="function")
def leave_types(db_session):
    """Annual (1), Medical (2) and an uncapped Casual (3) leave type."""
    rows = [
        LeaveType(id=ANNUAL_TYPE_ID, name="Annual Leave", category=LeaveCategory.ANNUAL.value),
        LeaveType(id=MEDICAL_TYPE_ID, name="Medical Leave", category=LeaveCategory.MEDICAL.value),
        LeaveType(id=CASUAL_TYPE_ID, name="Casual Leave", category=LeaveCategory.OTHER.value),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture(scope="function")
def leave_config(db_session, leave_types):
    return LeaveEngineConfig.load(db_session)


@pytest.fixture(scope="function")
def department(db_session):
    dept = Department(name="Engineering", code="ENG")
    db_session.add(dept)
    db_session.commit()
    return dept


@pytest.fixture(scope="function")
def grade(db_session):
    g = Grade(name="G1")
    db_session.add(g)
    db_session.commit()
    return g


@pytest.fixture(scope="function")
def make_rule(db_session):
    def _make_rule(grade, annual_limit=14.0, medical_limit=7.0):
        rule = LeaveRule(grade_id=grade.id, annual_limit=annual_limit, medical_limit=medical_limit)
        db_session.add(rule)
        db_session.commit()
        return rule
    return _make_rule


@pytest.fixture(scope="function")
def make_employee(db_session, department, grade):
    counter = {"n": 0}

    def _make_employee(full_name=None, joining_date=date(2020, 1, 1), status=EmployeeStatus.ACTIVE.value,
                       grade_id=None, department_id=None, **kwargs):
        counter["n"] += 1
        emp = Employee(
            employee_code=f"EMP{counter['n']:03d}",
            full_name=full_name or f"Employee {counter['n']}",
            email=f"emp{counter['n']}@example.com",
            department_id=department_id or department.id,
            grade_id=grade_id or grade.id,
            joining_date=joining_date,
            status=status,
            **kwargs,
        )
        db_session.add(emp)
        db_session.commit()
        return emp
    return _make_employee


@pytest.fixture(scope="function")
def employee(make_employee):
    return make_employee(full_name="Nimal Perera")


@pytest.fixture(scope="function")
def pay_inputs(db_session):
    """Basic salary, optional whole-month allowance and optional ETF/EPF config."""
    def _pay_inputs(employee, basic=50000.0, allowance=None, with_config=True, **rates):
        db_session.add(Salary(employee_id=employee.id, basic_salary=basic, effective_date=date(2020, 1, 1)))
        if allowance is not None:
            db_session.add(Allowance(employee_id=employee.id, name="Transport", amount=allowance))
        if with_config:
            db_session.add(EtfEpfConfig(
                employee_id=employee.id,
                epf_number=f"EPF-{employee.id}",
                epf_contribution_rate=rates.get("epf_rate", 8.0),
                employer_epf_rate=rates.get("employer_epf_rate", 12.0),
                etf_contribution_rate=rates.get("etf_rate", 3.0),
            ))
        db_session.commit()
    return _pay_inputs


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
