from datetime import date

from hrms.core.init_system import init_system_data
from hrms.database import SessionLocal, init_db
from hrms.models import (
    Allowance, Department, Employee, EtfEpfConfig, Grade, LeaveRule, Salary,
)


def seed():
    init_db()
    init_system_data()

    db = SessionLocal()
    try:
        # 1. Department and grade
        dept = db.query(Department).filter(Department.code == "ENG").first()
        if not dept:
            dept = Department(name="Engineering", code="ENG")
            db.add(dept)
            db.commit()
            db.refresh(dept)
            print(f"Created department: {dept.name}")

        grade = db.query(Grade).filter(Grade.name == "G1").first()
        if not grade:
            grade = Grade(name="G1")
            db.add(grade)
            db.commit()
            db.refresh(grade)
            db.add(LeaveRule(grade_id=grade.id, annual_limit=14.0, medical_limit=7.0))
            db.commit()
            print(f"Created grade {grade.name} with 14 annual / 7 medical days")

        # 2. One payable employee
        employee = db.query(Employee).filter(Employee.employee_code == "EMP001").first()
        if not employee:
            employee = Employee(
                employee_code="EMP001",
                full_name="Nimal Perera",
                email="nimal@example.com",
                department_id=dept.id,
                grade_id=grade.id,
                joining_date=date(2022, 1, 10),
                epf_no="EPF-0001",
            )
            db.add(employee)
            db.commit()
            db.refresh(employee)

            db.add_all([
                Salary(employee_id=employee.id, basic_salary=50000.0, effective_date=employee.joining_date),
                Allowance(employee_id=employee.id, name="Transport", amount=2000.0),
                EtfEpfConfig(employee_id=employee.id, epf_number=employee.epf_no),
            ])
            db.commit()
            print(f"Employee {employee.employee_code} created with basic 50000 and allowance 2000")
        else:
            print(f"Employee {employee.employee_code} already exists")

    finally:
        db.close()


if __name__ == "__main__":
    seed()
