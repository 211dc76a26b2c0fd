from datetime import date, datetime, timezone

import pytest

from hrms.core.exceptions import InvalidPeriodError
from hrms.models import Allowance, Bonus, Deduction, OvertimeAdjustment, Salary, UnpaidLeave
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.payroll_calculator import PayrollCalculator


@pytest.fixture
def calculator(db_session):
    return PayrollCalculator(db_session, PayrollEngineConfig())


def test_gross_is_basic_plus_active_allowances(calculator, employee, pay_inputs):
    pay_inputs(employee, basic=50000.0, allowance=2000.0)
    gross = calculator.compute_gross(employee.id, 2024, 3)
    assert gross.basic == 50000.0
    assert gross.allowances == 2000.0
    assert gross.gross == 52000.0


def test_latest_salary_row_wins(calculator, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0)
    db_session.add(Salary(employee_id=employee.id, basic_salary=55000.0, effective_date=date(2024, 1, 1)))
    db_session.commit()
    assert calculator.basic_salary(employee.id) == 55000.0


def test_allowance_window_and_status(calculator, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=10000.0)
    db_session.add_all([
        Allowance(employee_id=employee.id, name="Housing", amount=1000.0,
                  effective_from=date(2024, 3, 15), effective_to=None),
        Allowance(employee_id=employee.id, name="Expired", amount=700.0,
                  effective_from=date(2023, 1, 1), effective_to=date(2024, 2, 29)),
        Allowance(employee_id=employee.id, name="Future", amount=300.0,
                  effective_from=date(2024, 4, 1)),
        Allowance(employee_id=employee.id, name="Paused", amount=250.0, status="Inactive"),
    ])
    db_session.commit()

    assert calculator.compute_gross(employee.id, 2024, 3).allowances == 1000.0


def test_overtime_and_bonuses_fall_in_their_month(calculator, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=10000.0)
    db_session.add_all([
        OvertimeAdjustment(employee_id=employee.id, ot_hours=4.0, ot_rate=250.0,
                           created_at=datetime(2024, 3, 10, 12, 0)),
        OvertimeAdjustment(employee_id=employee.id, ot_hours=10.0, ot_rate=250.0,
                           created_at=datetime(2024, 4, 1, 0, 0)),
        Bonus(employee_id=employee.id, amount=5000.0, effective_date=date(2024, 3, 31)),
        Bonus(employee_id=employee.id, amount=9000.0, effective_date=date(2024, 2, 1)),
    ])
    db_session.commit()

    gross = calculator.compute_gross(employee.id, 2024, 3)
    assert gross.overtime == 1000.0
    assert gross.bonuses == 5000.0
    assert gross.gross == 16000.0


def test_malformed_employee_id_yields_zeros(calculator, db_session):
    assert calculator.compute_gross("abc", 2024, 3).gross == 0.0
    assert calculator.compute_gross(-4, 2024, 3).gross == 0.0
    assert calculator.compute_deductions(None, 2024, 3).total == 0.0


def test_invalid_period_raises(calculator, employee):
    with pytest.raises(InvalidPeriodError):
        calculator.compute_gross(employee.id, 2024, 13)


def test_deductions_fixed_percent_and_epf(calculator, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0, allowance=2000.0)
    db_session.add_all([
        Deduction(employee_id=employee.id, name="Loan", basis="Fixed", amount=500.0,
                  effective_date=date(2024, 3, 1)),
        Deduction(employee_id=employee.id, name="Welfare", basis="Percent", percent=2.0,
                  effective_date=date(2024, 3, 20)),
        # Statutory EPF is computed from rates, so named EPF rows are ignored
        Deduction(employee_id=employee.id, name="EPF Manual", basis="Fixed", amount=4000.0,
                  effective_date=date(2024, 3, 1)),
        Deduction(employee_id=employee.id, name="Old Loan", basis="Fixed", amount=800.0,
                  effective_date=date(2024, 2, 1)),
        Deduction(employee_id=employee.id, name="Stopped", basis="Fixed", amount=90.0,
                  status="Inactive", effective_date=date(2024, 3, 1)),
    ])
    db_session.commit()

    deductions = calculator.compute_deductions(employee.id, 2024, 3)
    assert [line.name for line in deductions.regular] == ["Loan", "Welfare"]
    assert deductions.regular_total == 1500.0
    assert deductions.epf_employee_amount == 4000.0
    assert deductions.total == 5500.0

    snapshot = calculator.compute_net(employee.id, 2024, 3)
    assert snapshot["net_salary"] == 52000.0 - 5500.0


def test_unpaid_leave_counts_in_processing_month(calculator, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=30000.0)
    db_session.add_all([
        UnpaidLeave(employee_id=employee.id, total_days=1.0, status="Processed", deduction_amount=1000.0,
                    start_date=date(2024, 2, 20), end_date=date(2024, 2, 20),
                    processed_at=datetime(2024, 3, 2, 10, 0, tzinfo=timezone.utc)),
        UnpaidLeave(employee_id=employee.id, total_days=2.0, status="Pending", deduction_amount=None),
        UnpaidLeave(employee_id=employee.id, total_days=1.0, status="Processed", deduction_amount=700.0,
                    processed_at=datetime(2024, 4, 1, 0, 0, tzinfo=timezone.utc)),
    ])
    db_session.commit()

    assert calculator.compute_deductions(employee.id, 2024, 3).unpaid_leave_total == 1000.0
    assert calculator.compute_deductions(employee.id, 2024, 2).unpaid_leave_total == 0.0


def test_rates_fall_back_to_defaults(calculator, employee, pay_inputs):
    pay_inputs(employee, with_config=False)
    rates = calculator.get_rates(employee.id)
    assert (rates.epf_rate, rates.employer_epf_rate, rates.etf_rate) == (8.0, 12.0, 3.0)
    assert rates.configured is False


def test_configured_zero_rate_is_kept(calculator, employee, pay_inputs):
    pay_inputs(employee, basic=50000.0, epf_rate=0.0)
    assert calculator.get_rates(employee.id).epf_rate == 0.0
    assert calculator.compute_deductions(employee.id, 2024, 3).epf_employee_amount == 0.0
