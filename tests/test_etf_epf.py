from datetime import date

import pytest

from hrms.core.exceptions import InvalidPeriodError, InvalidStateError, NotFoundError, ValidationError
from hrms.models import AuditLog, EtfEpfConfig, EtfEpfTransaction
from hrms.services.engine_config import PayrollEngineConfig
from hrms.services.etf_epf_service import EtfEpfService


@pytest.fixture
def etf_service(uow):
    return EtfEpfService(uow, PayrollEngineConfig(), user_id=200, user_role="Finance")


def test_process_records_contributions_on_gross(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0, allowance=2000.0)

    result = etf_service.process_payments([employee.id], 2024, 3)
    assert result["processed"] == [employee.id]
    assert result["processed_count"] == 1
    assert result["skipped_count"] == 0

    row = db_session.query(EtfEpfTransaction).one()
    assert row.gross_salary == 52000.0
    assert row.employee_epf_amount == 4160.0
    assert row.epf_employer_share == 6240.0
    assert row.employer_etf_amount == 1560.0
    assert row.processed_by == 200


def test_process_is_idempotent(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0)
    etf_service.process_payments([employee.id], 2024, 3)
    again = etf_service.process_payments([employee.id], 2024, 3)

    assert again["processed_count"] == 0
    assert again["skipped_count"] == 1
    assert db_session.query(EtfEpfTransaction).count() == 1


def test_duplicate_ids_in_one_batch(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0)
    result = etf_service.process_payments([employee.id, employee.id], 2024, 3)
    assert result["processed_count"] == 1
    assert result["skipped_count"] == 1
    assert db_session.query(EtfEpfTransaction).count() == 1


def test_missing_config_and_zero_gross_are_skipped(etf_service, make_employee, pay_inputs, db_session):
    no_config = make_employee()
    no_pay = make_employee()
    ok = make_employee()
    pay_inputs(no_config, basic=40000.0, with_config=False)
    db_session.add(EtfEpfConfig(employee_id=no_pay.id, epf_number="EPF-X"))
    db_session.commit()
    pay_inputs(ok, basic=40000.0)

    result = etf_service.process_payments([no_config.id, no_pay.id, ok.id], 2024, 3)
    assert result["processed"] == [ok.id]
    assert result["skipped_count"] == 2


def test_null_rates_use_defaults(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=10000.0, with_config=False)
    db_session.add(EtfEpfConfig(employee_id=employee.id, epf_number="EPF-1"))
    db_session.commit()

    etf_service.process_payments([employee.id], 2024, 3)
    row = db_session.query(EtfEpfTransaction).one()
    assert (row.employee_epf_amount, row.epf_employer_share, row.employer_etf_amount) == (800.0, 1200.0, 300.0)


def test_process_rejects_bad_input(etf_service, employee):
    with pytest.raises(ValidationError):
        etf_service.process_payments([], 2024, 3)
    with pytest.raises(InvalidPeriodError):
        etf_service.process_payments([employee.id], 2024, 0)


def test_process_is_audited(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=50000.0)
    etf_service.process_payments([employee.id], 2024, 3)
    log = db_session.query(AuditLog).filter(AuditLog.action == "PROCESS_ETF_EPF_PAYMENT").one()
    assert log.entity_id == str(employee.id)


def test_process_list_excludes_late_joiners_and_inactive(etf_service, make_employee, pay_inputs):
    current = make_employee(full_name="A Current", joining_date=date(2024, 3, 31))
    make_employee(full_name="B Late", joining_date=date(2024, 4, 1))
    make_employee(full_name="C Gone", status="Inactive")
    pay_inputs(current, basic=50000.0)

    rows = etf_service.process_list(2024, 3)
    assert [r["employee_id"] for r in rows] == [current.id]
    preview = rows[0]
    assert preview["has_config"] is True
    assert preview["epf_employee_amount"] == 4000.0
    assert preview["epf_employer_share"] == 6000.0
    assert preview["etf_employer_contribution"] == 1500.0


def test_record_crud(etf_service, employee, db_session):
    employee.epf_no = "EPF-777"
    db_session.commit()

    created = etf_service.create_record(employee.id, epf_contribution_rate=10.0)
    assert created["epf_number"] == "EPF-777"

    with pytest.raises(InvalidStateError):
        etf_service.create_record(employee.id, epf_number="EPF-778")

    updated = etf_service.update_record(created["id"], etf_contribution_rate=4.0, epf_number=None)
    assert updated["etf_contribution_rate"] == 4.0
    assert updated["epf_number"] == "EPF-777"

    etf_service.delete_record(created["id"])
    with pytest.raises(NotFoundError):
        etf_service.get_record(created["id"])


def test_calculate_contributions_requires_config(etf_service, employee, pay_inputs):
    with pytest.raises(NotFoundError):
        etf_service.calculate_contributions(employee.id, 50000.0)

    pay_inputs(employee, basic=50000.0)
    result = etf_service.calculate_contributions(employee.id, 50000.0)
    assert result["employee_epf"] == 4000.0


def test_payment_history_totals(etf_service, make_employee, pay_inputs):
    first = make_employee()
    second = make_employee()
    pay_inputs(first, basic=50000.0)
    pay_inputs(second, basic=25000.0)
    etf_service.process_payments([first.id, second.id], 2024, 3)

    history = etf_service.payment_history(2024, 3)
    assert len(history["data"]) == 2
    assert history["totals"]["gross_salary"] == 75000.0


def test_half_cent_contributions_round_up(etf_service, employee, pay_inputs, db_session):
    pay_inputs(employee, basic=1001.0, employer_epf_rate=12.5)

    etf_service.process_payments([employee.id], 2024, 3)

    row = db_session.query(EtfEpfTransaction).one()
    assert row.epf_employer_share == 125.13
    assert row.employee_epf_amount == 80.08
    assert row.employer_etf_amount == 30.03
