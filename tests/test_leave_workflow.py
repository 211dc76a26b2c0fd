from datetime import date, time

import pytest

from hrms.core.exceptions import AlreadyDecidedError, NotFoundError, ValidationError
from hrms.models import AuditLog, LeaveBalance, LeaveBalanceEntry, LeaveCategory, LeaveRequest, UnpaidLeave
from hrms.services.engine_config import LeaveEngineConfig
from hrms.services.leave_service import (
    _ENTITLEMENT_FIELDS, LeaveService, calculate_full_days, compute_duration_hours, hours_to_days,
)
from tests.conftest import ANNUAL_TYPE_ID, CASUAL_TYPE_ID, MEDICAL_TYPE_ID

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)


@pytest.fixture
def leave_service(uow, leave_config):
    return LeaveService(uow, leave_config, user_id=300, user_role="Manager")


def _seed_used(db, employee, leave_type_id, used, year=2024):
    db.add(LeaveBalance(employee_id=employee.id, leave_type_id=leave_type_id, year=year, used_days=used))
    db.commit()


def _file(service, employee, leave_type_id=ANNUAL_TYPE_ID, **kwargs):
    kwargs.setdefault("start_date", MONDAY)
    kwargs.setdefault("end_date", TUESDAY)
    return service.create_request(employee.id, leave_type_id, **kwargs)


# --- Duration ---

def test_half_day_duration():
    assert compute_duration_hours(MONDAY, MONDAY, "09:00", "13:00") == 4.0


def test_default_times_span_one_work_day():
    assert compute_duration_hours(MONDAY, MONDAY) == 9.0


def test_multi_day_span_is_naive_elapsed_time():
    """Monday 09:00 to Tuesday 18:00 counts the overnight hours too."""
    assert compute_duration_hours(MONDAY, TUESDAY) == 33.0


def test_inverted_span_floors_at_zero():
    assert compute_duration_hours(TUESDAY, MONDAY, time(9, 0), time(18, 0)) == 0.0


def test_hours_to_days_uses_configured_work_day():
    assert hours_to_days(18.0, LeaveEngineConfig(work_hours_per_day=9.0)) == 2.0
    assert hours_to_days(16.0, LeaveEngineConfig(work_hours_per_day=8.0)) == 2.0


def test_calculate_full_days():
    assert calculate_full_days(MONDAY, TUESDAY) == 2
    assert calculate_full_days(TUESDAY, MONDAY) == 0
    assert calculate_full_days(None, MONDAY) == 0


# --- Creation ---

def test_create_request_computes_duration(leave_service, employee):
    request = _file(leave_service, employee, start_date=MONDAY, end_date=MONDAY,
                    start_time="09:00", end_time="13:00")
    assert request.status == "PENDING"
    assert request.duration_hours == 4.0
    assert request.department_id == employee.department_id


def test_explicit_duration_is_stored_verbatim(leave_service, employee):
    request = _file(leave_service, employee, duration_hours=4.0)
    assert request.duration_hours == 4.0


def test_create_request_rejects_negative_duration(leave_service, employee, db_session):
    with pytest.raises(ValidationError):
        _file(leave_service, employee, duration_hours=-1.0)
    assert db_session.query(LeaveRequest).count() == 0


def test_create_request_unknown_employee(leave_service, leave_types):
    with pytest.raises(NotFoundError):
        leave_service.create_request(999, ANNUAL_TYPE_ID, MONDAY, MONDAY)


# --- Decisions ---

def test_approve_adds_to_balance_and_ledger(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=18.0)
    result = leave_service.decide(request.id, "APPROVE")

    assert result["status"] == "APPROVED"
    assert result["unpaid_leave_id"] is None
    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 2.0
    assert leave_service.ledger_total(employee.id, ANNUAL_TYPE_ID, 2024) == 2.0

    second = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(second.id, "APPROVE")
    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 3.0
    assert leave_service.ledger_total(employee.id, ANNUAL_TYPE_ID, 2024) == 3.0
    assert db_session.query(LeaveBalance).count() == 1


def test_breach_files_unpaid_leave(leave_service, employee, grade, make_rule, db_session):
    """Limit 14, 13 already used, 2 more approved: 1 day over."""
    make_rule(grade, annual_limit=14.0)
    _seed_used(db_session, employee, ANNUAL_TYPE_ID, 13.0)

    request = _file(leave_service, employee, duration_hours=18.0)
    result = leave_service.decide(request.id, "APPROVE")

    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 15.0
    unpaid = db_session.get(UnpaidLeave, result["unpaid_leave_id"])
    assert unpaid.total_days == 1.0
    assert unpaid.status == "Pending"
    assert unpaid.source_request_id == request.id
    assert unpaid.reason == "Annual Leave limit (14 days) exceeded by 1.00 days by this request."


def test_zero_limit_never_breaches(leave_service, employee, grade, make_rule, db_session):
    make_rule(grade, annual_limit=0.0)
    _seed_used(db_session, employee, ANNUAL_TYPE_ID, 40.0)

    request = _file(leave_service, employee, duration_hours=18.0)
    assert leave_service.decide(request.id, "APPROVE")["unpaid_leave_id"] is None
    assert db_session.query(UnpaidLeave).count() == 0


def test_excess_within_tolerance_is_ignored(leave_service, employee, grade, make_rule, db_session):
    make_rule(grade, annual_limit=14.0)
    _seed_used(db_session, employee, ANNUAL_TYPE_ID, 13.0)

    # 9.09h / 9 = 1.01 days; total 14.01 sits on the tolerance boundary
    request = _file(leave_service, employee, duration_hours=9.09)
    assert leave_service.decide(request.id, "APPROVE")["unpaid_leave_id"] is None


def test_medical_limit_applies_to_medical_type(leave_service, employee, grade, make_rule, db_session):
    make_rule(grade, annual_limit=14.0, medical_limit=7.0)
    _seed_used(db_session, employee, MEDICAL_TYPE_ID, 7.0)

    request = _file(leave_service, employee, MEDICAL_TYPE_ID, duration_hours=9.0)
    result = leave_service.decide(request.id, "APPROVE")

    unpaid = db_session.get(UnpaidLeave, result["unpaid_leave_id"])
    assert unpaid.total_days == 1.0
    assert unpaid.reason.startswith("Medical Leave limit (7 days)")


def test_breach_check_is_per_type(leave_service, employee, grade, make_rule, db_session):
    """Annual usage over its limit does not spill into a medical approval."""
    make_rule(grade, annual_limit=14.0, medical_limit=7.0)
    _seed_used(db_session, employee, ANNUAL_TYPE_ID, 20.0)

    request = _file(leave_service, employee, MEDICAL_TYPE_ID, duration_hours=9.0)
    assert leave_service.decide(request.id, "APPROVE")["unpaid_leave_id"] is None


def test_uncapped_type_never_breaches(leave_service, employee, grade, make_rule, db_session):
    make_rule(grade, annual_limit=1.0, medical_limit=1.0)
    request = _file(leave_service, employee, CASUAL_TYPE_ID, duration_hours=90.0)
    assert leave_service.decide(request.id, "APPROVE")["unpaid_leave_id"] is None
    assert leave_service.used_days(employee.id, CASUAL_TYPE_ID, 2024) == 10.0


def test_each_breaching_approval_files_a_new_row(leave_service, employee, grade, make_rule, db_session):
    make_rule(grade, annual_limit=14.0)
    _seed_used(db_session, employee, ANNUAL_TYPE_ID, 14.0)

    first = _file(leave_service, employee, duration_hours=9.0)
    second = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(first.id, "APPROVE")
    leave_service.decide(second.id, "APPROVE")

    rows = db_session.query(UnpaidLeave).order_by(UnpaidLeave.id).all()
    assert [r.total_days for r in rows] == [1.0, 2.0]
    assert [r.source_request_id for r in rows] == [first.id, second.id]


def test_second_decision_is_rejected_without_writes(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(request.id, "APPROVE")
    audits_before = db_session.query(AuditLog).count()

    with pytest.raises(AlreadyDecidedError) as exc:
        leave_service.decide(request.id, "REJECT")
    assert exc.value.error_code == "ALREADY_DECIDED"
    assert exc.value.status_code == 409

    assert db_session.get(LeaveRequest, request.id).status == "APPROVED"
    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 1.0
    assert db_session.query(LeaveBalanceEntry).count() == 1
    assert db_session.query(AuditLog).count() == audits_before


def test_respond_updates_note_only(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(request.id, "APPROVE")

    result = leave_service.decide(request.id, "RESPOND", note="Enjoy the break")
    assert result["status"] == "APPROVED"
    assert result["message"] == "Response saved"

    stored = db_session.get(LeaveRequest, request.id)
    assert stored.decision_note == "Enjoy the break"
    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 1.0


def test_reject_has_no_balance_side_effects(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=18.0)
    result = leave_service.decide(request.id, "REJECT", note="Peak season")

    assert result["status"] == "REJECTED"
    assert db_session.query(LeaveBalance).count() == 0
    assert db_session.query(LeaveBalanceEntry).count() == 0
    assert db_session.query(UnpaidLeave).count() == 0


def test_decide_unknown_request(leave_service, leave_types):
    with pytest.raises(NotFoundError):
        leave_service.decide(12345, "APPROVE")


def test_decide_unknown_action(leave_service, employee):
    request = _file(leave_service, employee)
    with pytest.raises(ValidationError):
        leave_service.decide(request.id, "ESCALATE")


def test_decision_is_audited(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(request.id, "APPROVE", note="ok")

    log = db_session.query(AuditLog).filter(AuditLog.action == "DECIDE_LEAVE_REQUEST").one()
    assert log.entity_id == str(request.id)
    assert log.user_id == 300
    assert log.before_state["status"] == "PENDING"
    assert log.after_state["status"] == "APPROVED"


def test_custom_work_day_changes_day_conversion(uow, employee, leave_types):
    config = LeaveEngineConfig(
        work_hours_per_day=8.0,
        leave_categories=LeaveEngineConfig.load(uow.db).leave_categories,
    )
    service = LeaveService(uow, config, user_id=1)
    request = _file(service, employee, duration_hours=16.0)
    service.decide(request.id, "APPROVE")
    assert service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 2.0


def test_empty_respond_note_keeps_previous_note(leave_service, employee, db_session):
    request = _file(leave_service, employee, duration_hours=9.0)
    leave_service.decide(request.id, "APPROVE", note="Approved for travel")
    leave_service.decide(request.id, "RESPOND", note="")

    assert db_session.get(LeaveRequest, request.id).decision_note == "Approved for travel"


def test_half_hundredth_day_delta_rounds_up(leave_service, employee):
    request = _file(leave_service, employee, duration_hours=1.125)
    leave_service.decide(request.id, "APPROVE")

    assert leave_service.used_days(employee.id, ANNUAL_TYPE_ID, 2024) == 0.13
    assert leave_service.ledger_total(employee.id, ANNUAL_TYPE_ID, 2024) == 0.13


def test_every_leave_category_has_an_entitlement_mapping():
    assert set(_ENTITLEMENT_FIELDS) == set(LeaveCategory)
    assert _ENTITLEMENT_FIELDS[LeaveCategory.OTHER] is None
