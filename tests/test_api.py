from fastapi import status

from hrms.models import UnpaidLeave
from tests.conftest import (
    ANNUAL_TYPE_ID, EMPLOYEE_HEADERS, FINANCE_HEADERS, HR_HEADERS, MANAGER_HEADERS,
)


def _create_leave(client, employee, **overrides):
    payload = {
        "employee_id": employee.id,
        "leave_type_id": ANNUAL_TYPE_ID,
        "start_date": "2024-03-04",
        "end_date": "2024-03-04",
        "start_time": "09:00",
        "end_time": "13:00",
    }
    payload.update(overrides)
    return client.post("/api/leave/requests", json=payload, headers=EMPLOYEE_HEADERS)


# --- Actor context ---

def test_missing_actor_headers_is_401(client, leave_types):
    response = client.get("/api/leave/requests")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"


def test_unknown_role_is_401(client, leave_types):
    response = client.get("/api/leave/requests", headers={"X-User-ID": "1", "X-User-Role": "Intern"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_wrong_role_is_403(client, leave_types):
    response = client.get("/api/payroll/dashboard", headers=MANAGER_HEADERS)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "PERMISSION_DENIED"


# --- Leave ---

def test_create_and_approve_leave(client, employee, leave_types):
    created = _create_leave(client, employee)
    assert created.status_code == status.HTTP_201_CREATED
    body = created.json()
    assert body["success"] is True
    assert body["data"]["duration_hours"] == 4.0
    assert body["data"]["status"] == "PENDING"

    request_id = body["data"]["id"]
    decided = client.post(
        f"/api/leave/requests/{request_id}/decision",
        json={"action": "APPROVE", "note": "ok"},
        headers=MANAGER_HEADERS,
    )
    assert decided.status_code == status.HTTP_200_OK
    assert decided.json()["data"]["status"] == "APPROVED"

    again = client.post(
        f"/api/leave/requests/{request_id}/decision",
        json={"action": "REJECT"},
        headers=HR_HEADERS,
    )
    assert again.status_code == status.HTTP_409_CONFLICT
    error = again.json()["errors"][0]
    assert error["code"] == "ALREADY_DECIDED"
    assert error["details"]["status"] == "APPROVED"


def test_employee_cannot_decide(client, employee, leave_types):
    request_id = _create_leave(client, employee).json()["data"]["id"]
    response = client.post(
        f"/api/leave/requests/{request_id}/decision",
        json={"action": "APPROVE"},
        headers=EMPLOYEE_HEADERS,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_invalid_decision_action_is_422(client, employee, leave_types):
    request_id = _create_leave(client, employee).json()["data"]["id"]
    response = client.post(
        f"/api/leave/requests/{request_id}/decision",
        json={"action": "ESCALATE"},
        headers=HR_HEADERS,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["errors"][0]["field"] == "action"


def test_unknown_request_is_404(client, leave_types):
    response = client.get("/api/leave/requests/999", headers=HR_HEADERS)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["errors"][0]["code"] == "NOT_FOUND"


def test_breach_then_process_unpaid_leave(client, employee, leave_types, grade, make_rule, pay_inputs, db_session):
    make_rule(grade, annual_limit=1.0)
    pay_inputs(employee, basic=30000.0)
    request_id = _create_leave(client, employee, end_date="2024-03-05", start_time=None, end_time=None,
                               duration_hours=18.0).json()["data"]["id"]

    decided = client.post(f"/api/leave/requests/{request_id}/decision",
                          json={"action": "APPROVE"}, headers=HR_HEADERS).json()
    unpaid_id = decided["data"]["unpaid_leave_id"]
    assert db_session.get(UnpaidLeave, unpaid_id).total_days == 1.0

    listed = client.get("/api/leave/unpaid", params={"status": "Pending"}, headers=FINANCE_HEADERS)
    assert [row["id"] for row in listed.json()["data"]] == [unpaid_id]

    processed = client.post(f"/api/leave/unpaid/{unpaid_id}/process", json={}, headers=FINANCE_HEADERS)
    assert processed.status_code == status.HTTP_200_OK
    assert processed.json()["data"]["deduction_amount"] == 1000.0


# --- Payroll ---

def test_payslip_endpoint(client, employee, pay_inputs):
    pay_inputs(employee, basic=50000.0, allowance=2000.0)
    response = client.get(
        "/api/payroll/payslip",
        params={"employee_id": employee.id, "year": 2024, "month": 3},
        headers=FINANCE_HEADERS,
    )
    assert response.status_code == status.HTTP_200_OK
    summary = response.json()["data"]["summary"]
    assert summary == {"gross_salary": 52000.0, "total_deductions": 4000.0, "net_salary": 48000.0}


def test_invalid_period_is_400(client, employee, pay_inputs):
    response = client.get(
        "/api/payroll/payslip",
        params={"employee_id": employee.id, "year": 2024, "month": 13},
        headers=FINANCE_HEADERS,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"][0]["code"] == "INVALID_PERIOD"


def test_transfer_cycle_over_http(client, employee, pay_inputs):
    pay_inputs(employee, basic=50000.0)
    batch = {"employee_ids": [employee.id], "year": 2024, "month": 3}

    initiated = client.post("/api/payroll/transfers/initiate", json=batch, headers=FINANCE_HEADERS)
    assert initiated.json()["data"]["processed"] == [employee.id]

    completed = client.post("/api/payroll/transfers/complete", json=batch, headers=FINANCE_HEADERS)
    assert completed.json()["data"]["processed_count"] == 1

    processed = client.post("/api/payroll/transfers/process", json=batch, headers=HR_HEADERS)
    assert processed.json()["data"]["skipped_count"] == 1

    transfers = client.get("/api/payroll/transfers", params={"year": 2024, "month": 3}, headers=HR_HEADERS)
    rows = transfers.json()["data"]
    assert len(rows) == 1
    assert rows[0]["status"] == "Completed"


def test_empty_batch_is_422(client, leave_types):
    response = client.post(
        "/api/payroll/transfers/process",
        json={"employee_ids": [], "year": 2024, "month": 3},
        headers=FINANCE_HEADERS,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


# --- ETF/EPF and salary inputs ---

def test_salary_inputs_feed_etf_epf(client, employee):
    base = f"/api/salary/employees/{employee.id}"
    assert client.post(f"{base}/basic", json={"basic_salary": 50000.0},
                       headers=HR_HEADERS).status_code == status.HTTP_201_CREATED
    client.post(f"{base}/allowances", json={"name": "Transport", "amount": 2000.0}, headers=HR_HEADERS)

    record = client.post("/api/etf-epf/records", json={"employee_id": employee.id, "epf_number": "EPF-1"},
                         headers=HR_HEADERS)
    assert record.status_code == status.HTTP_201_CREATED

    result = client.post("/api/etf-epf/process", json={"employee_ids": [employee.id], "year": 2024, "month": 3},
                         headers=FINANCE_HEADERS)
    assert result.json()["data"]["processed"] == [employee.id]

    history = client.get("/api/etf-epf/payments/history", params={"year": 2024, "month": 3},
                         headers=FINANCE_HEADERS).json()["data"]
    assert history["totals"] == {
        "gross_salary": 52000.0,
        "employee_epf_amount": 4160.0,
        "epf_employer_share": 6240.0,
        "employer_etf_amount": 1560.0,
    }


def test_fixed_deduction_requires_amount(client, employee):
    response = client.post(
        f"/api/salary/employees/{employee.id}/deductions",
        json={"name": "Loan", "basis": "Fixed", "effective_date": "2024-03-01"},
        headers=HR_HEADERS,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


# --- Audit ---

def test_audit_log_listing(client, employee, leave_types):
    request_id = _create_leave(client, employee).json()["data"]["id"]
    client.post(f"/api/leave/requests/{request_id}/decision", json={"action": "REJECT"}, headers=HR_HEADERS)

    response = client.get("/api/audit-logs", params={"action": "DECIDE_LEAVE_REQUEST"}, headers=HR_HEADERS)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["metadata"]["pagination"]["total"] == 1
    assert body["data"][0]["entity_id"] == str(request_id)

    forbidden = client.get("/api/audit-logs", headers=FINANCE_HEADERS)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
