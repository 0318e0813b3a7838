import io
from datetime import date
import pytest
from decimal import Decimal
from fastapi import status
from PyPDF2 import PdfReader

from payroll_app.core.features import FeatureFlags
from payroll_app.main import app


def _start_run(client, headers, month=1, year=2024):
    return client.post("/api/payroll/runs", headers=headers, json={"month": month, "year": year})


def test_start_run_returns_camel_case_summary(client, admin_headers, make_employee, standard_deductions):
    make_employee(salary="5000.00", deductions=standard_deductions)

    response = _start_run(client, admin_headers)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "completed"
    assert data["period"] == "January 2024"
    assert data["totalEmployees"] == 1
    assert data["totalGrossAmount"] == 5000.0
    assert data["totalDeductions"] == 800.0
    assert data["totalNetAmount"] == 4200.0
    assert data["totalAmount"] == 4200.0
    assert data["skippedEmployees"] == []


def test_duplicate_run_conflicts(client, admin_headers, make_employee):
    make_employee()
    assert _start_run(client, admin_headers).status_code == 201

    response = _start_run(client, admin_headers)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["errors"][0]["code"] == "DUPLICATE_RUN"


def test_failed_run_reports_skipped_employees(client, admin_headers, make_employee):
    broken = make_employee(salary="-10.00")

    response = _start_run(client, admin_headers, month=2)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "failed"
    assert data["skippedEmployees"][0]["employeeId"] == broken.id
    assert data["skippedEmployees"][0]["code"] == "INVALID_INPUT"


@pytest.mark.parametrize("payload", [{"month": 13, "year": 2024}, {"month": 0, "year": 2024}])
def test_invalid_period_is_unprocessable(client, admin_headers, payload):
    response = client.post("/api/payroll/runs", headers=admin_headers, json=payload)
    assert response.status_code == 422


def test_missing_body_field_is_unprocessable(client, admin_headers):
    response = client.post("/api/payroll/runs", headers=admin_headers, json={"month": 1})
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "year"


def test_list_and_get_runs(client, admin_headers, make_employee):
    make_employee()
    first = _start_run(client, admin_headers, month=1).json()
    second = _start_run(client, admin_headers, month=2).json()

    runs = client.get("/api/payroll/runs", headers=admin_headers).json()["runs"]
    assert [r["id"] for r in runs] == [second["id"], first["id"]]

    detail = client.get(f"/api/payroll/runs/{first['id']}", headers=admin_headers)
    assert detail.status_code == 200
    assert detail.json()["month"] == 1

    assert client.get("/api/payroll/runs/9999", headers=admin_headers).status_code == 404


def test_run_pdfs(client, admin_headers, make_employee):
    make_employee(first_name="Alice")
    make_employee(first_name="Bob")
    run = _start_run(client, admin_headers).json()

    batch = client.get(f"/api/payroll/runs/{run['id']}/payslips/pdf", headers=admin_headers)
    assert batch.status_code == 200
    assert batch.headers["content-type"] == "application/pdf"
    assert "attachment" in batch.headers["content-disposition"]
    pages = PdfReader(io.BytesIO(batch.content)).pages
    assert len(pages) == 2
    assert "Alice" in pages[0].extract_text()

    report = client.get(f"/api/payroll/runs/{run['id']}/report", headers=admin_headers)
    assert report.status_code == 200
    assert "Payroll Report" in PdfReader(io.BytesIO(report.content)).pages[0].extract_text()


def test_monthly_total(client, admin_headers, make_employee):
    today = date.today()
    make_employee(salary="1000.00")
    make_employee(salary="500.00", deductions=[{"deduction_type": "tax", "value": Decimal("50")}])
    _start_run(client, admin_headers, month=today.month, year=today.year)

    response = client.get("/api/payroll/monthly-total", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"total": 1450.0}


def test_payroll_routes_require_actor(client):
    response = client.get("/api/payroll/runs")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"


def test_payroll_routes_are_admin_only(client, employee_headers):
    response = _start_run(client, employee_headers(1))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_role_is_unauthenticated(client):
    response = client.get("/api/payroll/runs", headers={"X-Actor-Id": "x", "X-Actor-Role": "superuser"})
    assert response.status_code == 401


def test_disabled_feature_hides_payroll_routes(client, admin_headers):
    original = app.state.feature_flags
    app.state.feature_flags = FeatureFlags({**original.as_dict(), "payrollProcessing": False})
    try:
        response = client.get("/api/payroll/runs", headers=admin_headers)
    finally:
        app.state.feature_flags = original

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["errors"][0]["code"] == "FEATURE_DISABLED"
