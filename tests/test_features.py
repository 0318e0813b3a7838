import pytest

from payroll_app.core.config import FeatureSettings
from payroll_app.core.features import FeatureFlags


def test_flags_from_settings():
    flags = FeatureFlags.from_settings(FeatureSettings(payroll_processing=False, on_demand_pay=True))

    assert flags.is_enabled("payrollProcessing") is False
    assert flags.is_enabled("onDemandPay") is True
    assert flags.is_enabled("payslipView") is True


def test_unknown_flag_is_disabled():
    flags = FeatureFlags({"payslipView": True})
    assert flags.is_enabled("timeTravel") is False
    assert flags.is_enabled("employeeManagement") is False


def test_unknown_flag_names_are_rejected():
    with pytest.raises(ValueError):
        FeatureFlags({"timeTravel": True})


def test_as_dict_is_a_copy():
    flags = FeatureFlags({"payslipView": True})
    flags.as_dict()["payslipView"] = False
    assert flags.is_enabled("payslipView") is True


def test_describe_lists_every_flag():
    described = FeatureFlags({"payslipView": True}).describe()

    assert set(described) == {"payslipView", "employeeManagement", "payrollProcessing", "onDemandPay", "wellnessProgram"}
    assert described["payslipView"] == {"enabled": True, "description": "Basic payslip viewing functionality"}
    assert described["onDemandPay"]["enabled"] is False


def test_features_endpoint(client, employee_headers):
    response = client.get("/api/features", headers=employee_headers(1))

    assert response.status_code == 200
    features = response.json()["features"]
    assert features["payrollProcessing"]["enabled"] is True
    assert features["wellnessProgram"] == {
        "enabled": False,
        "description": "Employee wellness program (advanced feature)",
    }


def test_features_endpoint_requires_actor(client):
    assert client.get("/api/features").status_code == 401
