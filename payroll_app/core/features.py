"""
Feature flag capability checks.

Routers never read settings directly; they receive a FeatureFlags
instance through the `get_feature_flags` dependency and ask
`is_enabled(flag)`.
"""
from typing import Any, Dict, Mapping

from payroll_app.core.config import FeatureSettings

# Frontend flag name -> FeatureSettings attribute
FLAG_FIELDS: Dict[str, str] = {
    "payslipView": "payslip_view",
    "employeeManagement": "employee_management",
    "payrollProcessing": "payroll_processing",
    "onDemandPay": "on_demand_pay",
    "wellnessProgram": "wellness_program",
}


FEATURE_DESCRIPTIONS: Dict[str, str] = {
    "payslipView": "Basic payslip viewing functionality",
    "employeeManagement": "Core employee management functionality",
    "payrollProcessing": "Basic payroll processing capabilities",
    "onDemandPay": "On-demand pay access (advanced feature)",
    "wellnessProgram": "Employee wellness program (advanced feature)",
}


class FeatureFlags:
    def __init__(self, flags: Mapping[str, bool]):
        unknown = set(flags) - set(FLAG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown feature flags: {sorted(unknown)}")
        self._flags = dict(flags)

    @classmethod
    def from_settings(cls, features: FeatureSettings) -> "FeatureFlags":
        return cls({flag: getattr(features, field) for flag, field in FLAG_FIELDS.items()})

    def is_enabled(self, flag: str) -> bool:
        # Unknown flags are off
        return self._flags.get(flag, False)

    def as_dict(self) -> Dict[str, bool]:
        return dict(self._flags)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Every known flag with its state, for clients that toggle UI on them."""
        return {
            flag: {"enabled": self.is_enabled(flag), "description": FEATURE_DESCRIPTIONS[flag]}
            for flag in FLAG_FIELDS
        }
