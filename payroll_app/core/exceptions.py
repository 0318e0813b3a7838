from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class InvalidInputError(AppException):
    """Malformed numeric input: negative or non-finite amounts, out-of-range rates."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="INVALID_INPUT",
            details=details
        )


class DuplicateRunError(AppException):
    def __init__(self, month: int, year: int):
        super().__init__(
            message=f"Payroll for {month}/{year} has already been processed or is in progress",
            status_code=409,
            error_code="DUPLICATE_RUN",
            details={"month": month, "year": year}
        )


class PartialRunFailure(AppException):
    """
    Some employees' payslips could not be built. The run still completes;
    this is carried as run metadata rather than raised to the caller.
    """
    def __init__(self, run_id: int, skipped: List[Dict[str, Any]]):
        self.run_id = run_id
        self.skipped = skipped
        super().__init__(
            message=f"Payroll run {run_id} skipped {len(skipped)} employee(s)",
            status_code=200,
            error_code="PARTIAL_RUN_FAILURE",
            details={"skipped_employees": skipped}
        )

    @property
    def skipped_employee_ids(self) -> List[int]:
        return [entry["employee_id"] for entry in self.skipped]


class IncompleteDataError(AppException):
    def __init__(self, missing: List[str], payslip_id: Optional[int] = None):
        self.missing = missing
        label = f"payslip {payslip_id}" if payslip_id is not None else "payslip"
        super().__init__(
            message=f"Cannot render {label}: missing {', '.join(missing)}",
            status_code=422,
            error_code="INCOMPLETE_DATA",
            details={"missing": missing, "payslip_id": payslip_id}
        )


class PersistenceError(AppException):
    def __init__(self, message: str = "Failed to write to the record store", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details=details
        )


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class InvalidTransitionError(AppException):
    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot move payslip from '{current}' to '{target}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"current": current, "target": target}
        )


class FeatureDisabledError(AppException):
    def __init__(self, flag: str):
        super().__init__(
            message=f"Feature '{flag}' is not enabled",
            status_code=404,
            error_code="FEATURE_DISABLED",
            details={"flag": flag}
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )
