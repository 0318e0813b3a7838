"""
Profile Service Layer

Self-service view of an employee's own record plus the per-employee
settings (notification channels, UI theme). Salary, status and
deductions stay admin-only.
"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from payroll_app.models.employee import Employee, Theme
from payroll_app.schemas.profile import NotificationPreferences, ProfileUpdate
from payroll_app.services.base import commit_or_raise
from payroll_app.services.employee_service import ensure_unique_email, get_employee

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_PREFERENCES = NotificationPreferences().model_dump()
DEFAULT_THEME = Theme.SYSTEM.value


def _profile_to_dict(employee: Employee) -> Dict[str, Any]:
    return {
        "employee_id": employee.id,
        "first_name": employee.first_name,
        "last_name": employee.last_name,
        "email": employee.email,
        "status": employee.status,
        "department": employee.department,
        "position": employee.position,
        "join_date": employee.created_at,
    }


def get_profile(db: Session, employee_id: int) -> Dict[str, Any]:
    return _profile_to_dict(get_employee(db, employee_id))


def update_profile(db: Session, employee_id: int, data: ProfileUpdate) -> Dict[str, Any]:
    """Names and email are always replaced; department and position only when sent."""
    employee = get_employee(db, employee_id)
    ensure_unique_email(db, data.email, exclude_id=employee_id)

    employee.first_name = data.first_name
    employee.last_name = data.last_name
    employee.email = data.email
    for field in ("department", "position"):
        if field in data.model_fields_set:
            setattr(employee, field, getattr(data, field))

    commit_or_raise(db, "update profile", employee_id=employee_id)
    db.refresh(employee)
    logger.info(f"Employee {employee_id} updated their profile", extra={"employee_id": employee_id})
    return _profile_to_dict(employee)


def get_notification_preferences(db: Session, employee_id: int) -> Dict[str, bool]:
    stored = get_employee(db, employee_id).notification_preferences or {}
    return {**DEFAULT_NOTIFICATION_PREFERENCES, **stored}


def update_notification_preferences(
    db: Session, employee_id: int, preferences: NotificationPreferences
) -> Dict[str, bool]:
    employee = get_employee(db, employee_id)
    employee.notification_preferences = preferences.model_dump()
    commit_or_raise(db, "update notification preferences", employee_id=employee_id)
    return get_notification_preferences(db, employee_id)


def get_theme(db: Session, employee_id: int) -> str:
    return get_employee(db, employee_id).theme or DEFAULT_THEME


def update_theme(db: Session, employee_id: int, theme: Theme) -> str:
    employee = get_employee(db, employee_id)
    employee.theme = Theme(theme).value
    commit_or_raise(db, "update theme", employee_id=employee_id)
    return employee.theme
