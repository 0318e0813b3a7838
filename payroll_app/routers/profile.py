"""
Profile Router

Self-service endpoints: the calling employee's profile and personal
settings. The employee is always the actor; there is no way to address
another record here.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from payroll_app.core.exceptions import AccessDeniedError
from payroll_app.database import get_db
from payroll_app.routers.auth_deps import Actor, get_current_actor
from payroll_app.schemas.profile import NotificationSettings, ProfileResponse, ProfileUpdate, ThemeSetting
from payroll_app.services import profile_service

router = APIRouter(tags=["profile"])


def get_actor_employee_id(actor: Actor = Depends(get_current_actor)) -> int:
    if actor.employee_id is None:
        raise AccessDeniedError("Actor is not linked to an employee record")
    return actor.employee_id


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    return profile_service.get_profile(db, employee_id)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    data: ProfileUpdate,
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    return profile_service.update_profile(db, employee_id, data)


@router.get("/settings/notifications", response_model=NotificationSettings)
def get_notification_settings(
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    return {"preferences": profile_service.get_notification_preferences(db, employee_id)}


@router.put("/settings/notifications", response_model=NotificationSettings)
def update_notification_settings(
    data: NotificationSettings,
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    preferences = profile_service.update_notification_preferences(db, employee_id, data.preferences)
    return {"preferences": preferences}


@router.get("/settings/theme", response_model=ThemeSetting)
def get_theme(
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    return {"theme": profile_service.get_theme(db, employee_id)}


@router.put("/settings/theme", response_model=ThemeSetting)
def update_theme(
    data: ThemeSetting,
    employee_id: int = Depends(get_actor_employee_id),
    db: Session = Depends(get_db)
):
    return {"theme": profile_service.update_theme(db, employee_id, data.theme)}
