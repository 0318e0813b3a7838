from pydantic import ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime

from payroll_app.models.employee import Theme
from payroll_app.schemas.common import CamelModel


class ProfileResponse(CamelModel):
    employee_id: int
    first_name: str
    last_name: str
    email: str
    status: str
    department: Optional[str] = None
    position: Optional[str] = None
    join_date: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    department: Optional[str] = None
    position: Optional[str] = None


class NotificationPreferences(CamelModel):
    model_config = ConfigDict(extra="forbid")

    email: bool = True
    push: bool = False
    sms: bool = False


class NotificationSettings(CamelModel):
    preferences: NotificationPreferences


class ThemeSetting(CamelModel):
    theme: Theme
