# backend/agenda/schemas/schedules.py

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from .common import BulkFailureRead, ProfessionalRead


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class ScheduleItem(BaseModel):
    day_of_week: DayOfWeek
    start_time: str = Field(description="Time in HH:MM format")
    end_time: str = Field(description="Time in HH:MM format")
    is_active: bool = True
    valid_from: Optional[str] = Field(None, description="Date in YYYY-MM-DD format")
    valid_until: Optional[str] = Field(None, description="Date in YYYY-MM-DD format")

    has_break: bool = False
    break_start_time: Optional[str] = None
    break_end_time: Optional[str] = None
    break_description: Optional[str] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class ScheduleCreate(ScheduleItem):
    professional_id: int


class ScheduleBulkCreate(BaseModel):
    professional_id: int
    schedules: list[ScheduleItem]

    model_config = {"from_attributes": True}


class ScheduleUpdate(BaseModel):
    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_active: Optional[bool] = None
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None

    has_break: Optional[bool] = None
    break_start_time: Optional[str] = None
    break_end_time: Optional[str] = None
    break_description: Optional[str] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class ScheduleFilter(BaseModel):
    professional_id: Optional[int] = None
    day_of_week: Optional[DayOfWeek] = None
    is_active: Optional[bool] = None
    valid_date: Optional[str] = Field(None, description="Schedules valid on this date")

    model_config = {"use_enum_values": True}


class ScheduleRead(BaseModel):
    schedule_id: int
    professional_id: int
    day_of_week: DayOfWeek
    start_time: str
    end_time: str
    is_active: bool
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None

    has_break: bool
    break_start_time: Optional[str] = None
    break_end_time: Optional[str] = None
    break_description: Optional[str] = None

    created_at: Optional[str] = None

    model_config = {"from_attributes": True}


class ScheduleWithProfessionalRead(ScheduleRead):
    professional: ProfessionalRead


class ScheduleBulkResponse(BaseModel):
    succeeded: list[ScheduleRead]
    failed: list[BulkFailureRead]
