# backend/agenda/schemas/time_slots.py

from enum import Enum
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, Field

from .common import BulkFailureRead, ProfessionalRead


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class TimeSlotCreate(BaseModel):
    professional_id: int
    slot_date: str = Field(description="Date in YYYY-MM-DD format")
    start_time: str = Field(description="Time in HH:MM format")
    end_time: str = Field(description="Time in HH:MM format")
    # Defaults to end_time - start_time
    duration_minutes: Optional[int] = None
    status: SlotStatus = SlotStatus.AVAILABLE
    price_override: Optional[float] = None
    max_bookings: int = 1
    metadata: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class TimeSlotUpdate(BaseModel):
    slot_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    status: Optional[SlotStatus] = None
    price_override: Optional[float] = None
    max_bookings: Optional[int] = None
    current_bookings: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class TimeSlotFilter(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[SlotStatus] = None
    # status = available AND current_bookings < max_bookings
    available_only: bool = False
    page: Optional[int] = Field(None, ge=1)
    limit: Optional[int] = Field(None, ge=1)

    model_config = {"use_enum_values": True}


class TimeSlotBulkCreate(BaseModel):
    professional_id: int
    start_date: str = Field(description="Date in YYYY-MM-DD format")
    end_date: str = Field(description="Date in YYYY-MM-DD format")
    start_time: str = Field(description="Time in HH:MM format")
    end_time: str = Field(description="Time in HH:MM format")
    duration_minutes: int
    break_minutes: int = 0
    days_of_week: Optional[list[int]] = Field(
        None, description="0 = Sunday, 1 = Monday ... 6 = Saturday"
    )
    exclude_dates: Optional[list[str]] = None
    price_override: Optional[float] = None
    max_bookings: int = 1
    metadata: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}


class TimeSlotRead(BaseModel):
    slot_id: int
    professional_id: int
    slot_date: str
    start_time: str
    end_time: str
    duration_minutes: int
    status: SlotStatus
    price_override: Optional[float] = None
    max_bookings: int
    current_bookings: int
    metadata: Optional[dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"from_attributes": True}


class TimeSlotWithProfessionalRead(TimeSlotRead):
    professional: ProfessionalRead


class TimeSlotBulkResponse(BaseModel):
    succeeded: list[TimeSlotRead]
    failed: list[BulkFailureRead]
