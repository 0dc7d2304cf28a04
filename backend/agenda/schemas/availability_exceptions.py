# backend/agenda/schemas/availability_exceptions.py

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from .common import BulkFailureRead, ProfessionalRead


class ExceptionType(str, Enum):
    UNAVAILABLE = "unavailable"
    AVAILABLE = "available"
    BREAK = "break"
    VACATION = "vacation"


class AvailabilityExceptionItem(BaseModel):
    exception_date: str = Field(description="Date in YYYY-MM-DD format")
    # Both omitted = full-day exception
    start_time: Optional[str] = Field(None, description="Time in HH:MM format")
    end_time: Optional[str] = Field(None, description="Time in HH:MM format")
    type: ExceptionType
    reason: Optional[str] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class AvailabilityExceptionCreate(AvailabilityExceptionItem):
    professional_id: int


class AvailabilityExceptionBulkCreate(BaseModel):
    professional_id: int
    exceptions: list[AvailabilityExceptionItem]

    model_config = {"from_attributes": True}


class AvailabilityExceptionUpdate(BaseModel):
    exception_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: Optional[ExceptionType] = None
    reason: Optional[str] = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class AvailabilityExceptionFilter(BaseModel):
    professional_id: Optional[int] = None
    type: Optional[ExceptionType] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    # Takes precedence over date_from/date_to
    specific_date: Optional[str] = None

    model_config = {"use_enum_values": True}


class AvailabilityExceptionRead(BaseModel):
    exception_id: int
    professional_id: int
    exception_date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: ExceptionType
    reason: Optional[str] = None
    created_at: Optional[str] = None

    model_config = {"from_attributes": True}


class AvailabilityExceptionWithProfessionalRead(AvailabilityExceptionRead):
    professional: ProfessionalRead


class AvailabilityExceptionBulkResponse(BaseModel):
    succeeded: list[AvailabilityExceptionRead]
    failed: list[BulkFailureRead]
