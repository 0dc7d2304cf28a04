# backend/agenda/schemas/slots.py
"""
Pydantic schemas for the hybrid availability API.
"""

from pydantic import BaseModel, Field

from .time_slots import TimeSlotRead


class AvailableSlotsResponse(BaseModel):
    """Persisted slots, or virtual ones when nothing is persisted."""
    professional_id: int
    start_date: str
    end_date: str
    slots: list[TimeSlotRead]
    is_generated: bool = Field(description="True when slots are virtual (not persisted)")
    total_count: int


class DayAvailabilityResponse(BaseModel):
    professional_id: int
    date: str
    is_available: bool
    slots: list[TimeSlotRead]
    is_generated: bool


class SlotStatisticsResponse(BaseModel):
    total_slots: int
    existing_slots: int
    virtual_slots: int
    available_slots: int
    booked_slots: int


class PreGenerateResponse(BaseModel):
    generated: int
    skipped: int
    errors: int


class CleanupResponse(BaseModel):
    enabled: bool = Field(description="False when persistence or auto cleanup is disabled")
    deleted: int
    errors: list[str]
    dry_run: bool
