# backend/agenda/routers/slots.py
"""
Hybrid availability endpoints.

GET  /slots/available   - Persisted slots in a range, generated when none exist
GET  /slots/day         - Availability of a single date
GET  /slots/statistics  - Persisted / virtual / booked counts for a range
POST /slots/pre_generate - Persist generated slots for a range
POST /slots/cleanup     - Remove stale unbooked slots
POST /slots/invalidate  - Drop cached virtual slots of a professional
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.slots import (
    AvailableSlotsResponse,
    CleanupResponse,
    DayAvailabilityResponse,
    PreGenerateResponse,
    SlotStatisticsResponse,
)
from ..services.slots import (
    HybridSlotService,
    SlotQueryOptions,
    get_affected_dates,
    get_hybrid_config,
    invalidate_professional_cache,
)

router = APIRouter(prefix="/slots", tags=["slots"])


def get_slot_service(
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
) -> HybridSlotService:
    return HybridSlotService(db, get_hybrid_config(), redis)


@router.get("/available", response_model=AvailableSlotsResponse)
def get_available_slots(
    professional_id: int,
    start_date: str,
    end_date: str | None = None,
    duration: int | None = None,
    auto_generate: bool = True,
    persist_popular: bool = False,
    max_virtual_slots: int = Query(50, ge=1),
    service: HybridSlotService = Depends(get_slot_service),
):
    result = service.get_available_slots(
        professional_id,
        start_date,
        end_date,
        SlotQueryOptions(
            default_duration=duration,
            auto_generate=auto_generate,
            persist_popular=persist_popular,
            max_virtual_slots=max_virtual_slots,
        ),
    )
    if persist_popular and result.is_generated:
        invalidate_professional_cache(service.redis, professional_id)

    return AvailableSlotsResponse(
        professional_id=professional_id,
        start_date=start_date,
        end_date=end_date or start_date,
        slots=result.slots,
        is_generated=result.is_generated,
        total_count=result.total_count,
    )


@router.get("/day", response_model=DayAvailabilityResponse)
def get_day_availability(
    professional_id: int,
    target_date: str = Query(..., alias="date"),
    duration: int | None = None,
    service: HybridSlotService = Depends(get_slot_service),
):
    result = service.get_availability_for_date(professional_id, target_date, duration)
    return DayAvailabilityResponse(
        professional_id=professional_id,
        date=target_date,
        is_available=result.is_available,
        slots=result.slots,
        is_generated=result.is_generated,
    )


@router.get("/statistics", response_model=SlotStatisticsResponse)
def get_slot_statistics(
    professional_id: int,
    start_date: str,
    end_date: str | None = None,
    service: HybridSlotService = Depends(get_slot_service),
):
    stats = service.get_slot_statistics(professional_id, start_date, end_date)
    return SlotStatisticsResponse(**vars(stats))


@router.post("/pre_generate", response_model=PreGenerateResponse)
def pre_generate_slots(
    professional_id: int,
    start_date: str,
    end_date: str,
    duration: int | None = None,
    service: HybridSlotService = Depends(get_slot_service),
):
    result = service.pre_generate_slots(professional_id, start_date, end_date, duration)
    if result.generated:
        invalidate_professional_cache(
            service.redis, professional_id, get_affected_dates(start_date, end_date)
        )
    return PreGenerateResponse(**vars(result))


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_stale_slots(
    dry_run: bool = False,
    today: date | None = None,
    service: HybridSlotService = Depends(get_slot_service),
):
    """Remove unbooked slots older than the configured retention (admin endpoint)."""
    result = service.cleanup_stale_slots(today, dry_run=dry_run)
    if result is None:
        return CleanupResponse(enabled=False, deleted=0, errors=[], dry_run=dry_run)
    return CleanupResponse(
        enabled=True,
        deleted=result.deleted,
        errors=result.errors,
        dry_run=result.dry_run,
    )


@router.post("/invalidate")
def invalidate_slots_cache(
    professional_id: int,
    dates: list[date] | None = Query(None),
    redis: Redis | None = Depends(get_redis),
):
    """Manually invalidate cached virtual slots for a professional (admin endpoint)."""
    deleted = invalidate_professional_cache(redis, professional_id, dates)
    return {"professional_id": professional_id, "deleted_keys": deleted}
