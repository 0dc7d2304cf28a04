# backend/agenda/routers/time_slots.py

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.time_slots import (
    TimeSlotBulkCreate,
    TimeSlotBulkResponse,
    TimeSlotCreate,
    TimeSlotFilter,
    TimeSlotRead,
    TimeSlotUpdate,
    TimeSlotWithProfessionalRead,
)
from ..services.intervals import parse_date
from ..services.slots.invalidator import get_affected_dates, invalidate_professional_cache
from ..services.time_slots import TimeSlotStore

router = APIRouter(prefix="/time_slots", tags=["time_slots"])


@router.get("/professional/{professional_id}", response_model=list[TimeSlotRead])
def list_professional_slots(
    professional_id: int,
    filters: TimeSlotFilter = Depends(),
    db: Session = Depends(get_db),
):
    return TimeSlotStore(db).get_by_professional(professional_id, filters)


@router.get("/{id}", response_model=TimeSlotWithProfessionalRead)
def get_time_slot(id: int, db: Session = Depends(get_db)):
    obj = TimeSlotStore(db).get_with_professional(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Time slot not found")
    return obj


@router.post("/", response_model=TimeSlotRead, status_code=status.HTTP_201_CREATED)
def create_time_slot(
    data: TimeSlotCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = TimeSlotStore(db).create(data)
    invalidate_professional_cache(redis, obj.professional_id, [parse_date(obj.slot_date)])
    return obj


@router.post("/bulk", response_model=TimeSlotBulkResponse)
def bulk_create_time_slots(
    data: TimeSlotBulkCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    result = TimeSlotStore(db).bulk_create(data)
    if result.succeeded:
        invalidate_professional_cache(
            redis,
            result.succeeded[0].professional_id,
            get_affected_dates(data.start_date, data.end_date),
        )
    return {
        "succeeded": result.succeeded,
        "failed": [f.as_dict() for f in result.failed],
    }


@router.patch("/{id}", response_model=TimeSlotRead)
def update_time_slot(
    id: int,
    data: TimeSlotUpdate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    store = TimeSlotStore(db)
    before = store.get_by_id(id)
    if not before:
        raise HTTPException(status_code=404, detail="Time slot not found")
    previous_date = parse_date(before.slot_date)

    obj = store.update(id, data)
    invalidate_professional_cache(
        redis,
        obj.professional_id,
        sorted({previous_date, parse_date(obj.slot_date)}),
    )
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_slot(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    store = TimeSlotStore(db)
    obj = store.get_by_id(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Time slot not found")
    professional_id, slot_date = obj.professional_id, parse_date(obj.slot_date)
    store.delete(id)
    invalidate_professional_cache(redis, professional_id, [slot_date])
