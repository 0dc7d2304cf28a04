# backend/agenda/routers/schedules.py

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.schedules import (
    DayOfWeek,
    ScheduleBulkCreate,
    ScheduleBulkResponse,
    ScheduleCreate,
    ScheduleFilter,
    ScheduleRead,
    ScheduleUpdate,
    ScheduleWithProfessionalRead,
)
from ..services.schedules import ScheduleStore
from ..services.slots.invalidator import invalidate_professional_cache

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.get("/", response_model=list[ScheduleRead])
def list_schedules(
    filters: ScheduleFilter = Depends(),
    db: Session = Depends(get_db),
):
    return ScheduleStore(db).search(filters)


@router.get("/professional/{professional_id}", response_model=list[ScheduleRead])
def list_professional_schedules(
    professional_id: int,
    active_only: bool = False,
    db: Session = Depends(get_db),
):
    return ScheduleStore(db).get_by_professional(professional_id, active_only)


@router.get("/day/{day_of_week}", response_model=list[ScheduleWithProfessionalRead])
def list_schedules_by_day(day_of_week: DayOfWeek, db: Session = Depends(get_db)):
    return ScheduleStore(db).get_by_day(day_of_week.value)


@router.get("/{id}", response_model=ScheduleWithProfessionalRead)
def get_schedule(id: int, db: Session = Depends(get_db)):
    obj = ScheduleStore(db).get_by_id(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return obj


@router.post("/", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED)
def create_schedule(
    data: ScheduleCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = ScheduleStore(db).create(data)
    invalidate_professional_cache(redis, obj.professional_id)
    return obj


@router.post("/bulk", response_model=ScheduleBulkResponse)
def bulk_create_schedules(
    data: ScheduleBulkCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    result = ScheduleStore(db).bulk_create(data)
    if result.succeeded:
        invalidate_professional_cache(redis, result.succeeded[0].professional_id)
    return {
        "succeeded": result.succeeded,
        "failed": [f.as_dict() for f in result.failed],
    }


@router.patch("/{id}", response_model=ScheduleRead)
def update_schedule(
    id: int,
    data: ScheduleUpdate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = ScheduleStore(db).update(id, data)
    invalidate_professional_cache(redis, obj.professional_id)
    return obj


@router.patch("/{id}/toggle", response_model=ScheduleRead)
def toggle_schedule(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = ScheduleStore(db).toggle_status(id)
    invalidate_professional_cache(redis, obj.professional_id)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    store = ScheduleStore(db)
    obj = store.get_by_id(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Schedule not found")
    professional_id = obj.professional_id
    store.delete(id)
    invalidate_professional_cache(redis, professional_id)
