# backend/agenda/routers/availability_exceptions.py

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.availability_exceptions import (
    AvailabilityExceptionBulkCreate,
    AvailabilityExceptionBulkResponse,
    AvailabilityExceptionCreate,
    AvailabilityExceptionFilter,
    AvailabilityExceptionRead,
    AvailabilityExceptionUpdate,
    AvailabilityExceptionWithProfessionalRead,
    ExceptionType,
)
from ..services.availability_exceptions import AvailabilityExceptionStore
from ..services.intervals import parse_date
from ..services.slots.invalidator import get_affected_dates, invalidate_professional_cache

router = APIRouter(prefix="/availability_exceptions", tags=["availability_exceptions"])


@router.get("/", response_model=list[AvailabilityExceptionRead])
def list_availability_exceptions(
    filters: AvailabilityExceptionFilter = Depends(),
    db: Session = Depends(get_db),
):
    return AvailabilityExceptionStore(db).search(filters)


@router.get("/professional/{professional_id}", response_model=list[AvailabilityExceptionRead])
def list_professional_exceptions(
    professional_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    db: Session = Depends(get_db),
):
    store = AvailabilityExceptionStore(db)
    if start_date and end_date:
        return store.get_by_date_range(professional_id, start_date, end_date)
    return store.get_by_professional(professional_id)


@router.get("/type/{exception_type}", response_model=list[AvailabilityExceptionWithProfessionalRead])
def list_exceptions_by_type(exception_type: ExceptionType, db: Session = Depends(get_db)):
    return AvailabilityExceptionStore(db).get_by_type(exception_type.value)


@router.get("/{id}", response_model=AvailabilityExceptionWithProfessionalRead)
def get_availability_exception(id: int, db: Session = Depends(get_db)):
    obj = AvailabilityExceptionStore(db).get_by_id(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Availability exception not found")
    return obj


@router.post(
    "/", response_model=AvailabilityExceptionRead, status_code=status.HTTP_201_CREATED
)
def create_availability_exception(
    data: AvailabilityExceptionCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = AvailabilityExceptionStore(db).create(data)
    invalidate_professional_cache(redis, obj.professional_id, [parse_date(obj.exception_date)])
    return obj


@router.post("/bulk", response_model=AvailabilityExceptionBulkResponse)
def bulk_create_availability_exceptions(
    data: AvailabilityExceptionBulkCreate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    result = AvailabilityExceptionStore(db).bulk_create(data)
    if result.succeeded:
        invalidate_professional_cache(
            redis,
            result.succeeded[0].professional_id,
            sorted({parse_date(obj.exception_date) for obj in result.succeeded}),
        )
    return {
        "succeeded": result.succeeded,
        "failed": [f.as_dict() for f in result.failed],
    }


@router.patch("/{id}", response_model=AvailabilityExceptionRead)
def update_availability_exception(
    id: int,
    data: AvailabilityExceptionUpdate,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    store = AvailabilityExceptionStore(db)
    before = store.get_by_id(id)
    if not before:
        raise HTTPException(status_code=404, detail="Availability exception not found")
    previous_date = parse_date(before.exception_date)

    obj = store.update(id, data)
    invalidate_professional_cache(
        redis,
        obj.professional_id,
        sorted({previous_date, parse_date(obj.exception_date)}),
    )
    return obj


@router.delete("/professional/{professional_id}")
def delete_professional_exceptions(
    professional_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    """Delete every exception of a professional, or only those in [start_date, end_date]."""
    store = AvailabilityExceptionStore(db)
    if start_date and end_date:
        deleted = store.delete_by_date_range(professional_id, start_date, end_date)
        invalidate_professional_cache(redis, professional_id, get_affected_dates(start_date, end_date))
    else:
        deleted = store.delete_by_professional(professional_id)
        invalidate_professional_cache(redis, professional_id)
    return {"deleted": deleted}


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_exception(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    store = AvailabilityExceptionStore(db)
    obj = store.get_by_id(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Availability exception not found")
    professional_id, exception_date = obj.professional_id, parse_date(obj.exception_date)
    store.delete(id)
    invalidate_professional_cache(redis, professional_id, [exception_date])
