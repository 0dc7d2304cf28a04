# backend/agenda/services/availability_exceptions.py
"""
Exception store: date-specific overrides of a professional's availability.

Overlap rule (same professional and date):
- break exceptions are only compared with other breaks, and non-break
  exceptions only with non-breaks
- two full-day exceptions always conflict
- a full-day exception is not compared with a timed one
- two timed exceptions conflict when their [start, end) intervals overlap
"""

import logging
from datetime import date
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..errors import AvailabilityError, FormatError, InvalidRangeError, NotFoundError, OverlapError
from ..models.generated import AvailabilityExceptions, Professionals
from ..schemas.availability_exceptions import (
    AvailabilityExceptionBulkCreate,
    AvailabilityExceptionCreate,
    AvailabilityExceptionFilter,
    AvailabilityExceptionUpdate,
    ExceptionType,
)
from .bulk import BulkResult
from .professionals import ProfessionalDirectory
from .intervals import (
    intervals_overlap,
    normalize_date,
    normalize_time,
    parse_time,
    validate_range,
)

logger = logging.getLogger(__name__)

EXCEPTION_FIELDS = ("exception_date", "start_time", "end_time", "type", "reason")

OVERLAP_FIELDS = {"exception_date", "start_time", "end_time", "type"}


class AvailabilityExceptionStore:
    """CRUD over AvailabilityExceptions with overlap validation."""

    def __init__(self, db: Session, professionals: ProfessionalDirectory | None = None):
        self.db = db
        self.professionals = professionals or ProfessionalDirectory(db)

    # ── Write ────────────────────────────────────────────────────────────

    def create(self, data: AvailabilityExceptionCreate) -> AvailabilityExceptions:
        professional_id = self.professionals.resolve_professional_id(data.professional_id)
        return self._create(professional_id, data.model_dump(exclude={"professional_id"}))

    def bulk_create(self, data: AvailabilityExceptionBulkCreate) -> BulkResult[AvailabilityExceptions]:
        """Create each exception independently; failures are collected, not raised."""
        professional_id = self.professionals.resolve_professional_id(data.professional_id)
        result: BulkResult[AvailabilityExceptions] = BulkResult()

        for index, item in enumerate(data.exceptions):
            values = item.model_dump()
            try:
                result.succeeded.append(self._create(professional_id, values))
            except (AvailabilityError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.warning(
                    f"Failed to create exception for date {values.get('exception_date')} "
                    f"(professional {professional_id}): {e}"
                )
                result.add_failure(index, values, e)

        return result

    def update(self, exception_id: int, data: AvailabilityExceptionUpdate) -> AvailabilityExceptions:
        obj = self.db.get(AvailabilityExceptions, exception_id)
        if not obj:
            raise NotFoundError("Availability exception not found")

        changes = data.model_dump(exclude_unset=True)
        for field in ("exception_date", "type"):
            if field in changes and changes[field] is None:
                del changes[field]

        merged = {field: getattr(obj, field) for field in EXCEPTION_FIELDS}
        merged.update(changes)
        merged = self._validate(merged)

        if OVERLAP_FIELDS & changes.keys():
            self._check_overlap(
                obj.professional_id,
                merged["exception_date"],
                merged["start_time"],
                merged["end_time"],
                merged["type"],
                exclude_id=exception_id,
            )

        for field in changes:
            setattr(obj, field, merged[field])

        self.db.commit()
        self.db.refresh(obj)
        return obj

    def delete(self, exception_id: int) -> None:
        obj = self.db.get(AvailabilityExceptions, exception_id)
        if not obj:
            raise NotFoundError("Availability exception not found")
        self.db.delete(obj)
        self.db.commit()

    def delete_by_professional(self, professional_id: int) -> int:
        deleted = (
            self.db.query(AvailabilityExceptions)
            .filter(AvailabilityExceptions.professional_id == professional_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def delete_by_date_range(self, professional_id: int, start_date: str, end_date: str) -> int:
        start, end = normalize_date(start_date), normalize_date(end_date)
        deleted = (
            self.db.query(AvailabilityExceptions)
            .filter(
                AvailabilityExceptions.professional_id == professional_id,
                AvailabilityExceptions.exception_date >= start,
                AvailabilityExceptions.exception_date <= end,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    # ── Read ─────────────────────────────────────────────────────────────

    def get_all(self) -> list[AvailabilityExceptions]:
        return self._ordered(self.db.query(AvailabilityExceptions)).all()

    def get_by_id(self, exception_id: int) -> AvailabilityExceptions | None:
        return (
            self._with_professional(self.db.query(AvailabilityExceptions))
            .filter(AvailabilityExceptions.exception_id == exception_id)
            .first()
        )

    def get_by_professional(self, professional_id: int) -> list[AvailabilityExceptions]:
        professional_id = self.professionals.resolve_professional_id(professional_id)
        query = self.db.query(AvailabilityExceptions).filter(
            AvailabilityExceptions.professional_id == professional_id
        )
        return self._ordered(query).all()

    def get_by_type(self, exception_type: str) -> list[AvailabilityExceptions]:
        query = self._with_professional(self.db.query(AvailabilityExceptions)).filter(
            AvailabilityExceptions.type == _type_value(exception_type)
        )
        return self._ordered(query).all()

    def get_by_date_range(
        self,
        professional_id: int,
        start_date: str,
        end_date: str,
    ) -> list[AvailabilityExceptions]:
        professional_id = self.professionals.resolve_professional_id(professional_id)
        query = self.db.query(AvailabilityExceptions).filter(
            AvailabilityExceptions.professional_id == professional_id,
            AvailabilityExceptions.exception_date >= normalize_date(start_date),
            AvailabilityExceptions.exception_date <= normalize_date(end_date),
        )
        return self._ordered(query).all()

    def get_for_date(self, professional_id: int, target_date: date) -> list[AvailabilityExceptions]:
        query = self.db.query(AvailabilityExceptions).filter(
            AvailabilityExceptions.professional_id == professional_id,
            AvailabilityExceptions.exception_date == target_date.isoformat(),
        )
        return self._ordered(query).all()

    def search(self, filters: AvailabilityExceptionFilter) -> list[AvailabilityExceptions]:
        query = self.db.query(AvailabilityExceptions)

        if filters.professional_id is not None:
            query = query.filter(AvailabilityExceptions.professional_id == filters.professional_id)

        if filters.type is not None:
            query = query.filter(AvailabilityExceptions.type == filters.type)

        if filters.specific_date:
            query = query.filter(
                AvailabilityExceptions.exception_date == normalize_date(filters.specific_date)
            )
        else:
            if filters.date_from:
                query = query.filter(
                    AvailabilityExceptions.exception_date >= normalize_date(filters.date_from)
                )
            if filters.date_to:
                query = query.filter(
                    AvailabilityExceptions.exception_date <= normalize_date(filters.date_to)
                )

        return self._ordered(query).all()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _create(self, professional_id: int, values: dict[str, Any]) -> AvailabilityExceptions:
        values = self._validate(values)

        self._check_overlap(
            professional_id,
            values["exception_date"],
            values["start_time"],
            values["end_time"],
            values["type"],
        )

        obj = AvailabilityExceptions(professional_id=professional_id, **values)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        values = dict(values)
        values["exception_date"] = normalize_date(values["exception_date"])
        values["type"] = _type_value(values["type"])

        start_time, end_time = values.get("start_time"), values.get("end_time")
        if start_time:
            values["start_time"] = normalize_time(start_time)
        if end_time:
            values["end_time"] = normalize_time(end_time)

        if bool(start_time) != bool(end_time):
            raise InvalidRangeError(
                "start_time and end_time must be provided together (or both omitted for a full day)"
            )
        if start_time and end_time:
            validate_range(parse_time(values["start_time"]), parse_time(values["end_time"]))
        else:
            values["start_time"] = values["end_time"] = None

        return values

    def _check_overlap(
        self,
        professional_id: int,
        exception_date: str,
        start_time: str | None,
        end_time: str | None,
        exception_type: str,
        exclude_id: int | None = None,
    ) -> None:
        query = self.db.query(AvailabilityExceptions).filter(
            AvailabilityExceptions.professional_id == professional_id,
            AvailabilityExceptions.exception_date == exception_date,
        )
        if exclude_id is not None:
            query = query.filter(AvailabilityExceptions.exception_id != exclude_id)

        for existing in self._ordered(query).all():
            if _exceptions_conflict(exception_type, start_time, end_time, existing):
                window = (
                    f"{existing.start_time}-{existing.end_time}"
                    if existing.start_time
                    else "full day"
                )
                raise OverlapError(
                    f"Exception overlaps with existing {existing.type} exception ({window}) "
                    f"for this professional on {exception_date}"
                )

    @staticmethod
    def _ordered(query):
        return query.order_by(
            AvailabilityExceptions.exception_date,
            AvailabilityExceptions.start_time,
            AvailabilityExceptions.exception_id,
        )

    @staticmethod
    def _with_professional(query):
        return query.options(
            joinedload(AvailabilityExceptions.professional).joinedload(Professionals.user)
        )


def _exceptions_conflict(
    exception_type: str,
    start_time: str | None,
    end_time: str | None,
    existing: AvailabilityExceptions,
) -> bool:
    is_break = exception_type == ExceptionType.BREAK.value
    if is_break != (existing.type == ExceptionType.BREAK.value):
        return False

    candidate_full_day = start_time is None and end_time is None
    existing_full_day = existing.start_time is None and existing.end_time is None

    if candidate_full_day and existing_full_day:
        return True
    if candidate_full_day or existing_full_day:
        return False

    return intervals_overlap(
        parse_time(start_time),
        parse_time(end_time),
        parse_time(existing.start_time),
        parse_time(existing.end_time),
    )


def _type_value(exception_type) -> str:
    try:
        return ExceptionType(exception_type).value
    except ValueError:
        allowed = ", ".join(t.value for t in ExceptionType)
        raise FormatError(
            f"Invalid exception type: {exception_type!r}. Expected one of {allowed}"
        ) from None
