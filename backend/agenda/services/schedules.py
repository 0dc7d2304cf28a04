# backend/agenda/services/schedules.py
"""
Schedule store: recurring weekly availability per professional.

Invariants kept on every write:
- start_time < end_time
- break (if any) nested inside [start_time, end_time]
- no two active schedules of the same professional and weekday overlap
  in time while their validity ranges intersect
"""

import logging
from datetime import date
from typing import Any

from sqlalchemy import case, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..errors import (
    AvailabilityError,
    FormatError,
    InvalidBreakError,
    InvalidRangeError,
    InvalidTimeFormatError,
    NotFoundError,
    OverlapError,
)
from ..models.generated import Professionals, Schedules
from ..schemas.schedules import (
    DayOfWeek,
    ScheduleBulkCreate,
    ScheduleCreate,
    ScheduleFilter,
    ScheduleUpdate,
)
from .bulk import BulkResult
from .professionals import ProfessionalDirectory
from .intervals import normalize_date, normalize_time, parse_time, validate_range

logger = logging.getLogger(__name__)

DAY_NAMES = [d.value for d in DayOfWeek]  # index = date.weekday()

DAY_ORDER = case(
    {name: index for index, name in enumerate(DAY_NAMES)},
    value=Schedules.day_of_week,
)

SCHEDULE_FIELDS = (
    "day_of_week",
    "start_time",
    "end_time",
    "is_active",
    "valid_from",
    "valid_until",
    "has_break",
    "break_start_time",
    "break_end_time",
    "break_description",
)

# Fields that can not be cleared by a partial update
REQUIRED_FIELDS = {"day_of_week", "start_time", "end_time", "is_active", "has_break"}

OVERLAP_FIELDS = {"day_of_week", "start_time", "end_time", "valid_from", "valid_until"}


class ScheduleStore:
    """CRUD over Schedules with overlap and break validation."""

    def __init__(self, db: Session, professionals: ProfessionalDirectory | None = None):
        self.db = db
        self.professionals = professionals or ProfessionalDirectory(db)

    # ── Write ────────────────────────────────────────────────────────────

    def create(self, data: ScheduleCreate) -> Schedules:
        professional_id = self.professionals.resolve_professional_id(data.professional_id)
        values = data.model_dump(exclude={"professional_id"})
        return self._create(professional_id, values)

    def bulk_create(self, data: ScheduleBulkCreate) -> BulkResult[Schedules]:
        """Create each schedule independently; failures are collected, not raised."""
        professional_id = self.professionals.resolve_professional_id(data.professional_id)
        result: BulkResult[Schedules] = BulkResult()

        for index, item in enumerate(data.schedules):
            values = item.model_dump()
            try:
                result.succeeded.append(self._create(professional_id, values))
            except (AvailabilityError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.warning(
                    f"Failed to create schedule #{index} for professional {professional_id}: {e}"
                )
                result.add_failure(index, values, e)

        return result

    def update(self, schedule_id: int, data: ScheduleUpdate) -> Schedules:
        obj = self.db.get(Schedules, schedule_id)
        if not obj:
            raise NotFoundError("Schedule not found")

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if not (field in REQUIRED_FIELDS and value is None)
        }

        merged = {field: getattr(obj, field) for field in SCHEDULE_FIELDS}
        merged.update(changes)
        merged = self._validate(merged)

        activating = merged["is_active"] and not obj.is_active
        if merged["is_active"] and (OVERLAP_FIELDS & changes.keys() or activating):
            self._check_overlap(
                obj.professional_id,
                merged["day_of_week"],
                merged["start_time"],
                merged["end_time"],
                merged["valid_from"],
                merged["valid_until"],
                exclude_id=schedule_id,
            )

        for field in changes:
            setattr(obj, field, merged[field])

        self.db.commit()
        self.db.refresh(obj)
        return obj

    def delete(self, schedule_id: int) -> None:
        obj = self.db.get(Schedules, schedule_id)
        if not obj:
            raise NotFoundError("Schedule not found")
        self.db.delete(obj)
        self.db.commit()

    def toggle_status(self, schedule_id: int) -> Schedules:
        obj = self.db.get(Schedules, schedule_id)
        if not obj:
            raise NotFoundError("Schedule not found")

        if not obj.is_active:
            self._check_overlap(
                obj.professional_id,
                obj.day_of_week,
                obj.start_time,
                obj.end_time,
                obj.valid_from,
                obj.valid_until,
                exclude_id=schedule_id,
            )

        obj.is_active = not obj.is_active
        self.db.commit()
        self.db.refresh(obj)
        return obj

    # ── Read ─────────────────────────────────────────────────────────────

    def get_all(self) -> list[Schedules]:
        return (
            self.db.query(Schedules)
            .order_by(DAY_ORDER, Schedules.start_time)
            .all()
        )

    def get_by_id(self, schedule_id: int) -> Schedules | None:
        """Schedule with its professional (and the professional's user) loaded."""
        return (
            self.db.query(Schedules)
            .options(joinedload(Schedules.professional).joinedload(Professionals.user))
            .filter(Schedules.schedule_id == schedule_id)
            .first()
        )

    def get_by_professional(self, professional_id: int, active_only: bool = False) -> list[Schedules]:
        query = self.db.query(Schedules).filter(Schedules.professional_id == professional_id)
        if active_only:
            query = query.filter(Schedules.is_active == 1)
        return query.order_by(DAY_ORDER, Schedules.start_time).all()

    def get_by_day(self, day_of_week: str) -> list[Schedules]:
        """Active schedules of every professional for a weekday."""
        return (
            self.db.query(Schedules)
            .options(joinedload(Schedules.professional).joinedload(Professionals.user))
            .filter(
                Schedules.day_of_week == _day_value(day_of_week),
                Schedules.is_active == 1,
            )
            .order_by(Schedules.start_time)
            .all()
        )

    def search(self, filters: ScheduleFilter) -> list[Schedules]:
        query = self.db.query(Schedules)

        if filters.professional_id is not None:
            query = query.filter(Schedules.professional_id == filters.professional_id)

        if filters.day_of_week is not None:
            query = query.filter(Schedules.day_of_week == filters.day_of_week)

        if filters.is_active is not None:
            query = query.filter(Schedules.is_active == int(filters.is_active))

        if filters.valid_date:
            query = _filter_valid_on(query, normalize_date(filters.valid_date))

        return query.order_by(DAY_ORDER, Schedules.start_time).all()

    def get_active_for_date(self, professional_id: int, target_date: date) -> list[Schedules]:
        """Active schedules for the weekday of target_date, valid on that date."""
        query = self.db.query(Schedules).filter(
            Schedules.professional_id == professional_id,
            Schedules.day_of_week == DAY_NAMES[target_date.weekday()],
            Schedules.is_active == 1,
        )
        query = _filter_valid_on(query, target_date.isoformat())
        return query.order_by(Schedules.start_time).all()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _create(self, professional_id: int, values: dict[str, Any]) -> Schedules:
        values = self._validate(values)

        if values["is_active"]:
            self._check_overlap(
                professional_id,
                values["day_of_week"],
                values["start_time"],
                values["end_time"],
                values["valid_from"],
                values["valid_until"],
            )

        obj = Schedules(professional_id=professional_id, **values)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        """Normalize times/dates and enforce range and break rules."""
        values = dict(values)
        values["day_of_week"] = _day_value(values["day_of_week"])
        values["is_active"] = bool(values.get("is_active", True))
        values["has_break"] = bool(values.get("has_break", False))

        values["start_time"] = normalize_time(values["start_time"])
        values["end_time"] = normalize_time(values["end_time"])
        start = parse_time(values["start_time"])
        end = parse_time(values["end_time"])
        validate_range(start, end)

        for field in ("valid_from", "valid_until"):
            if values.get(field):
                values[field] = normalize_date(values[field])
            else:
                values[field] = None

        if values["valid_from"] and values["valid_until"] and values["valid_from"] > values["valid_until"]:
            raise InvalidRangeError("valid_from must be on or before valid_until")

        if values["has_break"]:
            values["break_start_time"], values["break_end_time"] = _validate_break(
                values.get("break_start_time"),
                values.get("break_end_time"),
                start,
                end,
            )

        return values

    def _check_overlap(
        self,
        professional_id: int,
        day_of_week: str,
        start_time: str,
        end_time: str,
        valid_from: str | None,
        valid_until: str | None,
        exclude_id: int | None = None,
    ) -> None:
        query = self.db.query(Schedules).filter(
            Schedules.professional_id == professional_id,
            Schedules.day_of_week == day_of_week,
            Schedules.is_active == 1,
            Schedules.start_time < end_time,
            Schedules.end_time > start_time,
        )

        if exclude_id is not None:
            query = query.filter(Schedules.schedule_id != exclude_id)

        # NULL bounds are unbounded on either side
        if valid_until:
            query = query.filter(
                or_(Schedules.valid_from.is_(None), Schedules.valid_from <= valid_until)
            )
        if valid_from:
            query = query.filter(
                or_(Schedules.valid_until.is_(None), Schedules.valid_until >= valid_from)
            )

        conflict = query.first()
        if conflict:
            raise OverlapError(
                f"Schedule overlaps with existing schedule {conflict.start_time}-{conflict.end_time} "
                f"on {conflict.day_of_week} for this professional"
            )


def _filter_valid_on(query, day: str):
    return query.filter(
        or_(Schedules.valid_from.is_(None), Schedules.valid_from <= day),
        or_(Schedules.valid_until.is_(None), Schedules.valid_until >= day),
    )


def _validate_break(
    break_start: str | None,
    break_end: str | None,
    start: int,
    end: int,
) -> tuple[str, str]:
    if not break_start or not break_end:
        raise InvalidBreakError(
            "break_start_time and break_end_time are required when has_break is set"
        )

    try:
        break_start_min = parse_time(break_start)
        break_end_min = parse_time(break_end)
    except InvalidTimeFormatError as e:
        raise InvalidBreakError(f"Invalid break time: {e.message}") from e

    if break_start_min >= break_end_min:
        raise InvalidBreakError("Break start time must be before break end time")

    if break_start_min < start or break_end_min > end:
        raise InvalidBreakError("Break must fall within the schedule hours")

    return normalize_time(break_start), normalize_time(break_end)


def _day_value(day_of_week) -> str:
    try:
        return DayOfWeek(day_of_week).value
    except ValueError:
        raise FormatError(
            f"Invalid day of week: {day_of_week!r}. Expected one of {', '.join(DAY_NAMES)}"
        ) from None
