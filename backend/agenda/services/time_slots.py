# backend/agenda/services/time_slots.py
"""
Slot store: concretely persisted, bookable units of time.

No two slots of one professional on one date may overlap, whatever their
status. A unique (professional_id, slot_date, start_time) constraint backs
the read-then-write check.
"""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..errors import InvalidRangeError, NotFoundError, OverlapError
from ..models.generated import Professionals, TimeSlots
from ..schemas.time_slots import (
    SlotStatus,
    TimeSlotBulkCreate,
    TimeSlotCreate,
    TimeSlotFilter,
    TimeSlotUpdate,
)
from .bulk import BulkResult
from .professionals import ProfessionalDirectory
from .intervals import (
    date_range,
    format_time,
    intervals_overlap,
    normalize_date,
    normalize_time,
    parse_date,
    parse_time,
    sunday_based_weekday,
    validate_range,
)

logger = logging.getLogger(__name__)

SLOT_FIELDS = (
    "slot_date",
    "start_time",
    "end_time",
    "duration_minutes",
    "status",
    "price_override",
    "max_bookings",
    "current_bookings",
    "metadata",
)

REQUIRED_FIELDS = {
    "slot_date",
    "start_time",
    "end_time",
    "duration_minutes",
    "status",
    "max_bookings",
    "current_bookings",
}

OVERLAP_FIELDS = {"slot_date", "start_time", "end_time"}


class TimeSlotStore:
    """CRUD over TimeSlots plus bulk range generation."""

    def __init__(self, db: Session, professionals: ProfessionalDirectory | None = None):
        self.db = db
        self.professionals = professionals or ProfessionalDirectory(db)

    # ── Write ────────────────────────────────────────────────────────────

    def create(self, data: TimeSlotCreate) -> TimeSlots:
        professional_id = self.professionals.resolve_professional_id(data.professional_id)
        values = _validate(data.model_dump(exclude={"professional_id"}))

        self._check_overlap(
            professional_id,
            values["slot_date"],
            values["start_time"],
            values["end_time"],
        )

        obj = _build(professional_id, values)
        self.db.add(obj)
        self._commit()
        self.db.refresh(obj)
        return obj

    def bulk_create(self, data: TimeSlotBulkCreate) -> BulkResult[TimeSlots]:
        """
        Generate slots over [start_date, end_date].

        Each day passing the days_of_week / exclude_dates filters gets a
        window of duration_minutes slid across [start_time, end_time],
        stepping by duration_minutes + break_minutes. Candidates that
        overlap a persisted slot (or one accepted earlier in the batch) are
        reported as failures; the rest are inserted in one commit.
        """
        professional_id = self.professionals.resolve_professional_id(data.professional_id)

        start_date = parse_date(data.start_date)
        end_date = parse_date(data.end_date)
        if start_date > end_date:
            raise InvalidRangeError("Start date must be on or before end date")

        start = parse_time(data.start_time)
        end = parse_time(data.end_time)
        validate_range(start, end)

        if data.duration_minutes < 1:
            raise InvalidRangeError("duration_minutes must be at least 1")
        if data.break_minutes < 0:
            raise InvalidRangeError("break_minutes must not be negative")
        if data.max_bookings < 1:
            raise InvalidRangeError("max_bookings must be at least 1")

        days_of_week = set(data.days_of_week) if data.days_of_week is not None else None
        if days_of_week and not days_of_week <= set(range(7)):
            raise InvalidRangeError("days_of_week values must be between 0 (Sunday) and 6 (Saturday)")

        excluded = {normalize_date(d) for d in data.exclude_dates or []}

        result: BulkResult[TimeSlots] = BulkResult()
        index = 0

        for day in date_range(start_date, end_date):
            slot_date = day.isoformat()
            if days_of_week is not None and sunday_based_weekday(day) not in days_of_week:
                continue
            if slot_date in excluded:
                continue

            taken = [
                (parse_time(s.start_time), parse_time(s.end_time))
                for s in self.get_for_date(professional_id, day)
            ]

            offset = start
            while offset + data.duration_minutes <= end:
                slot_start, slot_end = offset, offset + data.duration_minutes
                values = {
                    "slot_date": slot_date,
                    "start_time": format_time(slot_start),
                    "end_time": format_time(slot_end),
                    "duration_minutes": data.duration_minutes,
                    "status": SlotStatus.AVAILABLE.value,
                    "price_override": data.price_override,
                    "max_bookings": data.max_bookings,
                    "current_bookings": 0,
                    "metadata": data.metadata,
                }

                if any(intervals_overlap(slot_start, slot_end, s, e) for s, e in taken):
                    result.add_failure(
                        index,
                        values,
                        OverlapError(
                            f"Slot {values['start_time']}-{values['end_time']} on {slot_date} "
                            f"overlaps with an existing slot for this professional"
                        ),
                    )
                else:
                    taken.append((slot_start, slot_end))
                    result.succeeded.append(_build(professional_id, values))

                index += 1
                offset += data.duration_minutes + data.break_minutes

        if result.failed:
            logger.warning(
                f"Bulk slot generation for professional {professional_id}: "
                f"{len(result.failed)} of {index} slots skipped due to overlap"
            )

        if result.succeeded:
            self.db.add_all(result.succeeded)
            self._commit()
            for obj in result.succeeded:
                self.db.refresh(obj)

        return result

    def update(self, slot_id: int, data: TimeSlotUpdate) -> TimeSlots:
        obj = self.db.get(TimeSlots, slot_id)
        if not obj:
            raise NotFoundError("Time slot not found")

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if not (field in REQUIRED_FIELDS and value is None)
        }

        merged = {field: getattr(obj, field) for field in SLOT_FIELDS if field != "metadata"}
        merged["metadata"] = obj.metadata_
        merged.update(changes)

        # Times moved without an explicit duration: recompute it
        if {"start_time", "end_time"} & changes.keys() and "duration_minutes" not in changes:
            merged["duration_minutes"] = None

        merged = _validate(merged)

        if OVERLAP_FIELDS & changes.keys():
            self._check_overlap(
                obj.professional_id,
                merged["slot_date"],
                merged["start_time"],
                merged["end_time"],
                exclude_id=slot_id,
            )

        for field in SLOT_FIELDS:
            if field == "metadata":
                obj.metadata_ = merged["metadata"]
            else:
                setattr(obj, field, merged[field])
        obj.updated_at = datetime.now().isoformat(sep=" ", timespec="seconds")

        self._commit()
        self.db.refresh(obj)
        return obj

    def delete(self, slot_id: int) -> None:
        obj = self.db.get(TimeSlots, slot_id)
        if not obj:
            raise NotFoundError("Time slot not found")
        self.db.delete(obj)
        self.db.commit()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_by_id(self, slot_id: int) -> TimeSlots | None:
        return self.db.get(TimeSlots, slot_id)

    def get_with_professional(self, slot_id: int) -> TimeSlots | None:
        return (
            self.db.query(TimeSlots)
            .options(joinedload(TimeSlots.professional).joinedload(Professionals.user))
            .filter(TimeSlots.slot_id == slot_id)
            .first()
        )

    def get_by_professional(
        self,
        professional_id: int,
        filters: TimeSlotFilter | None = None,
    ) -> list[TimeSlots]:
        filters = filters or TimeSlotFilter()
        query = self.db.query(TimeSlots).filter(TimeSlots.professional_id == professional_id)

        if filters.start_date:
            query = query.filter(TimeSlots.slot_date >= normalize_date(filters.start_date))
        if filters.end_date:
            query = query.filter(TimeSlots.slot_date <= normalize_date(filters.end_date))

        if filters.status is not None:
            query = query.filter(TimeSlots.status == filters.status)

        if filters.available_only:
            query = query.filter(
                TimeSlots.status == SlotStatus.AVAILABLE.value,
                TimeSlots.current_bookings < TimeSlots.max_bookings,
            )

        query = query.order_by(TimeSlots.slot_date, TimeSlots.start_time)

        if filters.limit:
            query = query.offset(((filters.page or 1) - 1) * filters.limit).limit(filters.limit)

        return query.all()

    def get_for_date(self, professional_id: int, target_date: date) -> list[TimeSlots]:
        """Every persisted slot of the professional on target_date, any status."""
        return (
            self.db.query(TimeSlots)
            .filter(
                TimeSlots.professional_id == professional_id,
                TimeSlots.slot_date == target_date.isoformat(),
            )
            .order_by(TimeSlots.start_time)
            .all()
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _check_overlap(
        self,
        professional_id: int,
        slot_date: str,
        start_time: str,
        end_time: str,
        exclude_id: int | None = None,
    ) -> None:
        query = self.db.query(TimeSlots).filter(
            TimeSlots.professional_id == professional_id,
            TimeSlots.slot_date == slot_date,
            TimeSlots.start_time < end_time,
            TimeSlots.end_time > start_time,
        )
        if exclude_id is not None:
            query = query.filter(TimeSlots.slot_id != exclude_id)

        conflict = query.first()
        if conflict:
            raise OverlapError(
                f"Slot overlaps with existing {conflict.status} slot "
                f"{conflict.start_time}-{conflict.end_time} on {slot_date} for this professional"
            )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise OverlapError(
                "A slot starting at the same time already exists for this professional"
            ) from e


def _validate(values: dict[str, Any]) -> dict[str, Any]:
    """Normalize date/times and enforce range, duration and booking bounds."""
    values = dict(values)
    values["slot_date"] = normalize_date(values["slot_date"])
    values["start_time"] = normalize_time(values["start_time"])
    values["end_time"] = normalize_time(values["end_time"])
    values["status"] = SlotStatus(values.get("status") or SlotStatus.AVAILABLE).value

    start = parse_time(values["start_time"])
    end = parse_time(values["end_time"])
    validate_range(start, end)

    if values.get("duration_minutes") is None:
        values["duration_minutes"] = end - start
    elif values["duration_minutes"] != end - start:
        raise InvalidRangeError(
            f"duration_minutes ({values['duration_minutes']}) must equal "
            f"end_time - start_time ({end - start})"
        )

    max_bookings = values.get("max_bookings")
    max_bookings = 1 if max_bookings is None else max_bookings
    current_bookings = values.get("current_bookings") or 0
    if max_bookings < 1:
        raise InvalidRangeError("max_bookings must be at least 1")
    if not 0 <= current_bookings <= max_bookings:
        raise InvalidRangeError("current_bookings must be between 0 and max_bookings")
    values["max_bookings"] = max_bookings
    values["current_bookings"] = current_bookings

    return values


def _build(professional_id: int, values: dict[str, Any]) -> TimeSlots:
    values = dict(values)
    metadata = values.pop("metadata", None)
    return TimeSlots(professional_id=professional_id, metadata_=metadata, **values)
