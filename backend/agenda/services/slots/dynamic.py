# backend/agenda/services/slots/dynamic.py
"""
Dynamic slot generation for one professional on one date.

Produces virtual slots (not persisted) in two stages:

Grid (depends only on availability configuration, safe to cache):
✓ active schedules valid on the date (weekday match, validity range)
✓ availability exceptions (unavailable / vacation blank the day,
  timed exceptions remove overlapping windows)
✓ schedule breaks (business_rules.respect_breaks)

Live filter (re-applied on every read):
✓ persisted slots (a window whose start already exists is skipped)
✓ active appointments (scheduled / confirmed)

Never raises: failures come back as Err(reason) and the orchestrator
decides how to degrade.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Union

from sqlalchemy.orm import Session

from ...models.generated import Appointments, Professionals
from ...schemas.availability_exceptions import ExceptionType
from ...schemas.time_slots import SlotStatus, TimeSlotRead
from ..availability_exceptions import AvailabilityExceptionStore
from ..intervals import format_time, intervals_overlap, parse_time
from ..schedules import ScheduleStore
from ..time_slots import TimeSlotStore
from .config import HybridSlotConfig, get_hybrid_config

logger = logging.getLogger(__name__)

# Placeholder ids of virtual slots start here
VIRTUAL_ID_BASE = 1_000_000

ACTIVE_APPOINTMENT_STATUSES = ("scheduled", "confirmed")


@dataclass(frozen=True)
class Ok:
    slots: list[TimeSlotRead]


@dataclass(frozen=True)
class Err:
    reason: str


GenerationResult = Union[Ok, Err]


class DynamicSlotGenerator:
    """Compute candidate slots for a single date without writing anything."""

    def __init__(
        self,
        db: Session,
        config: HybridSlotConfig | None = None,
        schedules: ScheduleStore | None = None,
        exceptions: AvailabilityExceptionStore | None = None,
        time_slots: TimeSlotStore | None = None,
    ):
        self.db = db
        self.config = config or get_hybrid_config()
        self.schedules = schedules or ScheduleStore(db)
        self.exceptions = exceptions or AvailabilityExceptionStore(db)
        self.time_slots = time_slots or TimeSlotStore(db)

    def generate(
        self,
        professional_id: int,
        target_date: date,
        duration: int,
        first_id: int = VIRTUAL_ID_BASE,
    ) -> GenerationResult:
        """
        Generate virtual slots for target_date.

        Returns:
            Ok(slots) in chronological order (possibly empty), or
            Err(reason) when reading the stores failed.
        """
        grid = self.base_slots(professional_id, target_date, duration)
        if isinstance(grid, Err):
            return grid
        return self.exclude_taken(professional_id, target_date, grid.slots, first_id)

    def base_slots(
        self,
        professional_id: int,
        target_date: date,
        duration: int,
    ) -> GenerationResult:
        """Windows allowed by schedules, exceptions and breaks alone."""
        try:
            return Ok(self._base_slots(professional_id, target_date, duration))
        except Exception as e:
            return Err(f"{type(e).__name__}: {e}")

    def exclude_taken(
        self,
        professional_id: int,
        target_date: date,
        slots: list[TimeSlotRead],
        first_id: int = VIRTUAL_ID_BASE,
    ) -> GenerationResult:
        """
        Drop windows already persisted or overlapping an active appointment.

        Survivors are renumbered from first_id.
        """
        try:
            return Ok(self._exclude_taken(professional_id, target_date, slots, first_id))
        except Exception as e:
            return Err(f"{type(e).__name__}: {e}")

    def _base_slots(
        self,
        professional_id: int,
        target_date: date,
        duration: int,
    ) -> list[TimeSlotRead]:
        if duration < 1:
            raise ValueError(f"duration must be positive, got {duration}")

        # Step 1: Professional and schedules for the weekday
        if self.db.get(Professionals, professional_id) is None:
            return []

        schedules = self.schedules.get_active_for_date(professional_id, target_date)
        if not schedules:
            return []

        # Step 2: Exceptions; unavailable (and vacation, if respected) block the day
        exceptions = self.exceptions.get_for_date(professional_id, target_date)
        rules = self.config.business_rules
        for exc in exceptions:
            if exc.type == ExceptionType.UNAVAILABLE.value:
                return []
            if exc.type == ExceptionType.VACATION.value and rules.respect_vacations:
                return []

        blocked = [
            (parse_time(exc.start_time), parse_time(exc.end_time))
            for exc in exceptions
            if exc.start_time and exc.end_time
        ]

        # Step 3: Slide the window over every schedule
        step = duration + rules.buffer_between_slots
        slot_date = target_date.isoformat()
        slots: list[TimeSlotRead] = []

        for schedule in schedules:
            start = parse_time(schedule.start_time)
            end = parse_time(schedule.end_time)

            schedule_blocked = list(blocked)
            if rules.respect_breaks and schedule.has_break and schedule.break_start_time:
                schedule_blocked.append(
                    (parse_time(schedule.break_start_time), parse_time(schedule.break_end_time))
                )

            t = start
            while t + duration <= end:
                if not _overlaps_any(t, t + duration, schedule_blocked):
                    slots.append(
                        TimeSlotRead(
                            slot_id=VIRTUAL_ID_BASE + len(slots),
                            professional_id=professional_id,
                            slot_date=slot_date,
                            start_time=format_time(t),
                            end_time=format_time(t + duration),
                            duration_minutes=duration,
                            status=SlotStatus.AVAILABLE,
                            max_bookings=1,
                            current_bookings=0,
                        )
                    )
                t += step

        return slots

    def _exclude_taken(
        self,
        professional_id: int,
        target_date: date,
        slots: list[TimeSlotRead],
        first_id: int,
    ) -> list[TimeSlotRead]:
        if not slots:
            return []

        persisted_starts = {
            s.start_time for s in self.time_slots.get_for_date(professional_id, target_date)
        }
        appointments = self._appointment_intervals(professional_id, target_date)

        free = [
            slot
            for slot in slots
            if slot.start_time not in persisted_starts
            and not _overlaps_any(parse_time(slot.start_time), parse_time(slot.end_time), appointments)
        ]
        return [
            slot.model_copy(update={"slot_id": first_id + i})
            for i, slot in enumerate(free)
        ]

    def _appointment_intervals(
        self,
        professional_id: int,
        target_date: date,
    ) -> list[tuple[int, int]]:
        """Minute intervals occupied by active appointments on target_date."""
        # Text range on the local wall-clock date, offsets are not converted
        appointments = (
            self.db.query(Appointments)
            .filter(
                Appointments.professional_id == professional_id,
                Appointments.scheduled_at >= target_date.isoformat(),
                Appointments.scheduled_at < (target_date + timedelta(days=1)).isoformat(),
                Appointments.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            )
            .all()
        )

        intervals = []
        for appointment in appointments:
            try:
                dt = datetime.fromisoformat(appointment.scheduled_at)
            except (TypeError, ValueError):
                logger.warning(
                    f"Skipping appointment {appointment.appointment_id}: "
                    f"unparseable scheduled_at {appointment.scheduled_at!r}"
                )
                continue
            start = dt.hour * 60 + dt.minute
            intervals.append((start, start + (appointment.duration_minutes or 0)))

        return intervals


def _overlaps_any(start: int, end: int, intervals: list[tuple[int, int]]) -> bool:
    return any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in intervals)
