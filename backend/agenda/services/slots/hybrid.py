# backend/agenda/services/slots/hybrid.py
"""
Hybrid availability: persisted slots first, generated slots as fallback.

Entry points for anything that needs bookable times:
- get_available_slots / get_availability_for_date
- get_slot_statistics
- pre_generate_slots
- cleanup_stale_slots

Generated days are cached in Redis (performance.cache_enabled) when a
client is given.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import AvailabilityError, InvalidRangeError
from ...schemas.time_slots import SlotStatus, TimeSlotCreate, TimeSlotFilter, TimeSlotRead
from ..intervals import date_range, parse_date
from ..time_slots import TimeSlotStore
from .cleanup import CleanupResult, cleanup_past_slots
from .config import HybridSlotConfig, get_hybrid_config
from .dynamic import VIRTUAL_ID_BASE, DynamicSlotGenerator, Err
from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


@dataclass
class SlotQueryOptions:
    default_duration: int | None = None  # None = config.default_duration
    auto_generate: bool = True
    persist_popular: bool = False
    max_virtual_slots: int = 50


@dataclass
class AvailableSlots:
    slots: list[TimeSlotRead] = field(default_factory=list)
    is_generated: bool = False

    @property
    def total_count(self) -> int:
        return len(self.slots)


@dataclass
class DayAvailability:
    is_available: bool
    slots: list[TimeSlotRead]
    is_generated: bool


@dataclass
class SlotStatistics:
    total_slots: int
    existing_slots: int
    virtual_slots: int
    available_slots: int
    booked_slots: int


@dataclass
class PreGenerateResult:
    generated: int = 0
    skipped: int = 0
    errors: int = 0


class HybridSlotService:
    """Orchestrates the slot store and the dynamic generator."""

    def __init__(
        self,
        db: Session,
        config: HybridSlotConfig | None = None,
        redis: Redis | None = None,
        time_slots: TimeSlotStore | None = None,
        generator: DynamicSlotGenerator | None = None,
    ):
        self.db = db
        self.config = config or get_hybrid_config()
        self.redis = redis
        self.time_slots = time_slots or TimeSlotStore(db)
        self.generator = generator or DynamicSlotGenerator(db, self.config, time_slots=self.time_slots)

    # ── Availability ─────────────────────────────────────────────────────

    def get_available_slots(
        self,
        professional_id: int,
        start_date,
        end_date=None,
        options: SlotQueryOptions | None = None,
    ) -> AvailableSlots:
        """
        Available slots in [start_date, end_date] (end defaults to start).

        Persisted slots with free capacity win; only when there are none
        does generation kick in, capped at max_virtual_slots (itself capped
        by auto_generate.max_slots_per_day).
        """
        options = options or SlotQueryOptions()
        start, end = self._date_bounds(start_date, end_date)
        duration = options.default_duration or self.config.default_duration
        self.config.check_duration(duration)

        # Step 1: Persisted slots
        existing = self.time_slots.get_by_professional(
            professional_id,
            TimeSlotFilter(
                start_date=start.isoformat(),
                end_date=end.isoformat(),
                available_only=True,
            ),
        )
        if existing:
            return AvailableSlots(
                slots=[TimeSlotRead.model_validate(s) for s in existing],
                is_generated=False,
            )

        # Step 2: Generation
        if not (self.config.auto_generate.enabled and options.auto_generate):
            return AvailableSlots()

        limit = min(options.max_virtual_slots, self.config.auto_generate.max_slots_per_day)
        slots: list[TimeSlotRead] = []

        for day in date_range(start, end):
            if len(slots) >= limit:
                break
            day_slots = self._generate_day(
                professional_id, day, duration, first_id=VIRTUAL_ID_BASE + len(slots)
            )
            slots.extend(day_slots[: limit - len(slots)])

        # Step 3: Optionally persist the leading slots
        if options.persist_popular and slots:
            self._persist_popular(professional_id, slots)

        return AvailableSlots(slots=slots, is_generated=True)

    def get_availability_for_date(
        self,
        professional_id: int,
        target_date,
        duration: int | None = None,
    ) -> DayAvailability:
        result = self.get_available_slots(
            professional_id,
            target_date,
            target_date,
            SlotQueryOptions(default_duration=duration),
        )
        return DayAvailability(
            is_available=bool(result.slots),
            slots=result.slots,
            is_generated=result.is_generated,
        )

    def get_slot_statistics(
        self,
        professional_id: int,
        start_date,
        end_date=None,
    ) -> SlotStatistics:
        start, end = self._date_bounds(start_date, end_date)
        result = self.get_available_slots(
            professional_id, start, end, SlotQueryOptions(auto_generate=True)
        )
        existing = self.time_slots.get_by_professional(
            professional_id,
            TimeSlotFilter(start_date=start.isoformat(), end_date=end.isoformat()),
        )

        return SlotStatistics(
            total_slots=result.total_count,
            existing_slots=len(existing),
            virtual_slots=result.total_count if result.is_generated else 0,
            available_slots=sum(1 for s in result.slots if s.status == SlotStatus.AVAILABLE),
            booked_slots=sum(1 for s in existing if s.status == SlotStatus.BOOKED.value),
        )

    # ── Persistence ──────────────────────────────────────────────────────

    def pre_generate_slots(
        self,
        professional_id: int,
        start_date,
        end_date,
        duration: int | None = None,
    ) -> PreGenerateResult:
        """
        Persist generated slots for every date in range that has none yet.

        Days that already hold persisted slots count as skipped; each slot
        that fails to persist counts as an error without stopping the run.
        """
        start, end = self._date_bounds(start_date, end_date)
        duration = duration or self.config.default_duration
        self.config.check_duration(duration)
        result = PreGenerateResult()

        for day in date_range(start, end):
            if self.time_slots.get_for_date(professional_id, day):
                result.skipped += 1
                continue

            generated = self.generator.generate(professional_id, day, duration)
            if isinstance(generated, Err):
                logger.error(
                    f"Slot generation failed for professional {professional_id} on {day}: "
                    f"{generated.reason}"
                )
                result.errors += 1
                continue

            for slot in generated.slots:
                if self._persist(professional_id, slot):
                    result.generated += 1
                else:
                    result.errors += 1

        logger.info(
            f"Pre-generated slots for professional {professional_id} {start}..{end}: "
            f"generated={result.generated} skipped={result.skipped} errors={result.errors}"
        )
        return result

    def cleanup_stale_slots(
        self,
        today: date | None = None,
        dry_run: bool = False,
    ) -> CleanupResult | None:
        """
        Remove unbooked slots older than persistence.cleanup_after_days.

        Returns None when persistence or auto cleanup is disabled.
        """
        persistence = self.config.persistence
        if not (persistence.enabled and persistence.auto_cleanup):
            logger.info("Stale slot cleanup skipped: persistence or auto cleanup disabled")
            return None

        cutoff = (today or date.today()) - timedelta(days=persistence.cleanup_after_days)
        return cleanup_past_slots(self.db, cutoff, dry_run=dry_run)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _generate_day(
        self,
        professional_id: int,
        day: date,
        duration: int,
        first_id: int,
    ) -> list[TimeSlotRead]:
        """
        Virtual slots for one day.

        The schedule/exception grid is cached in Redis when enabled;
        persisted slots and appointments are filtered out on every call.
        """
        grid = None
        store = None
        if self.redis is not None and self.config.performance.cache_enabled:
            store = SlotsRedisStore(self.redis, self.config)
            try:
                grid = store.get_day_slots(professional_id, day, duration)
            except RedisError as e:
                logger.warning(f"Slot cache read failed for professional {professional_id} on {day}: {e}")

        if grid is None:
            generated = self.generator.base_slots(professional_id, day, duration)
            if isinstance(generated, Err):
                logger.error(
                    f"Slot generation failed for professional {professional_id} on {day}: {generated.reason}"
                )
                return []
            grid = generated.slots

            if store is not None:
                try:
                    store.store_day_slots(professional_id, day, duration, grid)
                except RedisError as e:
                    logger.warning(f"Slot cache write failed for professional {professional_id} on {day}: {e}")

        result = self.generator.exclude_taken(professional_id, day, grid, first_id=first_id)
        if isinstance(result, Err):
            logger.error(
                f"Slot filtering failed for professional {professional_id} on {day}: {result.reason}"
            )
            return []
        return result.slots

    def _persist_popular(self, professional_id: int, slots: list[TimeSlotRead]) -> int:
        threshold = self.config.persistence.popularity_threshold
        persisted = sum(1 for slot in slots[:threshold] if self._persist(professional_id, slot))
        logger.info(f"Persisted {persisted} popular slots for professional {professional_id}")
        return persisted

    def _persist(self, professional_id: int, slot: TimeSlotRead) -> bool:
        try:
            self.time_slots.create(
                TimeSlotCreate(
                    professional_id=professional_id,
                    slot_date=slot.slot_date,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    duration_minutes=slot.duration_minutes,
                    status=SlotStatus.AVAILABLE,
                    max_bookings=1,
                )
            )
            return True
        except (AvailabilityError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.warning(
                f"Failed to persist slot {slot.slot_date} {slot.start_time}-{slot.end_time} "
                f"for professional {professional_id}: {e}"
            )
            return False

    @staticmethod
    def _date_bounds(start_date, end_date) -> tuple[date, date]:
        start = parse_date(start_date)
        end = parse_date(end_date) if end_date else start
        if start > end:
            raise InvalidRangeError("Start date must be on or before end date")
        return start, end
