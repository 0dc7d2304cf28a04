"""
Tests for services/slots/hybrid.py, cleanup.py, redis_store.py and invalidator.py
"""

import json
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from agenda.errors import InvalidRangeError
from agenda.schemas.time_slots import TimeSlotUpdate
from agenda.services.slots.config import (
    AutoGenerateConfig,
    HybridSlotConfig,
    PerformanceConfig,
    PersistenceConfig,
)
from agenda.services.slots.cleanup import cleanup_past_slots
from agenda.services.slots.dynamic import VIRTUAL_ID_BASE, DynamicSlotGenerator, Err
from agenda.services.slots.hybrid import HybridSlotService, SlotQueryOptions
from agenda.services.slots.invalidator import get_affected_dates, invalidate_professional_cache
from agenda.services.time_slots import TimeSlotStore

from factories import (
    MONDAY,
    NEXT_MONDAY,
    add_appointment,
    add_professional,
    add_schedule,
    add_slot,
    make_sessionmaker,
)

NO_CACHE = PerformanceConfig(cache_enabled=False)


class HybridTestCase(unittest.TestCase):

    def setUp(self):
        self.db = make_sessionmaker()()
        self.pid = add_professional(self.db).professional_id
        add_schedule(self.db, self.pid, "monday", "09:00", "12:00")

    def tearDown(self):
        self.db.close()

    def service(self, config=None, **kwargs) -> HybridSlotService:
        return HybridSlotService(self.db, config or HybridSlotConfig(performance=NO_CACHE), **kwargs)


class TestAvailableSlots(HybridTestCase):

    def test_persisted_slots_short_circuit_generation(self):
        add_slot(self.db, self.pid, MONDAY, "15:00", "15:30")
        generator = MagicMock(spec=DynamicSlotGenerator)

        result = self.service(generator=generator).get_available_slots(self.pid, MONDAY)

        self.assertFalse(result.is_generated)
        self.assertEqual([s.start_time for s in result.slots], ["15:00"])
        generator.base_slots.assert_not_called()

    def test_full_slots_do_not_short_circuit(self):
        add_slot(self.db, self.pid, MONDAY, "15:00", "15:30", status="booked", current_bookings=1)
        result = self.service().get_available_slots(self.pid, MONDAY)
        self.assertTrue(result.is_generated)
        self.assertEqual(result.total_count, 6)

    def test_generates_across_range_with_sequential_ids(self):
        result = self.service().get_available_slots(self.pid, MONDAY, NEXT_MONDAY)
        self.assertTrue(result.is_generated)
        self.assertEqual(result.total_count, 12)
        self.assertEqual(
            [s.slot_id for s in result.slots],
            list(range(VIRTUAL_ID_BASE, VIRTUAL_ID_BASE + 12)),
        )
        self.assertEqual(result.slots[6].slot_date, NEXT_MONDAY)

    def test_truncates_at_max_virtual_slots(self):
        result = self.service().get_available_slots(
            self.pid, MONDAY, NEXT_MONDAY, SlotQueryOptions(max_virtual_slots=8)
        )
        self.assertEqual(result.total_count, 8)
        self.assertEqual(result.slots[-1].slot_date, NEXT_MONDAY)
        self.assertEqual(result.slots[-1].start_time, "09:30")

    def test_max_virtual_slots_capped_by_config(self):
        config = HybridSlotConfig(
            auto_generate=AutoGenerateConfig(max_slots_per_day=3), performance=NO_CACHE
        )
        result = self.service(config).get_available_slots(self.pid, MONDAY)
        self.assertEqual(result.total_count, 3)

    def test_auto_generate_disabled(self):
        result = self.service().get_available_slots(
            self.pid, MONDAY, options=SlotQueryOptions(auto_generate=False)
        )
        self.assertEqual((result.slots, result.is_generated), ([], False))

        config = HybridSlotConfig(auto_generate=AutoGenerateConfig(enabled=False), performance=NO_CACHE)
        result = self.service(config).get_available_slots(self.pid, MONDAY)
        self.assertEqual((result.slots, result.is_generated), ([], False))

    def test_generator_error_degrades_to_empty(self):
        generator = MagicMock(spec=DynamicSlotGenerator)
        generator.base_slots.return_value = Err("OperationalError: db down")

        with self.assertLogs("agenda.services.slots.hybrid", level="ERROR") as logs:
            result = self.service(generator=generator).get_available_slots(self.pid, MONDAY)

        self.assertEqual(result.slots, [])
        self.assertIn("db down", logs.output[0])

    def test_duration_outside_bounds(self):
        with self.assertRaises(InvalidRangeError):
            self.service().get_available_slots(
                self.pid, MONDAY, options=SlotQueryOptions(default_duration=5)
            )

    def test_inverted_range(self):
        with self.assertRaises(InvalidRangeError):
            self.service().get_available_slots(self.pid, NEXT_MONDAY, MONDAY)

    def test_persist_popular(self):
        config = HybridSlotConfig(
            persistence=PersistenceConfig(enabled=True, popularity_threshold=2),
            performance=NO_CACHE,
        )
        service = self.service(config)

        result = service.get_available_slots(
            self.pid, MONDAY, options=SlotQueryOptions(persist_popular=True)
        )
        self.assertTrue(result.is_generated)

        persisted = TimeSlotStore(self.db).get_by_professional(self.pid)
        self.assertEqual([s.start_time for s in persisted], ["09:00", "09:30"])

        again = service.get_available_slots(self.pid, MONDAY)
        self.assertFalse(again.is_generated)
        self.assertEqual(again.total_count, 2)

    def test_persist_popular_tolerates_failures(self):
        # 09:15-09:45 conflicts with the 09:00 and 09:30 candidates but is not available
        add_slot(self.db, self.pid, MONDAY, "09:15", "09:45", status="blocked")
        config = HybridSlotConfig(
            persistence=PersistenceConfig(popularity_threshold=3), performance=NO_CACHE
        )
        self.service(config).get_available_slots(
            self.pid, MONDAY, options=SlotQueryOptions(persist_popular=True)
        )
        starts = [s.start_time for s in TimeSlotStore(self.db).get_by_professional(self.pid)]
        self.assertEqual(starts, ["09:15", "10:00"])

    def test_availability_for_date(self):
        service = self.service()
        day = service.get_availability_for_date(self.pid, MONDAY, 60)
        self.assertTrue(day.is_available)
        self.assertTrue(day.is_generated)
        self.assertEqual(len(day.slots), 3)

        tuesday = service.get_availability_for_date(self.pid, "2024-01-02")
        self.assertFalse(tuesday.is_available)


class TestStatisticsAndPreGeneration(HybridTestCase):

    def test_statistics_with_virtual_slots(self):
        add_slot(self.db, self.pid, MONDAY, "15:00", "15:30", status="booked", current_bookings=1)
        stats = self.service().get_slot_statistics(self.pid, MONDAY)

        self.assertEqual(stats.total_slots, 6)
        self.assertEqual(stats.virtual_slots, 6)
        self.assertEqual(stats.available_slots, 6)
        self.assertEqual(stats.existing_slots, 1)
        self.assertEqual(stats.booked_slots, 1)

    def test_statistics_with_persisted_slots(self):
        add_slot(self.db, self.pid, MONDAY, "09:00", "09:30")
        add_slot(self.db, self.pid, MONDAY, "09:30", "10:00", status="booked", current_bookings=1)
        stats = self.service().get_slot_statistics(self.pid, MONDAY, MONDAY)

        self.assertEqual(stats.total_slots, 1)
        self.assertEqual(stats.virtual_slots, 0)
        self.assertEqual(stats.existing_slots, 2)
        self.assertEqual(stats.booked_slots, 1)

    def test_pre_generation_is_idempotent(self):
        service = self.service()

        first = service.pre_generate_slots(self.pid, MONDAY, "2024-01-07", 30)
        self.assertEqual((first.generated, first.skipped, first.errors), (6, 0, 0))

        second = service.pre_generate_slots(self.pid, MONDAY, "2024-01-07", 30)
        self.assertEqual((second.generated, second.skipped, second.errors), (0, 1, 0))

        self.assertEqual(len(TimeSlotStore(self.db).get_by_professional(self.pid)), 6)

    def test_pre_generation_counts_generator_errors(self):
        generator = MagicMock(spec=DynamicSlotGenerator)
        generator.generate.return_value = Err("boom")
        result = self.service(generator=generator).pre_generate_slots(self.pid, MONDAY, "2024-01-03")
        self.assertEqual((result.generated, result.skipped, result.errors), (0, 0, 3))


class TestCleanup(HybridTestCase):

    def setUp(self):
        super().setUp()
        add_slot(self.db, self.pid, "2024-01-01", "09:00", "09:30")
        add_slot(self.db, self.pid, "2024-01-01", "09:30", "10:00", status="cancelled")
        add_slot(self.db, self.pid, "2024-01-01", "10:00", "10:30", status="booked", current_bookings=1)
        add_slot(self.db, self.pid, "2024-02-15", "09:00", "09:30")

    def _remaining(self):
        return [
            (s.slot_date, s.start_time)
            for s in TimeSlotStore(self.db).get_by_professional(self.pid)
        ]

    def test_cleanup_past_slots(self):
        result = cleanup_past_slots(self.db, date(2024, 2, 1), batch_size=1)
        self.assertEqual(result.deleted, 2)
        self.assertEqual(result.errors, [])
        self.assertEqual(self._remaining(), [("2024-01-01", "10:00"), ("2024-02-15", "09:00")])

    def test_cleanup_dry_run(self):
        result = cleanup_past_slots(self.db, date(2024, 2, 1), dry_run=True)
        self.assertEqual(result.deleted, 2)
        self.assertTrue(result.dry_run)
        self.assertEqual(len(self._remaining()), 4)

    def test_cleanup_uses_retention(self):
        config = HybridSlotConfig(
            persistence=PersistenceConfig(enabled=True, auto_cleanup=True, cleanup_after_days=30),
            performance=NO_CACHE,
        )
        result = self.service(config).cleanup_stale_slots(today=date(2024, 3, 1))
        # cutoff 2024-01-31
        self.assertEqual(result.deleted, 2)

    def test_cleanup_disabled(self):
        config = HybridSlotConfig(persistence=PersistenceConfig(enabled=False), performance=NO_CACHE)
        self.assertIsNone(self.service(config).cleanup_stale_slots(today=date(2024, 3, 1)))
        self.assertEqual(len(self._remaining()), 4)


class TestSlotCache(HybridTestCase):

    def setUp(self):
        super().setUp()
        self.redis = MagicMock()
        self.redis.get.return_value = None
        self.config = HybridSlotConfig(performance=PerformanceConfig(cache_enabled=True, cache_ttl=120))

    def test_cache_miss_stores_generated_day(self):
        result = self.service(self.config, redis=self.redis).get_available_slots(self.pid, MONDAY)

        self.assertEqual(result.total_count, 6)
        self.redis.get.assert_called_once_with(f"slots:virtual:{self.pid}:2024-01-01:30")
        key, payload = self.redis.set.call_args.args
        self.assertEqual(key, f"slots:virtual:{self.pid}:2024-01-01:30")
        self.assertEqual(self.redis.set.call_args.kwargs, {"ex": 120})
        self.assertEqual(len(json.loads(payload)), 6)

    def test_cache_hit_skips_grid_generation(self):
        cached = [
            {
                "slot_id": 1,
                "professional_id": self.pid,
                "slot_date": MONDAY,
                "start_time": "16:00",
                "end_time": "16:30",
                "duration_minutes": 30,
                "status": "available",
                "max_bookings": 1,
                "current_bookings": 0,
            }
        ]
        self.redis.get.return_value = json.dumps(cached).encode()
        service = self.service(self.config, redis=self.redis)

        with patch.object(service.generator, "base_slots") as base_slots:
            result = service.get_available_slots(self.pid, MONDAY)

        base_slots.assert_not_called()
        self.assertEqual([s.start_time for s in result.slots], ["16:00"])
        self.assertEqual(result.slots[0].slot_id, VIRTUAL_ID_BASE)

    def test_cached_empty_day_is_a_hit(self):
        self.redis.get.return_value = b"[]"
        service = self.service(self.config, redis=self.redis)

        with patch.object(service.generator, "base_slots") as base_slots:
            result = service.get_available_slots(self.pid, MONDAY)

        self.assertEqual(result.slots, [])
        base_slots.assert_not_called()

    def _dict_backed_redis(self):
        cache = {}
        self.redis.get.side_effect = cache.get
        self.redis.set.side_effect = lambda key, value, ex=None: cache.__setitem__(key, value)
        return cache

    def test_cached_day_excludes_slots_booked_later(self):
        cache = self._dict_backed_redis()
        config = HybridSlotConfig(
            persistence=PersistenceConfig(enabled=True, popularity_threshold=5),
            performance=PerformanceConfig(cache_enabled=True, cache_ttl=600),
        )
        service = self.service(config, redis=self.redis)
        store = TimeSlotStore(self.db)

        first = service.get_available_slots(
            self.pid, MONDAY, options=SlotQueryOptions(persist_popular=True)
        )
        self.assertEqual(first.total_count, 6)
        self.assertEqual(len(cache), 1)

        for slot in store.get_by_professional(self.pid):
            store.update(slot.slot_id, TimeSlotUpdate(status="booked", current_bookings=1))

        again = service.get_available_slots(self.pid, MONDAY)
        self.assertTrue(again.is_generated)
        self.assertEqual([s.start_time for s in again.slots], ["11:30"])
        self.assertEqual(again.slots[0].slot_id, VIRTUAL_ID_BASE)
        self.assertEqual(len(cache), 1)

    def test_cached_day_excludes_new_appointments(self):
        self._dict_backed_redis()
        service = self.service(self.config, redis=self.redis)
        self.assertEqual(service.get_available_slots(self.pid, MONDAY).total_count, 6)

        add_appointment(self.db, self.pid, "2024-01-01T09:00:00", duration=60)

        starts = [s.start_time for s in service.get_available_slots(self.pid, MONDAY).slots]
        self.assertEqual(starts, ["10:00", "10:30", "11:00", "11:30"])
        self.assertEqual(self.redis.set.call_count, 1)

    def test_cache_failure_falls_back_to_generation(self):
        self.redis.get.side_effect = RedisConnectionError("refused")
        self.redis.set.side_effect = RedisConnectionError("refused")

        with self.assertLogs("agenda.services.slots.hybrid", level="WARNING"):
            result = self.service(self.config, redis=self.redis).get_available_slots(self.pid, MONDAY)

        self.assertEqual(result.total_count, 6)

    def test_cache_disabled_ignores_redis(self):
        self.service(redis=self.redis).get_available_slots(self.pid, MONDAY)
        self.redis.get.assert_not_called()

    def test_invalidate_professional_cache(self):
        self.redis.keys.return_value = [b"slots:virtual:1:2024-01-01:30"]
        self.redis.delete.return_value = 1

        self.assertEqual(invalidate_professional_cache(self.redis, 1), 1)
        self.redis.keys.assert_called_with("slots:virtual:1:*")

        invalidate_professional_cache(self.redis, 1, [date(2024, 1, 1), date(2024, 1, 2)])
        self.redis.keys.assert_any_call("slots:virtual:1:2024-01-01:*")
        self.redis.keys.assert_any_call("slots:virtual:1:2024-01-02:*")

        self.assertEqual(invalidate_professional_cache(None, 1), 0)

    def test_invalidate_swallows_redis_errors(self):
        self.redis.keys.side_effect = RedisConnectionError("refused")
        self.assertEqual(invalidate_professional_cache(self.redis, 1), 0)

    def test_get_affected_dates(self):
        self.assertEqual(
            get_affected_dates("2024-01-03", "2024-01-01"),
            [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)],
        )


if __name__ == "__main__":
    unittest.main()
