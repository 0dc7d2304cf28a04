# backend/agenda/services/slots/redis_store.py
"""
Redis cache of the virtual-slot grid (schedules, exceptions and breaks only).

Key format: slots:virtual:{professional_id}:{date}:{duration}
Value: JSON list of slot dicts, expiring after performance.cache_ttl seconds.
An empty list marks "generated, zero slots" (distinct from a cache miss).
"""

import json
from datetime import date

from redis import Redis

from ...schemas.time_slots import TimeSlotRead
from .config import HybridSlotConfig, get_hybrid_config


class SlotsRedisStore:
    """Redis storage wrapper for per-day virtual slot lists."""

    KEY_PREFIX = "slots:virtual"

    def __init__(self, redis: Redis, config: HybridSlotConfig | None = None):
        self.redis = redis
        self.config = config or get_hybrid_config()

    def _key(self, professional_id: int, dt: date, duration: int) -> str:
        return f"{self.KEY_PREFIX}:{professional_id}:{dt.isoformat()}:{duration}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_day_slots(
        self,
        professional_id: int,
        dt: date,
        duration: int,
        slots: list[TimeSlotRead],
    ) -> None:
        payload = json.dumps([slot.model_dump(mode="json") for slot in slots])
        ttl = self.config.performance.cache_ttl
        key = self._key(professional_id, dt, duration)
        if ttl:
            self.redis.set(key, payload, ex=ttl)
        else:
            self.redis.set(key, payload)

    # ── Read ─────────────────────────────────────────────────────────────

    def get_day_slots(
        self,
        professional_id: int,
        dt: date,
        duration: int,
    ) -> list[TimeSlotRead] | None:
        """
        Get cached virtual slots for a day.

        Returns:
            List of slots (possibly empty), or None on cache miss.
        """
        raw = self.redis.get(self._key(professional_id, dt, duration))
        if raw is None:
            return None
        return [TimeSlotRead.model_validate(item) for item in json.loads(raw)]

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_day_slots(
        self,
        professional_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached slots (every duration).

        Args:
            professional_id: Professional ID
            dates: Specific dates, or None to delete all for the professional.

        Returns:
            Number of deleted keys.
        """
        if dates:
            keys = []
            for dt in dates:
                keys.extend(self.redis.keys(f"{self.KEY_PREFIX}:{professional_id}:{dt.isoformat()}:*"))
        else:
            keys = self.redis.keys(f"{self.KEY_PREFIX}:{professional_id}:*")

        if not keys:
            return 0

        return self.redis.delete(*keys)
