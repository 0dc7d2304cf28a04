# backend/agenda/services/slots/invalidator.py
"""
Cache invalidation for generated slots.

Triggers:
✓ Schedule created/updated/toggled/deleted → invalidate all dates
✓ Availability exception created/updated/deleted → invalidate affected dates
✓ Time slot created/updated/deleted → invalidate affected dates
"""

import logging
from datetime import date

from redis import Redis
from redis.exceptions import RedisError

from ..intervals import date_range, parse_date
from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_professional_cache(
    redis: Redis | None,
    professional_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached virtual slots of a professional.

    Args:
        redis: Redis client (None = caching disabled, nothing to do)
        professional_id: Professional ID
        dates: Specific dates to invalidate, or None for every cached date

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0

    try:
        return SlotsRedisStore(redis).delete_day_slots(professional_id, dates)
    except RedisError as e:
        logger.warning(f"Failed to invalidate slot cache for professional {professional_id}: {e}")
        return 0


def get_affected_dates(date_start, date_end) -> list[date]:
    """
    Dates in [date_start, date_end], accepting date objects or "YYYY-MM-DD".

    Reversed bounds are swapped.
    """
    start, end = parse_date(date_start), parse_date(date_end)
    if start > end:
        start, end = end, start
    return list(date_range(start, end))
