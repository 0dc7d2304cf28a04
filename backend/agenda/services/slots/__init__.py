# backend/agenda/services/slots/__init__.py
"""
Slots availability module.

Dynamic generation: virtual slots for one date (optionally cached in Redis)
Hybrid orchestration: persisted slots first, generation as fallback
"""

from .config import HybridSlotConfig, get_hybrid_config
from .dynamic import DynamicSlotGenerator, Err, Ok
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_professional_cache, get_affected_dates
from .cleanup import CleanupResult, cleanup_past_slots
from .hybrid import HybridSlotService, SlotQueryOptions

__all__ = [
    "HybridSlotConfig",
    "get_hybrid_config",
    "DynamicSlotGenerator",
    "Ok",
    "Err",
    "SlotsRedisStore",
    "invalidate_professional_cache",
    "get_affected_dates",
    "CleanupResult",
    "cleanup_past_slots",
    "HybridSlotService",
    "SlotQueryOptions",
]
