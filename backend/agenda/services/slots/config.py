# backend/agenda/services/slots/config.py
"""
Hybrid slot configuration.

Defaults are overridden per environment (development / production / test);
unknown environments get the defaults.
"""

from dataclasses import dataclass, field, replace
from functools import lru_cache

from ...config import settings
from ...errors import InvalidConfigError, InvalidRangeError


@dataclass(frozen=True)
class AutoGenerateConfig:
    enabled: bool = True
    max_slots_per_day: int = 50
    min_slot_duration: int = 15
    max_slot_duration: int = 120


@dataclass(frozen=True)
class PersistenceConfig:
    """
    Attributes:
        enabled: Allow persisting generated slots and cleaning stale ones
        popularity_threshold: How many leading virtual slots persist_popular stores
        auto_cleanup: Run stale-slot cleanup when requested
        cleanup_after_days: Age (days) after which unbooked past slots are removed
    """
    enabled: bool = False
    popularity_threshold: int = 5
    auto_cleanup: bool = True
    cleanup_after_days: int = 30


@dataclass(frozen=True)
class PerformanceConfig:
    cache_enabled: bool = True
    cache_ttl: int = 300  # seconds
    max_concurrent_generations: int = 10


@dataclass(frozen=True)
class BusinessRulesConfig:
    allow_overlapping: bool = False
    respect_breaks: bool = True
    respect_vacations: bool = True
    buffer_between_slots: int = 0  # minutes


@dataclass(frozen=True)
class HybridSlotConfig:
    default_duration: int = 30
    auto_generate: AutoGenerateConfig = field(default_factory=AutoGenerateConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    business_rules: BusinessRulesConfig = field(default_factory=BusinessRulesConfig)

    def __post_init__(self):
        """Validate configuration."""
        gen = self.auto_generate
        if not gen.min_slot_duration <= self.default_duration <= gen.max_slot_duration:
            raise InvalidConfigError(
                f"default_duration must be between {gen.min_slot_duration} and "
                f"{gen.max_slot_duration} minutes, got {self.default_duration}"
            )
        if gen.max_slots_per_day < 1:
            raise InvalidConfigError(
                f"max_slots_per_day must be at least 1, got {gen.max_slots_per_day}"
            )
        if self.performance.cache_ttl < 0:
            raise InvalidConfigError(
                f"cache_ttl must be non-negative, got {self.performance.cache_ttl}"
            )
        if self.persistence.popularity_threshold < 1:
            raise InvalidConfigError(
                f"popularity_threshold must be at least 1, got {self.persistence.popularity_threshold}"
            )
        if self.persistence.cleanup_after_days < 1:
            raise InvalidConfigError(
                f"cleanup_after_days must be at least 1, got {self.persistence.cleanup_after_days}"
            )
        if self.business_rules.buffer_between_slots < 0:
            raise InvalidConfigError(
                f"buffer_between_slots must be non-negative, got {self.business_rules.buffer_between_slots}"
            )

    def check_duration(self, duration: int) -> None:
        """Reject a per-call duration outside [min_slot_duration, max_slot_duration]."""
        gen = self.auto_generate
        if not gen.min_slot_duration <= duration <= gen.max_slot_duration:
            raise InvalidRangeError(
                f"Slot duration must be between {gen.min_slot_duration} and "
                f"{gen.max_slot_duration} minutes, got {duration}"
            )


ENVIRONMENT_OVERRIDES: dict[str, dict] = {
    "development": {
        "performance": PerformanceConfig(
            cache_enabled=False, cache_ttl=60, max_concurrent_generations=5
        ),
        "persistence": PersistenceConfig(
            enabled=True, popularity_threshold=2, auto_cleanup=True, cleanup_after_days=30
        ),
    },
    "production": {
        "performance": PerformanceConfig(
            cache_enabled=True, cache_ttl=600, max_concurrent_generations=20
        ),
        "persistence": PersistenceConfig(
            enabled=True, popularity_threshold=10, auto_cleanup=True, cleanup_after_days=60
        ),
    },
    "test": {
        "performance": PerformanceConfig(
            cache_enabled=False, cache_ttl=60, max_concurrent_generations=5
        ),
        "persistence": PersistenceConfig(
            enabled=False, popularity_threshold=1, auto_cleanup=False, cleanup_after_days=1
        ),
    },
}


@lru_cache
def get_hybrid_config(environment: str | None = None) -> HybridSlotConfig:
    """
    Get hybrid slot configuration for an environment (cached per name).

    None means the environment from settings.
    """
    if environment is None:
        environment = settings.environment

    overrides = ENVIRONMENT_OVERRIDES.get(environment, {})
    return replace(HybridSlotConfig(), **overrides)
