# backend/agenda/services/slots/cleanup.py
"""
Stale slot cleanup.

Deletes persisted slots dated before a cutoff that were never booked
(status available / blocked / cancelled). Booked slots are kept.
Runs in batches so a large backlog does not hold one long transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.generated import TimeSlots
from ...schemas.time_slots import SlotStatus

logger = logging.getLogger(__name__)

STALE_STATUSES = (
    SlotStatus.AVAILABLE.value,
    SlotStatus.BLOCKED.value,
    SlotStatus.CANCELLED.value,
)


@dataclass
class CleanupResult:
    deleted: int = 0
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False


def cleanup_past_slots(
    db: Session,
    cutoff: date,
    dry_run: bool = False,
    batch_size: int = 100,
) -> CleanupResult:
    """
    Delete unbooked slots with slot_date < cutoff.

    With dry_run, nothing is deleted and `deleted` is the number of slots
    that would be.
    """
    result = CleanupResult(dry_run=dry_run)
    stale = db.query(TimeSlots).filter(
        TimeSlots.slot_date < cutoff.isoformat(),
        TimeSlots.status.in_(STALE_STATUSES),
    )

    if dry_run:
        result.deleted = stale.count()
        logger.info(f"[dry run] {result.deleted} slots before {cutoff} would be deleted")
        return result

    try:
        while True:
            ids = [
                row.slot_id
                for row in stale.with_entities(TimeSlots.slot_id)
                .order_by(TimeSlots.slot_id)
                .limit(batch_size)
                .all()
            ]
            if not ids:
                break

            deleted = (
                db.query(TimeSlots)
                .filter(TimeSlots.slot_id.in_(ids))
                .delete(synchronize_session=False)
            )
            db.commit()
            result.deleted += deleted
            logger.info(f"Deleted {deleted} stale slots in this batch")

            if len(ids) < batch_size:
                break
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Stale slot cleanup failed after {result.deleted} deletions: {e}")
        result.errors.append(f"Error cleaning time slots: {e}")

    logger.info(f"Stale slot cleanup before {cutoff}: {result.deleted} deleted")
    return result
