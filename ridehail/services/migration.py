"""
Move rides out of the legacy single `rides` table into the per-state tables.
"""

import logging
from collections import Counter
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.core.exceptions import ConflictError
from ridehail.models.ride import LegacyRide, ActiveRide, CompletedRide, CancelledRide, RideStatus

logger = logging.getLogger(__name__)

TARGETS = {
    RideStatus.COMPLETED: ("completed", CompletedRide),
    RideStatus.CANCELLED: ("cancelled", CancelledRide),
}


async def migrate_legacy_rides(db: AsyncSession) -> Dict[str, int]:
    """Copy each legacy ride into the table for its status and delete the original.

    Changes are flushed, not committed: the caller commits them together with
    its own writes, so a failure leaves the legacy table untouched. Raises
    ConflictError when a rider would end up with more than one open ride.
    """
    counts = {"active": 0, "completed": 0, "cancelled": 0}

    result = await db.execute(select(LegacyRide))
    legacy_rides = list(result.scalars().all())
    logger.info(f"Found {len(legacy_rides)} legacy rides to migrate")

    open_riders = Counter(ride.user_id for ride in legacy_rides if ride.status not in TARGETS)
    if open_riders:
        existing = await db.execute(select(ActiveRide.user_id).where(ActiveRide.user_id.in_(list(open_riders))))
        open_riders.update(existing.scalars().all())
    duplicated = sorted(rider for rider, count in open_riders.items() if count > 1)
    if duplicated:
        logger.warning(f"Legacy migration aborted, riders with several open rides: {duplicated}")
        raise ConflictError("Some riders would have more than one open ride", {"riders": duplicated})

    for legacy in legacy_rides:
        label, model = TARGETS.get(legacy.status, ("active", ActiveRide))
        document = legacy.to_document()
        await db.delete(legacy)
        db.add(model(**document))
        counts[label] += 1

    await db.flush()

    logger.info(
        f"Legacy migration prepared: {counts['active']} active, "
        f"{counts['completed']} completed, {counts['cancelled']} cancelled"
    )
    return counts
