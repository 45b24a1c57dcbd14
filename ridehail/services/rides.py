"""
Ride lifecycle: request, accept, arrive, start, complete, cancel and rate.

State changes on the active ride are conditional updates (or guarded deletes)
whose WHERE clause repeats the expected state, so two actors racing on the
same ride cannot both succeed: the database applies one write and the other
sees `rowcount == 0`. Terminal transitions delete the active row and insert
its archived copy in the same transaction.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type
from zoneinfo import ZoneInfo

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.core.cache import ride_history_cache
from ridehail.core.config import settings
from ridehail.core.database import utcnow, as_utc
from ridehail.core.exceptions import (
    RideHailError, NotFoundError, RideNotFoundError, RideConflictError,
    InvalidTransitionError, PermissionDeniedError, ConflictError, ServiceUnavailableError,
)
from ridehail.maps.client import MapsClient
from ridehail.models.catalog import VehicleCategory
from ridehail.models.ride import (
    ActiveRide, CompletedRide, CancelledRide, Rating, RideStatus, CancelledBy,
    PaymentMethod, CANCELLABLE_STATUSES,
)
from ridehail.models.system import Notification, SystemSetting, WEATHER_SETTING
from ridehail.models.user import User, Driver, UserRole, ApprovalStatus, new_id
from ridehail.pricing.calculator import PricingRules, calculate_dynamic_price

logger = logging.getLogger(__name__)

ARCHIVE_LOOKUP_ORDER: Sequence[Type] = (ActiveRide, CompletedRide, CancelledRide)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def pricing_now() -> datetime:
    """Wall-clock time in the pricing timezone."""
    return datetime.now(ZoneInfo(settings.PRICING_TIMEZONE))


async def is_raining(db: AsyncSession) -> bool:
    setting = await db.get(SystemSetting, WEATHER_SETTING)
    if setting is None or not isinstance(setting.value, dict):
        return False
    return bool(setting.value.get("isRaining", False))


def _notify(db: AsyncSession, user_id: str, ride_id: str, title: str, body: Optional[str] = None) -> None:
    db.add(Notification(user_id=user_id, ride_id=ride_id, title=title, body=body))


async def get_approved_driver(db: AsyncSession, driver_id: str, require_online: bool = True) -> Driver:
    driver = await db.get(Driver, driver_id, populate_existing=True)
    if driver is None:
        raise NotFoundError("Driver not found")
    if driver.status != ApprovalStatus.APPROVED:
        raise PermissionDeniedError("Driver is not approved", {"status": driver.status.value})
    if require_online and not driver.is_online:
        raise PermissionDeniedError("Driver must be online")
    return driver


async def _get_active_ride(db: AsyncSession, ride_id: str) -> ActiveRide:
    ride = await db.get(ActiveRide, ride_id, populate_existing=True)
    if ride is None:
        raise RideNotFoundError("This ride is no longer available")
    return ride


async def _explain_rejected_write(
    db: AsyncSession,
    ride_id: str,
    driver_id: Optional[str],
    expected: RideStatus,
) -> RideHailError:
    """Work out why a conditional write on an active ride matched no row."""
    await db.rollback()
    ride = await db.get(ActiveRide, ride_id, populate_existing=True)
    if ride is None:
        return RideNotFoundError("This ride is no longer available")
    if driver_id is not None and ride.driver_id is not None and ride.driver_id != driver_id:
        return PermissionDeniedError("Ride is assigned to another driver")
    if ride.status != expected:
        return InvalidTransitionError(
            f"Ride is {ride.status.value}, expected {expected.value}",
            {"status": ride.status.value},
        )
    return RideConflictError("Ride changed while updating, try again")


async def locate_ride(db: AsyncSession, ride_id: str):
    """Find a ride in the active table, then the completed and cancelled archives."""
    for model in ARCHIVE_LOOKUP_ORDER:
        ride = await db.get(model, ride_id, populate_existing=True)
        if ride is not None:
            return ride
    raise RideNotFoundError("Ride not found")


async def request_ride(
    db: AsyncSession,
    maps: MapsClient,
    rider_id: str,
    origin: Dict[str, Any],
    destination: Dict[str, Any],
    category_id: str,
    payment_method: PaymentMethod = PaymentMethod.PIX,
    now: Optional[datetime] = None,
) -> ActiveRide:
    """Price and store a new pending ride for a passenger."""
    rider = await db.get(User, rider_id)
    if rider is None or rider.role != UserRole.PASSENGER:
        raise NotFoundError("Rider not found")

    # Concurrent requests are settled by the unique rider key on active_rides
    open_ride = await db.execute(select(ActiveRide.id).where(ActiveRide.user_id == rider_id).limit(1))
    if open_ride.scalar_one_or_none() is not None:
        raise ConflictError("Rider already has a ride in progress")

    category = await db.get(VehicleCategory, category_id)
    if category is None or not category.is_active:
        raise NotFoundError("Vehicle category not found")

    trip = await maps.estimate_trip(origin["coordinates"], destination["coordinates"])
    price = calculate_dynamic_price(
        PricingRules.from_category(category),
        trip["distance"],
        now or pricing_now(),
        is_raining=await is_raining(db),
    )

    document = {
        "id": new_id(),
        "user_id": rider.id,
        "user_name": rider.name or "Usuário",
        "origin": origin,
        "destination": destination,
        "status": RideStatus.PENDING,
        "created_at": utcnow(),
        "distance": trip["distance"],
        "duration": trip["duration"],
        "price": price,
        "driver_id": None,
        "driver": None,
        "vehicle_category": category.id,
        "payment_method": payment_method,
    }

    max_retries = settings.RIDE_WRITE_MAX_RETRIES
    for attempt in range(max_retries + 1):
        ride = ActiveRide(**document)
        db.add(ride)
        try:
            await db.commit()
        except IntegrityError:
            # Another request for this rider committed first
            await db.rollback()
            logger.info(f"Rider {rider_id} already has an open ride, rejecting new request")
            raise ConflictError("Rider already has a ride in progress")
        except OperationalError as e:
            await db.rollback()
            if attempt >= max_retries:
                logger.error(f"Giving up creating ride for rider {rider_id} after {attempt + 1} attempts: {e}")
                raise ServiceUnavailableError("System temporarily unavailable, try again in a few minutes")
            delay = settings.RIDE_WRITE_BACKOFF_SECONDS * (2 ** attempt)
            logger.warning(f"Database busy creating ride (attempt {attempt + 1}), retrying in {delay}s")
            await asyncio.sleep(delay)
            continue
        await db.refresh(ride)
        logger.info(f"Ride requested: {ride.id} by rider {rider_id} ({price:.2f})")
        return ride


async def accept_ride(db: AsyncSession, ride_id: str, driver_id: str, now: Optional[datetime] = None) -> ActiveRide:
    """Assign a pending ride to a driver; exactly one concurrent caller wins."""
    driver = await get_approved_driver(db, driver_id)

    result = await db.execute(
        update(ActiveRide)
        .where(
            ActiveRide.id == ride_id,
            ActiveRide.status == RideStatus.PENDING,
            ActiveRide.driver_id.is_(None),
        )
        .values(
            status=RideStatus.ACCEPTED,
            driver_id=driver.id,
            driver=driver.snapshot(),
            accepted_at=now or utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        ride = await db.get(ActiveRide, ride_id, populate_existing=True)
        if ride is None:
            raise RideNotFoundError("This ride is no longer available")
        logger.info(f"Driver {driver_id} lost ride {ride_id} to {ride.driver_id}")
        raise RideConflictError(
            "This ride was already accepted by another driver",
            {"status": ride.status.value},
        )

    ride = await _get_active_ride(db, ride_id)
    _notify(db, ride.user_id, ride.id, "Motorista a caminho", f"{driver.name} aceitou sua corrida")
    await db.commit()

    logger.info(f"Ride accepted: {ride_id} by driver {driver_id}")
    return ride


async def notify_arrival(db: AsyncSession, ride_id: str, driver_id: str) -> ActiveRide:
    result = await db.execute(
        update(ActiveRide)
        .where(
            ActiveRide.id == ride_id,
            ActiveRide.status == RideStatus.ACCEPTED,
            ActiveRide.driver_id == driver_id,
        )
        .values(driver_arrived=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise await _explain_rejected_write(db, ride_id, driver_id, RideStatus.ACCEPTED)

    ride = await _get_active_ride(db, ride_id)
    _notify(db, ride.user_id, ride.id, "Motorista chegou", "Seu motorista está no local de embarque")
    await db.commit()

    logger.info(f"Driver {driver_id} arrived for ride {ride_id}")
    return ride


async def start_ride(db: AsyncSession, ride_id: str, driver_id: str, now: Optional[datetime] = None) -> ActiveRide:
    result = await db.execute(
        update(ActiveRide)
        .where(
            ActiveRide.id == ride_id,
            ActiveRide.status == RideStatus.ACCEPTED,
            ActiveRide.driver_id == driver_id,
        )
        .values(status=RideStatus.IN_PROGRESS, started_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise await _explain_rejected_write(db, ride_id, driver_id, RideStatus.ACCEPTED)

    ride = await _get_active_ride(db, ride_id)
    _notify(db, ride.user_id, ride.id, "Corrida iniciada")
    await db.commit()

    logger.info(f"Ride started: {ride_id} by driver {driver_id}")
    return ride


async def _move_ride(db: AsyncSession, ride: ActiveRide, target: Type, changes: Dict[str, Any]):
    """Delete the active row (guarded on the state we read) and insert the archived copy.

    Both statements run in the caller's transaction; nothing is committed here.
    """
    document = ride.to_document()
    guard = [ActiveRide.id == ride.id, ActiveRide.status == ride.status]
    if ride.driver_id is None:
        guard.append(ActiveRide.driver_id.is_(None))
    else:
        guard.append(ActiveRide.driver_id == ride.driver_id)

    result = await db.execute(delete(ActiveRide).where(*guard).execution_options(synchronize_session=False))
    if result.rowcount != 1:
        await db.rollback()
        raise RideConflictError("Ride changed while updating, try again")

    db.expunge(ride)
    document.update(changes)
    archived = target(**document)
    db.add(archived)
    return archived


async def complete_ride(
    db: AsyncSession,
    ride_id: str,
    driver_id: str,
    final_location: Optional[List[float]] = None,
    now: Optional[datetime] = None,
) -> CompletedRide:
    """Finish an in-progress ride and archive it in `completed_rides`."""
    ride = await _get_active_ride(db, ride_id)
    if ride.driver_id != driver_id:
        raise PermissionDeniedError("Ride is assigned to another driver")
    if ride.status != RideStatus.IN_PROGRESS:
        raise InvalidTransitionError(
            f"Ride is {ride.status.value}, expected {RideStatus.IN_PROGRESS.value}",
            {"status": ride.status.value},
        )

    driver = await db.get(Driver, driver_id)
    completed = await _move_ride(db, ride, CompletedRide, {
        "status": RideStatus.COMPLETED,
        "completed_at": now or utcnow(),
        "completed_by": driver_id,
        "final_location": final_location or (driver.current_location if driver else None),
    })
    await db.execute(
        update(Driver)
        .where(Driver.id == driver_id)
        .values(total_rides=Driver.total_rides + 1)
        .execution_options(synchronize_session=False)
    )
    _notify(db, completed.user_id, completed.id, "Corrida finalizada", f"Valor: R$ {completed.price:.2f}")
    await db.commit()
    await db.refresh(completed)
    ride_history_cache.invalidate(completed.user_id)

    logger.info(f"Ride completed: {ride_id} by driver {driver_id}")
    return completed


async def cancel_ride(
    db: AsyncSession,
    ride_id: str,
    actor_id: str,
    cancelled_by: CancelledBy,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CancelledRide:
    """Cancel a pending or accepted ride and archive it in `cancelled_rides`.

    Passengers may cancel their own rides. Drivers may cancel a ride assigned
    to them, or decline a pending ride nobody has accepted yet.
    """
    ride = await _get_active_ride(db, ride_id)

    if cancelled_by == CancelledBy.PASSENGER:
        if ride.user_id != actor_id:
            raise PermissionDeniedError("Ride belongs to another passenger")
    elif ride.driver_id is None:
        await get_approved_driver(db, actor_id, require_online=False)
    elif ride.driver_id != actor_id:
        raise PermissionDeniedError("Ride is assigned to another driver")

    if ride.status not in CANCELLABLE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot cancel a ride that is {ride.status.value}",
            {"status": ride.status.value},
        )

    changes: Dict[str, Any] = {
        "status": RideStatus.CANCELLED,
        "cancelled_at": now or utcnow(),
        "cancelled_by": cancelled_by,
        "cancellation_reason": reason,
    }
    if cancelled_by == CancelledBy.DRIVER:
        changes["driver_id"] = actor_id

    cancelled = await _move_ride(db, ride, CancelledRide, changes)
    if cancelled_by == CancelledBy.DRIVER:
        _notify(db, cancelled.user_id, cancelled.id, "Corrida cancelada", "O motorista cancelou a corrida")
    await db.commit()
    await db.refresh(cancelled)
    ride_history_cache.invalidate(cancelled.user_id)

    logger.info(f"Ride cancelled: {ride_id} by {cancelled_by.value} {actor_id}")
    return cancelled


async def rate_ride(
    db: AsyncSession,
    ride_id: str,
    rider_id: str,
    score: int,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CompletedRide:
    """Record the passenger's rating and fold it into the driver's average."""
    if not 1 <= score <= 5:
        raise RideHailError("Rating must be between 1 and 5")

    ride = await db.get(CompletedRide, ride_id, populate_existing=True)
    if ride is None:
        if await db.get(ActiveRide, ride_id) is not None:
            raise InvalidTransitionError("Only completed rides can be rated")
        raise RideNotFoundError("Ride not found")
    if ride.user_id != rider_id:
        raise PermissionDeniedError("Ride belongs to another passenger")

    result = await db.execute(
        update(CompletedRide)
        .where(CompletedRide.id == ride_id, CompletedRide.rating.is_(None))
        .values(rating=score, rating_comment=comment, rated_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise ConflictError("Ride has already been rated")

    if ride.driver_id and await db.get(Driver, ride.driver_id) is not None:
        db.add(Rating(ride_id=ride.id, rider_id=rider_id, driver_id=ride.driver_id, score=score, comment=comment))
        await db.execute(
            update(Driver)
            .where(Driver.id == ride.driver_id)
            .values(
                rating=(Driver.rating * Driver.total_ratings + score) / (Driver.total_ratings + 1),
                total_ratings=Driver.total_ratings + 1,
            )
            .execution_options(synchronize_session=False)
        )

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Ride has already been rated")

    ride = await db.get(CompletedRide, ride_id, populate_existing=True)
    ride_history_cache.invalidate(rider_id)
    logger.info(f"Ride rated: {ride_id} -> {score}")
    return ride


async def list_pending_rides(db: AsyncSession, limit: int = 50) -> List[ActiveRide]:
    query = (
        select(ActiveRide)
        .where(ActiveRide.status == RideStatus.PENDING, ActiveRide.driver_id.is_(None))
        .order_by(ActiveRide.created_at.asc())
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_driver_rides(db: AsyncSession, driver_id: str) -> List[ActiveRide]:
    query = (
        select(ActiveRide)
        .where(
            ActiveRide.driver_id == driver_id,
            ActiveRide.status.in_([RideStatus.ACCEPTED, RideStatus.IN_PROGRESS]),
        )
        .order_by(ActiveRide.created_at.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_rider_active_ride(db: AsyncSession, rider_id: str) -> Optional[ActiveRide]:
    query = (
        select(ActiveRide)
        .where(ActiveRide.user_id == rider_id)
        .order_by(ActiveRide.created_at.desc())
        .limit(1)
    )
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def load_ride_history(db: AsyncSession, rider_id: str, since: Optional[datetime] = None) -> List[Any]:
    """Completed and cancelled rides for a passenger, newest first."""
    completed_query = select(CompletedRide).where(CompletedRide.user_id == rider_id)
    cancelled_query = select(CancelledRide).where(CancelledRide.user_id == rider_id)
    if since is not None:
        completed_query = completed_query.where(CompletedRide.completed_at >= since)
        cancelled_query = cancelled_query.where(CancelledRide.cancelled_at >= since)

    completed = (await db.execute(completed_query)).scalars().all()
    cancelled = (await db.execute(cancelled_query)).scalars().all()

    rides = list(completed) + list(cancelled)
    rides.sort(key=lambda r: as_utc(r.completed_at or r.cancelled_at or r.created_at) or EPOCH, reverse=True)
    return rides



async def cached_ride_history(db: AsyncSession, rider_id: str) -> List[Any]:
    """`load_ride_history` through the per-rider cache; terminal moves and ratings invalidate it."""
    return await ride_history_cache.get_or_load(rider_id, lambda: load_ride_history(db, rider_id))
