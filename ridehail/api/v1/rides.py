"""
Ride API endpoints: quotes, requests and the passenger's side of the ride
lifecycle.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from typing import List, Optional
import logging
from datetime import timedelta

from ridehail.core.database import get_db, utcnow, as_utc
from ridehail.maps.client import MapsClient
from ridehail.models.ride import CancelledBy
from ridehail.models.system import Notification
from ridehail.services import rides as ride_service
from ridehail.services import catalog as catalog_service
from ridehail.api.v1.deps import get_maps_client
from ridehail.api.v1.schemas import (
    RideRequest, RideResponse, RideCancelRequest, RatingRequest,
    QuoteRequest, QuoteResponse, CategoryQuote, NotificationResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/quote", response_model=QuoteResponse)
async def quote_ride(
    quote_request: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    maps: MapsClient = Depends(get_maps_client)
):
    """Price a trip in every active vehicle category, cheapest first."""

    trip = await maps.estimate_trip(quote_request.origin, quote_request.destination)
    raining = await ride_service.is_raining(db)
    categories = await catalog_service.list_active_categories(db)

    quotes = catalog_service.quote_categories(
        categories,
        trip["distance"],
        trip["duration"],
        ride_service.pricing_now(),
        is_raining=raining
    )

    return QuoteResponse(
        distance=trip["distance"],
        duration=trip["duration"],
        is_raining=raining,
        quotes=[
            CategoryQuote(
                category_id=q["category"].id,
                name=q["category"].name,
                icon=q["category"].icon,
                description=q["category"].description,
                price=q["price"],
                estimated_minutes=q["estimated_minutes"]
            )
            for q in quotes
        ]
    )

@router.post("/", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def request_ride(
    ride_request: RideRequest,
    db: AsyncSession = Depends(get_db),
    maps: MapsClient = Depends(get_maps_client)
):
    """Request a new ride."""

    try:
        return await ride_service.request_ride(
            db,
            maps,
            rider_id=ride_request.user_id,
            origin=ride_request.origin.model_dump(),
            destination=ride_request.destination.model_dump(),
            category_id=ride_request.vehicle_category_id,
            payment_method=ride_request.payment_method
        )

    except SQLAlchemyError as e:
        logger.error(f"Error creating ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create ride"
        )

@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a ride whether it is active, completed or cancelled."""

    return await ride_service.locate_ride(db, ride_id)

@router.post("/{ride_id}/cancel", response_model=RideResponse)
async def cancel_ride(
    ride_id: str,
    cancellation: RideCancelRequest,
    db: AsyncSession = Depends(get_db)
):
    """Cancel a pending or accepted ride on behalf of its passenger."""

    try:
        return await ride_service.cancel_ride(
            db,
            ride_id,
            cancellation.user_id,
            CancelledBy.PASSENGER,
            reason=cancellation.reason
        )

    except SQLAlchemyError as e:
        logger.error(f"Error cancelling ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel ride"
        )

@router.post("/{ride_id}/rating", response_model=RideResponse)
async def rate_ride(
    ride_id: str,
    rating: RatingRequest,
    db: AsyncSession = Depends(get_db)
):
    """Rate the driver of a completed ride. Each ride can be rated once."""

    try:
        return await ride_service.rate_ride(
            db,
            ride_id,
            rating.user_id,
            rating.rating,
            comment=rating.comment
        )

    except SQLAlchemyError as e:
        logger.error(f"Error rating ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rate ride"
        )

@router.get("/rider/{rider_id}/active", response_model=Optional[RideResponse])
async def get_rider_active_ride(
    rider_id: str,
    db: AsyncSession = Depends(get_db)
):
    """The rider's current non-terminal ride, if any."""

    return await ride_service.get_rider_active_ride(db, rider_id)

@router.get("/rider/{rider_id}/history", response_model=List[RideResponse])
async def get_rider_history(
    rider_id: str,
    days: Optional[int] = None,
    limit: int = 50,
    db: AsyncSession = Depends(get_db)
):
    """Completed and cancelled rides, newest first, optionally limited to the last `days` days."""

    if days is not None and days <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="days must be positive"
        )

    rides = await ride_service.cached_ride_history(db, rider_id)

    if days is not None:
        since = utcnow() - timedelta(days=days)
        rides = [
            ride for ride in rides
            if as_utc(ride.completed_at or ride.cancelled_at or ride.created_at) >= since
        ]

    return rides[:limit]

@router.get("/rider/{rider_id}/notifications", response_model=List[NotificationResponse])
async def get_rider_notifications(
    rider_id: str,
    unread_only: bool = False,
    limit: int = 50,
    db: AsyncSession = Depends(get_db)
):
    query = select(Notification).where(Notification.user_id == rider_id)

    if unread_only:
        query = query.where(Notification.read.is_(False))

    query = query.order_by(Notification.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
