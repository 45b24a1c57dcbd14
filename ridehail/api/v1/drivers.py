"""
Driver API endpoints: registration, availability, location and the driver's
side of the ride lifecycle.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from typing import List, Optional
import logging
from datetime import timedelta

from ridehail.core.database import get_db, utcnow
from ridehail.core.exceptions import PermissionDeniedError
from ridehail.models.user import User, Driver, DriverVehicle, UserRole, ApprovalStatus
from ridehail.models.ride import CompletedRide, CancelledBy
from ridehail.services import rides as ride_service
from ridehail.api.v1.schemas import (
    DriverRegister, DriverResponse, DriverOnlineUpdate, LocationUpdate,
    DriverVehicleResponse, DriverEarnings, RideResponse,
    CompleteRequest, CancelRequest
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/register", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def register_driver(
    registration: DriverRegister,
    db: AsyncSession = Depends(get_db)
):
    """Create a driver profile awaiting approval and switch the account to the driver role."""

    try:
        user = await db.get(User, registration.user_id)

        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        if await db.get(Driver, user.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Driver profile already exists"
            )

        vehicle = {
            "model": registration.car_model,
            "plate": registration.car_plate.upper(),
            "color": registration.car_color,
            "year": registration.car_year,
            "categoryId": registration.category_id,
        }

        driver = Driver(
            id=user.id,
            name=registration.name,
            email=user.email,
            phone=registration.phone,
            cpf=registration.cpf,
            cnh=registration.cnh,
            status=ApprovalStatus.PENDING,
            is_online=False,
            vehicle=vehicle,
        )
        db.add(driver)
        db.add(DriverVehicle(
            driver_id=user.id,
            category_id=registration.category_id,
            model=vehicle["model"],
            plate=vehicle["plate"],
            color=vehicle["color"],
            year=vehicle["year"],
        ))

        user.role = UserRole.DRIVER
        user.status = ApprovalStatus.PENDING
        user.name = user.name or registration.name
        user.phone = user.phone or registration.phone

        await db.commit()
        await db.refresh(driver)

        logger.info(f"Driver registered: {driver.id} (pending approval)")

        return driver

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error registering driver: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register driver"
        )

@router.get("/online", response_model=List[DriverResponse])
async def get_online_drivers(
    limit: int = 50,
    db: AsyncSession = Depends(get_db)
):
    """Approved drivers currently accepting rides."""

    query = select(Driver).where(
        Driver.status == ApprovalStatus.APPROVED,
        Driver.is_online.is_(True)
    ).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()

@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get driver details by ID."""

    driver = await db.get(Driver, driver_id)

    if not driver:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Driver not found"
        )

    return driver

@router.get("/{driver_id}/vehicles", response_model=List[DriverVehicleResponse])
async def get_driver_vehicles(
    driver_id: str,
    db: AsyncSession = Depends(get_db)
):
    query = select(DriverVehicle).where(DriverVehicle.driver_id == driver_id)
    result = await db.execute(query)
    return result.scalars().all()

@router.put("/{driver_id}/status", response_model=DriverResponse)
async def toggle_driver_online(
    driver_id: str,
    online_update: DriverOnlineUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Go online or offline. Only approved drivers may go online."""

    try:
        driver = await db.get(Driver, driver_id)

        if not driver:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Driver not found"
            )

        if online_update.is_online and driver.status != ApprovalStatus.APPROVED:
            raise PermissionDeniedError("Driver is not approved", {"status": driver.status.value})

        driver.is_online = online_update.is_online

        await db.commit()
        await db.refresh(driver)

        logger.info(f"Driver {driver_id} is now {'online' if driver.is_online else 'offline'}")

        return driver

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating driver status: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update driver status"
        )

@router.put("/{driver_id}/location", response_model=DriverResponse)
async def update_driver_location(
    driver_id: str,
    location_update: LocationUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update the driver's position on both the driver profile and the user account."""

    try:
        driver = await db.get(Driver, driver_id)

        if not driver:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Driver not found"
            )

        location = [location_update.longitude, location_update.latitude]
        now = utcnow()

        driver.current_location = location
        driver.last_location_update = now

        user = await db.get(User, driver_id)
        if user:
            user.current_location = location
            user.last_location_update = now

        await db.commit()
        await db.refresh(driver)

        logger.debug(f"Driver location updated: {driver_id}")

        return driver

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating driver location: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update driver location"
        )

@router.get("/{driver_id}/available-rides", response_model=List[RideResponse])
async def get_available_rides(
    driver_id: str,
    limit: int = 50,
    db: AsyncSession = Depends(get_db)
):
    """Pending rides nobody has accepted yet, oldest first."""

    await ride_service.get_approved_driver(db, driver_id)
    return await ride_service.list_pending_rides(db, limit=limit)

@router.get("/{driver_id}/current-rides", response_model=List[RideResponse])
async def get_current_rides(
    driver_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Accepted and in-progress rides assigned to the driver."""

    return await ride_service.list_driver_rides(db, driver_id)

@router.post("/{driver_id}/rides/{ride_id}/accept", response_model=RideResponse)
async def accept_ride(
    driver_id: str,
    ride_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Accept a pending ride. Only the first driver to accept gets it."""

    try:
        return await ride_service.accept_ride(db, ride_id, driver_id)

    except SQLAlchemyError as e:
        logger.error(f"Error accepting ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept ride"
        )

@router.post("/{driver_id}/rides/{ride_id}/arrived", response_model=RideResponse)
async def notify_arrival(
    driver_id: str,
    ride_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Tell the passenger the driver is at the pickup point."""

    try:
        return await ride_service.notify_arrival(db, ride_id, driver_id)

    except SQLAlchemyError as e:
        logger.error(f"Error notifying arrival: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to notify arrival"
        )

@router.post("/{driver_id}/rides/{ride_id}/start", response_model=RideResponse)
async def start_ride(
    driver_id: str,
    ride_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await ride_service.start_ride(db, ride_id, driver_id)

    except SQLAlchemyError as e:
        logger.error(f"Error starting ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start ride"
        )

@router.post("/{driver_id}/rides/{ride_id}/complete", response_model=RideResponse)
async def complete_ride(
    driver_id: str,
    ride_id: str,
    completion: Optional[CompleteRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Finish an in-progress ride and move it to the completed archive."""

    try:
        final_location = completion.final_location if completion else None
        return await ride_service.complete_ride(db, ride_id, driver_id, final_location=final_location)

    except SQLAlchemyError as e:
        logger.error(f"Error completing ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete ride"
        )

@router.post("/{driver_id}/rides/{ride_id}/reject", response_model=RideResponse)
async def reject_ride(
    driver_id: str,
    ride_id: str,
    cancellation: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Decline a pending ride or cancel one assigned to this driver."""

    try:
        reason = cancellation.reason if cancellation else None
        return await ride_service.cancel_ride(
            db, ride_id, driver_id, CancelledBy.DRIVER, reason=reason
        )

    except SQLAlchemyError as e:
        logger.error(f"Error rejecting ride: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject ride"
        )

@router.get("/{driver_id}/earnings", response_model=DriverEarnings)
async def get_driver_earnings(
    driver_id: str,
    days: int = 7,
    db: AsyncSession = Depends(get_db)
):
    """Get driver earnings for specified period."""

    try:
        end_date = utcnow()
        start_date = end_date - timedelta(days=days)

        query = select(CompletedRide).where(
            CompletedRide.driver_id == driver_id,
            CompletedRide.completed_at >= start_date,
            CompletedRide.completed_at <= end_date
        )

        result = await db.execute(query)
        rides = result.scalars().all()

        total_earnings = sum(ride.price or 0 for ride in rides)
        total_rides = len(rides)
        total_distance = sum(ride.distance or 0 for ride in rides) / 1000
        total_duration = sum(ride.duration or 0 for ride in rides) / 60

        average_fare = total_earnings / total_rides if total_rides > 0 else 0

        return DriverEarnings(
            driver_id=driver_id,
            period_days=days,
            total_earnings=round(total_earnings, 2),
            total_rides=total_rides,
            total_distance_km=round(total_distance, 2),
            total_duration_minutes=round(total_duration, 1),
            average_fare=round(average_fare, 2),
            earnings_per_km=round(total_earnings / total_distance, 2) if total_distance > 0 else 0,
            earnings_per_hour=round(total_earnings / (total_duration / 60), 2) if total_duration > 0 else 0
        )

    except SQLAlchemyError as e:
        logger.error(f"Error getting driver earnings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get driver earnings"
        )
