"""
Administration API endpoints. Every route requires an administrator email in
the `X-Admin-Email` header.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, func
from typing import List, Optional
import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ridehail.core.cache import ride_history_cache
from ridehail.core.config import settings
from ridehail.core.database import get_db, as_utc
from ridehail.models.user import User, Driver, ApprovalStatus
from ridehail.models.ride import CompletedRide
from ridehail.models.catalog import Sponsor
from ridehail.models.system import SystemSetting, SystemLog
from ridehail.services.migration import migrate_legacy_rides
from ridehail.api.v1.deps import require_admin
from ridehail.api.v1.schemas import (
    DashboardStats, DriverResponse, DriverApproval,
    SponsorCreate, SponsorUpdate, SponsorResponse,
    SettingUpdate, SettingResponse, SystemLogResponse, MigrationResult
)

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])

DASHBOARD_DAYS = 7

def _local_midnight(days_ago: int = 0) -> datetime:
    """Start of a calendar day in the service timezone, as a UTC datetime."""
    tz = ZoneInfo(settings.PRICING_TIMEZONE)
    day = datetime.now(tz).date() - timedelta(days=days_ago)
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)

async def _count(db: AsyncSession, model, *criteria) -> int:
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    result = await db.execute(query)
    return result.scalar_one()

@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard_stats(db: AsyncSession = Depends(get_db)):
    """Headline numbers for the admin dashboard."""

    try:
        today_start = _local_midnight()
        week_start = _local_midnight(DASHBOARD_DAYS - 1)

        result = await db.execute(
            select(CompletedRide.completed_at, CompletedRide.price)
            .where(CompletedRide.completed_at >= week_start)
        )
        recent = [(as_utc(completed_at), price or 0) for completed_at, price in result.all()]

        day_starts = [_local_midnight(days_ago) for days_ago in range(DASHBOARD_DAYS - 1, -1, -1)]
        weekly_rides = []
        for i, start in enumerate(day_starts):
            end = day_starts[i + 1] if i + 1 < len(day_starts) else None
            weekly_rides.append(sum(
                1 for completed_at, _ in recent
                if completed_at >= start and (end is None or completed_at < end)
            ))

        today = [price for completed_at, price in recent if completed_at >= today_start]

        return DashboardStats(
            total_users=await _count(db, User),
            total_drivers=await _count(db, Driver),
            online_drivers=await _count(
                db, Driver, Driver.is_online.is_(True), Driver.status == ApprovalStatus.APPROVED
            ),
            pending_drivers=await _count(db, Driver, Driver.status == ApprovalStatus.PENDING),
            today_rides=len(today),
            total_revenue=round(sum(today), 2),
            weekly_rides=weekly_rides
        )

    except SQLAlchemyError as e:
        logger.error(f"Error building dashboard stats: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard stats"
        )

@router.get("/drivers", response_model=List[DriverResponse])
async def list_drivers(
    driver_status: Optional[ApprovalStatus] = None,
    limit: int = 100,
    offset: int = 0,
    db: AsyncSession = Depends(get_db)
):
    """Drivers, optionally filtered by approval status, newest first."""

    query = select(Driver).order_by(Driver.created_at.desc())

    if driver_status:
        query = query.where(Driver.status == driver_status)

    result = await db.execute(query.limit(limit).offset(offset))
    return result.scalars().all()

@router.put("/drivers/{driver_id}/approval", response_model=DriverResponse)
async def set_driver_approval(
    driver_id: str,
    approval: DriverApproval,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Approve or reject a driver. The decision is mirrored on the user account and audited."""

    try:
        driver = await db.get(Driver, driver_id)

        if not driver:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Driver not found"
            )

        previous = driver.status
        driver.status = approval.status
        if approval.status == ApprovalStatus.REJECTED:
            driver.is_online = False

        user = await db.get(User, driver_id)
        if user:
            user.status = approval.status

        db.add(SystemLog(
            action=f"driver_{approval.status.value}",
            actor=admin_email,
            target=driver_id,
            details={"previous": previous.value, "status": approval.status.value}
        ))

        await db.commit()
        await db.refresh(driver)

        logger.info(f"Driver {driver_id} {approval.status.value} by {admin_email}")

        return driver

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating driver approval: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update driver approval"
        )

@router.get("/sponsors", response_model=List[SponsorResponse])
async def list_sponsors(
    active_only: bool = False,
    db: AsyncSession = Depends(get_db)
):
    query = select(Sponsor).order_by(Sponsor.name)

    if active_only:
        query = query.where(Sponsor.is_active.is_(True))

    result = await db.execute(query)
    return result.scalars().all()

@router.post("/sponsors", response_model=SponsorResponse, status_code=status.HTTP_201_CREATED)
async def create_sponsor(
    sponsor_data: SponsorCreate,
    db: AsyncSession = Depends(get_db)
):
    try:
        sponsor = Sponsor(**sponsor_data.model_dump())

        db.add(sponsor)
        await db.commit()
        await db.refresh(sponsor)

        logger.info(f"Sponsor created: {sponsor.id} ({sponsor.name})")

        return sponsor

    except SQLAlchemyError as e:
        logger.error(f"Error creating sponsor: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create sponsor"
        )

@router.put("/sponsors/{sponsor_id}", response_model=SponsorResponse)
async def update_sponsor(
    sponsor_id: str,
    sponsor_update: SponsorUpdate,
    db: AsyncSession = Depends(get_db)
):
    try:
        sponsor = await db.get(Sponsor, sponsor_id)

        if not sponsor:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sponsor not found"
            )

        for field, value in sponsor_update.model_dump(exclude_unset=True).items():
            setattr(sponsor, field, value)

        await db.commit()
        await db.refresh(sponsor)

        logger.info(f"Sponsor updated: {sponsor_id}")

        return sponsor

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating sponsor: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update sponsor"
        )

@router.delete("/sponsors/{sponsor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sponsor(
    sponsor_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        sponsor = await db.get(Sponsor, sponsor_id)

        if not sponsor:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sponsor not found"
            )

        await db.delete(sponsor)
        await db.commit()

        logger.info(f"Sponsor deleted: {sponsor_id}")

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error deleting sponsor: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete sponsor"
        )

@router.get("/settings/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    db: AsyncSession = Depends(get_db)
):
    setting = await db.get(SystemSetting, key)

    if not setting:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Setting not found"
        )

    return setting

@router.put("/settings/{key}", response_model=SettingResponse)
async def put_setting(
    key: str,
    setting_update: SettingUpdate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create or replace a system setting, e.g. `weather` = {"isRaining": true}."""

    try:
        setting = await db.get(SystemSetting, key)

        if setting:
            setting.value = setting_update.value
        else:
            setting = SystemSetting(key=key, value=setting_update.value)
            db.add(setting)

        db.add(SystemLog(action="setting_updated", actor=admin_email, target=key, details=setting_update.value))

        await db.commit()
        await db.refresh(setting)

        logger.info(f"Setting {key} updated by {admin_email}")

        return setting

    except SQLAlchemyError as e:
        logger.error(f"Error updating setting {key}: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update setting"
        )

@router.post("/migrate-rides", response_model=MigrationResult)
async def migrate_rides(
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Move rides from the legacy table into the active/completed/cancelled tables."""

    try:
        counts = await migrate_legacy_rides(db)

        db.add(SystemLog(action="rides_migrated", actor=admin_email, details=counts))
        await db.commit()

        # Histories cached before the move do not include the migrated rides
        ride_history_cache.invalidate()
        logger.info(f"Legacy rides migrated by {admin_email}: {counts}")

        return MigrationResult(**counts)

    except SQLAlchemyError as e:
        logger.error(f"Error migrating legacy rides: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to migrate legacy rides"
        )

@router.get("/logs", response_model=List[SystemLogResponse])
async def list_logs(
    action: Optional[str] = None,
    limit: int = 100,
    db: AsyncSession = Depends(get_db)
):
    """Audit log entries, newest first."""

    query = select(SystemLog).order_by(SystemLog.created_at.desc())

    if action:
        query = query.where(SystemLog.action == action)

    result = await db.execute(query.limit(limit))
    return result.scalars().all()
