"""
Vehicle category API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from typing import List
import logging

from ridehail.core.database import get_db
from ridehail.models.catalog import VehicleCategory
from ridehail.services import catalog as catalog_service
from ridehail.api.v1.deps import require_admin
from ridehail.api.v1.schemas import (
    VehicleCategoryCreate, VehicleCategoryUpdate, VehicleCategoryResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/", response_model=List[VehicleCategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    """Active categories, cheapest base price first."""

    return await catalog_service.list_active_categories(db)

@router.get("/{category_id}", response_model=VehicleCategoryResponse)
async def get_category(
    category_id: str,
    db: AsyncSession = Depends(get_db)
):
    category = await db.get(VehicleCategory, category_id)

    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle category not found"
        )

    return category

@router.post("/", response_model=VehicleCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: VehicleCategoryCreate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a vehicle category."""

    try:
        category = VehicleCategory(**category_data.model_dump())

        db.add(category)
        await db.commit()
        await db.refresh(category)
        catalog_service.invalidate_categories()

        logger.info(f"Vehicle category created: {category.id} ({category.name}) by {admin_email}")

        return category

    except SQLAlchemyError as e:
        logger.error(f"Error creating vehicle category: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create vehicle category"
        )

@router.put("/{category_id}", response_model=VehicleCategoryResponse)
async def update_category(
    category_id: str,
    category_update: VehicleCategoryUpdate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update a vehicle category's prices, multipliers or visibility."""

    try:
        category = await db.get(VehicleCategory, category_id)

        if not category:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Vehicle category not found"
            )

        update_data = category_update.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(category, field, value)

        await db.commit()
        await db.refresh(category)
        catalog_service.invalidate_categories()

        logger.info(f"Vehicle category updated: {category_id} by {admin_email}")

        return category

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating vehicle category: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update vehicle category"
        )

@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        category = await db.get(VehicleCategory, category_id)

        if not category:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Vehicle category not found"
            )

        await db.delete(category)
        await db.commit()
        catalog_service.invalidate_categories()

        logger.info(f"Vehicle category deleted: {category_id} by {admin_email}")

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error deleting vehicle category: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete vehicle category"
        )
