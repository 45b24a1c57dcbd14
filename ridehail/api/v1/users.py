"""
User management API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, or_
from typing import List, Optional
import logging

from ridehail.core.database import get_db
from ridehail.models.user import User, UserRole, ApprovalStatus
from ridehail.models.catalog import QuickDestination
from ridehail.api.v1.schemas import (
    UserCreate, UserResponse, UserUpdate,
    QuickDestinationCreate, QuickDestinationResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new user (passenger or driver)."""

    try:
        existing_user_query = select(User).where(User.email == user_data.email)
        if user_data.id:
            existing_user_query = select(User).where(
                or_(User.email == user_data.email, User.id == user_data.id)
            )
        existing_result = await db.execute(existing_user_query)

        if existing_result.scalars().first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User with this email or id already exists"
            )

        new_user = User(
            email=user_data.email,
            name=user_data.name,
            phone=user_data.phone,
            role=user_data.role,
            # Passengers need no review; drivers wait for an admin decision
            status=ApprovalStatus.APPROVED if user_data.role == UserRole.PASSENGER else ApprovalStatus.PENDING
        )
        if user_data.id:
            new_user.id = user_data.id

        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)

        logger.info(f"User created: {new_user.id} ({new_user.role.value})")

        return new_user

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error creating user: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user"
        )

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get user by ID."""

    user = await db.get(User, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user

@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields."""

    try:
        user = await db.get(User, user_id)

        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        update_data = user_update.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(user, field, value)

        await db.commit()
        await db.refresh(user)

        logger.info(f"User updated: {user_id}")

        return user

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error updating user: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user"
        )

@router.get("/", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db)
):
    """List users, optionally by role."""

    query = select(User).order_by(User.created_at.desc())

    if role:
        query = query.where(User.role == role)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()

@router.get("/{user_id}/quick-destinations", response_model=List[QuickDestinationResponse])
async def list_quick_destinations(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """The user's saved destinations plus the global suggestions."""

    query = select(QuickDestination).where(
        or_(QuickDestination.user_id == user_id, QuickDestination.user_id.is_(None))
    ).order_by(QuickDestination.created_at)

    result = await db.execute(query)
    return result.scalars().all()

@router.post(
    "/{user_id}/quick-destinations",
    response_model=QuickDestinationResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_quick_destination(
    user_id: str,
    destination_data: QuickDestinationCreate,
    db: AsyncSession = Depends(get_db)
):
    """Save a destination shortcut for the user."""

    try:
        if not await db.get(User, user_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        destination = QuickDestination(
            user_id=user_id,
            name=destination_data.name,
            icon=destination_data.icon,
            origin=destination_data.origin.model_dump() if destination_data.origin else None,
            destination=destination_data.destination.model_dump()
        )

        db.add(destination)
        await db.commit()
        await db.refresh(destination)

        logger.info(f"Quick destination created: {destination.id} for user {user_id}")

        return destination

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error creating quick destination: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create quick destination"
        )

@router.delete("/{user_id}/quick-destinations/{destination_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quick_destination(
    user_id: str,
    destination_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Remove one of the user's own destinations."""

    try:
        destination = await db.get(QuickDestination, destination_id)

        if not destination or destination.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quick destination not found"
            )

        await db.delete(destination)
        await db.commit()

        logger.info(f"Quick destination deleted: {destination_id}")

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error deleting quick destination: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete quick destination"
        )
