"""
Shared endpoint dependencies.
"""

from fastapi import Header, Request
from typing import Optional

from ridehail.core.config import settings
from ridehail.core.exceptions import PermissionDeniedError
from ridehail.maps.client import MapsClient

async def get_maps_client(request: Request) -> MapsClient:
    """Dependency to get the maps client from app state."""
    return request.app.state.maps_client

async def require_admin(x_admin_email: Optional[str] = Header(None)) -> str:
    """Allow the request only when the caller's email is a configured administrator."""
    email = (x_admin_email or "").strip().lower()
    if not email or email not in settings.ADMIN_EMAILS:
        raise PermissionDeniedError("Administrator access required")
    return email
