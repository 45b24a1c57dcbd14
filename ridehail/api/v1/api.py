"""
Main API router for v1 endpoints.
"""

from fastapi import APIRouter

from ridehail.api.v1 import users, rides, drivers, categories, admin, geo

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(rides.router, prefix="/rides", tags=["rides"])
api_router.include_router(drivers.router, prefix="/drivers", tags=["drivers"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(geo.router, prefix="/geo", tags=["geo"])
