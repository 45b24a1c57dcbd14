"""
Vehicle category catalog: cached reads, fare quotes and default seed data.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.core.cache import category_cache
from ridehail.core.config import settings
from ridehail.models.catalog import VehicleCategory, QuickDestination
from ridehail.pricing.calculator import (
    PricingRules, calculate_dynamic_price, estimate_duration_minutes, DEFAULT_PEAK_HOURS,
)

logger = logging.getLogger(__name__)

ACTIVE_CATEGORIES_KEY = "active"

DEFAULT_CATEGORIES = [
    {
        "name": "Econômico",
        "description": "Carros compactos para até 4 pessoas",
        "base_price": 5.0,
        "price_per_km": 2.0,
        "min_price": 7.0,
        "icon": "🚗",
    },
    {
        "name": "Confort",
        "description": "Carros espaçosos com ar condicionado",
        "base_price": 7.0,
        "price_per_km": 2.5,
        "min_price": 10.0,
        "icon": "🚙",
    },
    {
        "name": "Premium",
        "description": "Carros luxuosos para até 4 pessoas",
        "base_price": 10.0,
        "price_per_km": 3.5,
        "min_price": 15.0,
        "icon": "🚘",
    },
]

DEFAULT_QUICK_DESTINATIONS = [
    {"name": "Shopping Ibirapuera", "address": "Av. Ibirapuera, 3103 - Moema, São Paulo - SP", "icon": "🛍️"},
    {"name": "Aeroporto de Congonhas", "address": "Av. Washington Luís, s/n - Vila Congonhas, São Paulo - SP", "icon": "✈️"},
    {"name": "Parque Ibirapuera", "address": "Av. Pedro Álvares Cabral - Vila Mariana, São Paulo - SP", "icon": "🌳"},
]


def default_dynamic_pricing() -> Dict[str, Any]:
    return {
        "rainMultiplier": 1.2,
        "peakHoursMultiplier": 1.5,
        "peakHours": [dict(window) for window in DEFAULT_PEAK_HOURS],
    }


async def _load_active_categories(db: AsyncSession) -> List[VehicleCategory]:
    query = select(VehicleCategory).where(VehicleCategory.is_active.is_(True)).order_by(VehicleCategory.base_price)
    result = await db.execute(query)
    categories = list(result.scalars().all())
    logger.info(f"Loaded {len(categories)} vehicle categories from the database")
    return categories


async def list_active_categories(db: AsyncSession) -> List[VehicleCategory]:
    """Active categories through the read-through cache."""
    return await category_cache.get_or_load(ACTIVE_CATEGORIES_KEY, lambda: _load_active_categories(db))


def invalidate_categories() -> None:
    category_cache.invalidate()


def quote_categories(
    categories: List[VehicleCategory],
    distance_meters: float,
    duration_seconds: float,
    current_time: datetime,
    is_raining: bool = False,
) -> List[Dict[str, Any]]:
    """Price every category for one trip, cheapest first."""
    quotes = []
    for category in categories:
        price = calculate_dynamic_price(
            PricingRules.from_category(category), distance_meters, current_time, is_raining
        )
        quotes.append({
            "category": category,
            "price": price,
            "distance": distance_meters,
            "duration": duration_seconds,
            "estimated_minutes": (
                math.ceil(duration_seconds / 60) if duration_seconds > 0
                else estimate_duration_minutes(distance_meters, settings.FALLBACK_SPEED_KMH)
            ),
        })
    quotes.sort(key=lambda q: q["price"])
    return quotes


async def seed_catalog(db: AsyncSession) -> Optional[int]:
    """Insert default categories and quick destinations into an empty catalog."""
    existing = await db.execute(select(func.count()).select_from(VehicleCategory))
    if existing.scalar_one() > 0:
        return None

    for category in DEFAULT_CATEGORIES:
        db.add(VehicleCategory(**category, dynamic_pricing=default_dynamic_pricing()))
    for destination in DEFAULT_QUICK_DESTINATIONS:
        db.add(QuickDestination(
            user_id=None,
            name=destination["name"],
            icon=destination["icon"],
            destination={"place": destination["name"], "address": destination["address"]},
        ))
    await db.commit()
    invalidate_categories()

    logger.info(f"Seeded {len(DEFAULT_CATEGORIES)} vehicle categories and {len(DEFAULT_QUICK_DESTINATIONS)} quick destinations")
    return len(DEFAULT_CATEGORIES)
