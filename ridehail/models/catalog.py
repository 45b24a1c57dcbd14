"""
Fare catalog and rider convenience models.
"""

from sqlalchemy import Column, String, Float, Boolean, DateTime, JSON
from ridehail.core.database import Base, utcnow
from ridehail.models.user import new_id

class VehicleCategory(Base):
    """A pricing tier such as Economy, Comfort or Premium."""

    __tablename__ = "vehicle_categories"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    base_price = Column(Float, nullable=False, default=0.0)
    price_per_km = Column(Float, nullable=False, default=0.0)
    min_price = Column(Float, nullable=False, default=0.0)
    icon = Column(String, nullable=False, default="🚗")
    is_active = Column(Boolean, default=True, nullable=False)

    # {rainMultiplier, peakHoursMultiplier, peakHours: [{start, end}]}
    dynamic_pricing = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    def __repr__(self):
        return f"<VehicleCategory(id={self.id}, name={self.name})>"

class QuickDestination(Base):
    __tablename__ = "quick_destinations"

    id = Column(String, primary_key=True, default=new_id)
    # None for suggestions shown to every rider
    user_id = Column(String, index=True, nullable=True)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=True)
    origin = Column(JSON, nullable=True)
    destination = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

class Sponsor(Base):
    __tablename__ = "sponsors"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    logo_url = Column(String, nullable=True)
    link = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
