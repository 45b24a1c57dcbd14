"""
User, driver and driver vehicle models.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, ForeignKey, JSON
import enum
import uuid
from ridehail.core.database import Base, utcnow


def new_id() -> str:
    return uuid.uuid4().hex


def enum_values(enum_cls):
    """Persist enum values (e.g. "inProgress") rather than member names."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VehicleStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class User(Base):
    """Passengers and drivers share one account document."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(Enum(UserRole, values_callable=enum_values, name="user_role"),
                  default=UserRole.PASSENGER, nullable=False)
    status = Column(Enum(ApprovalStatus, values_callable=enum_values, name="approval_status"),
                    default=ApprovalStatus.PENDING, nullable=False)

    # [longitude, latitude]
    current_location = Column(JSON, nullable=True)
    last_location_update = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Driver(Base):
    """Driver profile, keyed by the same id as the user account."""

    __tablename__ = "drivers"

    id = Column(String, ForeignKey("users.id"), primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    cpf = Column(String, nullable=True)
    cnh = Column(String, nullable=True)

    status = Column(Enum(ApprovalStatus, values_callable=enum_values, name="approval_status"),
                    default=ApprovalStatus.PENDING, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    current_location = Column(JSON, nullable=True)
    last_location_update = Column(DateTime(timezone=True), nullable=True)

    # {model, plate, color, year, categoryId}
    vehicle = Column(JSON, nullable=True)

    rating = Column(Float, default=5.0, nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)
    total_rides = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    def snapshot(self) -> dict:
        """Driver data embedded into a ride when it is accepted."""
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "rating": self.rating,
            "vehicle": self.vehicle,
            "currentLocation": self.current_location,
        }

    def __repr__(self):
        return f"<Driver(id={self.id}, status={self.status}, online={self.is_online})>"


class DriverVehicle(Base):
    __tablename__ = "driver_vehicles"

    id = Column(String, primary_key=True, default=new_id)
    driver_id = Column(String, ForeignKey("drivers.id"), index=True, nullable=False)
    category_id = Column(String, nullable=True)
    model = Column(String, nullable=False)
    plate = Column(String, nullable=False)
    color = Column(String, nullable=False)
    year = Column(Integer, nullable=True)
    status = Column(Enum(VehicleStatus, values_callable=enum_values, name="vehicle_status"),
                    default=VehicleStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
