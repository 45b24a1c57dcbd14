"""
Ride models.

A ride lives in `active_rides` while it is pending, accepted or in progress,
and is moved into `completed_rides` or `cancelled_rides` when it terminates.
All ride tables share one column set so a row can be copied between them
unchanged.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, ForeignKey, Text, JSON, UniqueConstraint
import enum
from ridehail.core.database import Base, utcnow
from ridehail.models.user import new_id, enum_values

class RideStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

CANCELLABLE_STATUSES = (RideStatus.PENDING, RideStatus.ACCEPTED)

class CancelledBy(str, enum.Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"

class PaymentMethod(str, enum.Enum):
    PIX = "pix"
    CARD = "card"
    CASH = "cash"

class RideDocumentMixin:
    """Columns shared by every ride table."""

    id = Column(String, primary_key=True, default=new_id)

    # Rider
    user_id = Column(String, index=True, nullable=False)
    user_name = Column(String, nullable=True)

    # {place, address, coordinates: [lng, lat]}
    origin = Column(JSON, nullable=False)
    destination = Column(JSON, nullable=False)

    status = Column(Enum(RideStatus, values_callable=enum_values, name="ride_status"),
                    default=RideStatus.PENDING, index=True, nullable=False)
    vehicle_category = Column(String, nullable=True)
    payment_method = Column(Enum(PaymentMethod, values_callable=enum_values, name="payment_method"),
                            default=PaymentMethod.PIX, nullable=False)

    # Trip metrics
    distance = Column(Float, nullable=False, default=0.0)  # meters
    duration = Column(Float, nullable=False, default=0.0)  # seconds
    price = Column(Float, nullable=False, default=0.0)

    # Driver assignment
    driver_id = Column(String, index=True, nullable=True)
    driver = Column(JSON, nullable=True)
    driver_arrived = Column(Boolean, default=False, nullable=False)
    distance_to_pickup = Column(Float, nullable=True)
    duration_to_pickup = Column(Float, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Termination details
    completed_by = Column(String, nullable=True)
    final_location = Column(JSON, nullable=True)
    cancelled_by = Column(Enum(CancelledBy, values_callable=enum_values, name="cancelled_by"), nullable=True)
    cancellation_reason = Column(String, nullable=True)

    # Rider feedback
    rating = Column(Integer, nullable=True)
    rating_comment = Column(Text, nullable=True)
    rated_at = Column(DateTime(timezone=True), nullable=True)

    def to_document(self) -> dict:
        """Column values keyed by attribute name, used to move a ride between tables."""
        return {column.key: getattr(self, column.key) for column in self.__table__.columns}

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, status={self.status}, user_id={self.user_id})>"

class ActiveRide(RideDocumentMixin, Base):
    __tablename__ = "active_rides"
    # A rider has at most one ride that has not terminated yet
    __table_args__ = (UniqueConstraint("user_id", name="uq_active_rides_user_id"),)

class CompletedRide(RideDocumentMixin, Base):
    __tablename__ = "completed_rides"

class CancelledRide(RideDocumentMixin, Base):
    __tablename__ = "cancelled_rides"

class LegacyRide(RideDocumentMixin, Base):
    """Pre-partitioning table holding rides of every status."""

    __tablename__ = "rides"

class Rating(Base):
    __tablename__ = "ratings"

    id = Column(String, primary_key=True, default=new_id)
    ride_id = Column(String, index=True, unique=True, nullable=False)
    rider_id = Column(String, index=True, nullable=False)
    driver_id = Column(String, ForeignKey("drivers.id"), index=True, nullable=False)
    score = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
