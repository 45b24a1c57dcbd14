"""
Pydantic schemas for API request/response models.

Nested documents (locations, driver snapshots, dynamic pricing blocks) keep
the camelCase keys they are stored with.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from ridehail.models.ride import RideStatus, PaymentMethod, CancelledBy
from ridehail.models.user import UserRole, ApprovalStatus, VehicleStatus
from ridehail.pricing.calculator import parse_clock, DEFAULT_PEAK_HOURS

def _check_coordinates(v: List[float]) -> List[float]:
    if len(v) != 2:
        raise ValueError("coordinates must be [longitude, latitude]")
    lng, lat = v
    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValueError("coordinates out of range")
    return v

# Shared documents
class Location(BaseModel):
    place: Optional[str] = Field(None, description="Place name")
    address: str = Field(..., description="Full address")
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator('coordinates')
    @classmethod
    def validate_coordinates(cls, v):
        return _check_coordinates(v)

class PeakHourWindow(BaseModel):
    start: str = Field(..., description="HH:mm")
    end: str = Field(..., description="HH:mm")

    @field_validator('start', 'end')
    @classmethod
    def validate_clock(cls, v):
        parse_clock(v)
        return v

class DynamicPricing(BaseModel):
    rainMultiplier: float = Field(1.2, ge=1.0, le=10.0)
    peakHoursMultiplier: float = Field(1.5, ge=1.0, le=10.0)
    peakHours: List[PeakHourWindow] = Field(
        default_factory=lambda: [PeakHourWindow(**w) for w in DEFAULT_PEAK_HOURS]
    )

class VehicleInfo(BaseModel):
    model: str
    plate: str
    color: str
    year: Optional[int] = None
    categoryId: Optional[str] = None

class DriverSnapshot(BaseModel):
    id: str
    name: str
    phone: str
    rating: float
    vehicle: Optional[VehicleInfo] = None
    currentLocation: Optional[List[float]] = None

# User schemas
class UserCreate(BaseModel):
    id: Optional[str] = Field(None, description="Account uid from the identity provider")
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, description="Display name")
    phone: Optional[str] = Field(None, description="User phone number")
    role: UserRole = Field(UserRole.PASSENGER, description="Type of user")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("invalid email address")
        return v

class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str]
    phone: Optional[str]
    role: UserRole
    status: ApprovalStatus
    current_location: Optional[List[float]]
    last_location_update: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True

# Driver schemas
class DriverRegister(BaseModel):
    user_id: str = Field(..., description="Existing user account id")
    name: str
    phone: str
    cpf: Optional[str] = None
    cnh: Optional[str] = None
    car_model: str
    car_year: Optional[int] = Field(None, ge=1950, le=2100)
    car_plate: str
    car_color: str
    category_id: Optional[str] = None

class DriverResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    status: ApprovalStatus
    is_online: bool
    current_location: Optional[List[float]]
    last_location_update: Optional[datetime]
    vehicle: Optional[VehicleInfo]
    rating: float
    total_ratings: int
    total_rides: int
    created_at: datetime

    class Config:
        from_attributes = True

class DriverOnlineUpdate(BaseModel):
    is_online: bool

class LocationUpdate(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)

class DriverApproval(BaseModel):
    status: ApprovalStatus

    @field_validator('status')
    @classmethod
    def validate_decision(cls, v):
        if v == ApprovalStatus.PENDING:
            raise ValueError("status must be approved or rejected")
        return v

class DriverVehicleResponse(BaseModel):
    id: str
    driver_id: str
    category_id: Optional[str]
    model: str
    plate: str
    color: str
    year: Optional[int]
    status: VehicleStatus

    class Config:
        from_attributes = True

class DriverEarnings(BaseModel):
    driver_id: str
    period_days: int
    total_earnings: float
    total_rides: int
    total_distance_km: float
    total_duration_minutes: float
    average_fare: float
    earnings_per_km: float
    earnings_per_hour: float

# Ride schemas
class RideRequest(BaseModel):
    user_id: str = Field(..., description="Requesting passenger")
    origin: Location
    destination: Location
    vehicle_category_id: str = Field(..., description="Requested vehicle category")
    payment_method: PaymentMethod = Field(PaymentMethod.PIX, description="How the rider pays")

class RideResponse(BaseModel):
    id: str
    user_id: str
    user_name: Optional[str]
    origin: Location
    destination: Location
    status: RideStatus
    vehicle_category: Optional[str]
    payment_method: PaymentMethod
    distance: float
    duration: float
    price: float
    driver_id: Optional[str]
    driver: Optional[DriverSnapshot]
    driver_arrived: bool
    distance_to_pickup: Optional[float]
    duration_to_pickup: Optional[float]
    created_at: datetime
    accepted_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    completed_by: Optional[str]
    final_location: Optional[List[float]]
    cancelled_by: Optional[CancelledBy]
    cancellation_reason: Optional[str]
    rating: Optional[int]
    rating_comment: Optional[str]
    rated_at: Optional[datetime]

    class Config:
        from_attributes = True

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

class RideCancelRequest(CancelRequest):
    user_id: str = Field(..., description="Passenger who owns the ride")

class CompleteRequest(BaseModel):
    final_location: Optional[List[float]] = Field(None, description="[longitude, latitude]")

    @field_validator('final_location')
    @classmethod
    def validate_final_location(cls, v):
        return v if v is None else _check_coordinates(v)

class RatingRequest(BaseModel):
    user_id: str = Field(..., description="Passenger who owns the ride")
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)

class QuoteRequest(BaseModel):
    origin: List[float] = Field(..., description="[longitude, latitude]")
    destination: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator('origin', 'destination')
    @classmethod
    def validate_points(cls, v):
        return _check_coordinates(v)

class CategoryQuote(BaseModel):
    category_id: str
    name: str
    icon: str
    description: str
    price: float
    estimated_minutes: int

class QuoteResponse(BaseModel):
    distance: float
    duration: float
    is_raining: bool
    quotes: List[CategoryQuote]

# Catalog schemas
class VehicleCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    base_price: float = Field(..., ge=0)
    price_per_km: float = Field(..., ge=0)
    min_price: float = Field(0.0, ge=0)
    icon: str = "🚗"
    is_active: bool = True
    dynamic_pricing: DynamicPricing = Field(default_factory=DynamicPricing)

class VehicleCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    price_per_km: Optional[float] = Field(None, ge=0)
    min_price: Optional[float] = Field(None, ge=0)
    icon: Optional[str] = None
    is_active: Optional[bool] = None
    dynamic_pricing: Optional[DynamicPricing] = None

class VehicleCategoryResponse(BaseModel):
    id: str
    name: str
    description: str
    base_price: float
    price_per_km: float
    min_price: float
    icon: str
    is_active: bool
    dynamic_pricing: Optional[DynamicPricing]

    class Config:
        from_attributes = True

class QuickDestinationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    icon: Optional[str] = None
    origin: Optional[Location] = None
    destination: Location

class QuickDestinationResponse(BaseModel):
    id: str
    user_id: Optional[str]
    name: str
    icon: Optional[str]
    origin: Optional[Dict[str, Any]]
    destination: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True

class SponsorCreate(BaseModel):
    name: str = Field(..., min_length=1)
    logo_url: Optional[str] = None
    link: Optional[str] = None
    is_active: bool = True

class SponsorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    logo_url: Optional[str] = None
    link: Optional[str] = None
    is_active: Optional[bool] = None

class SponsorResponse(BaseModel):
    id: str
    name: str
    logo_url: Optional[str]
    link: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True

# Administration schemas
class SettingUpdate(BaseModel):
    value: Dict[str, Any]

class SettingResponse(BaseModel):
    key: str
    value: Dict[str, Any]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class SystemLogResponse(BaseModel):
    id: str
    action: str
    actor: Optional[str]
    target: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationResponse(BaseModel):
    id: str
    user_id: str
    ride_id: Optional[str]
    title: str
    body: Optional[str]
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True

class DashboardStats(BaseModel):
    total_users: int
    total_drivers: int
    online_drivers: int
    pending_drivers: int
    today_rides: int
    total_revenue: float
    weekly_rides: List[int] = Field(..., description="Completed rides per day, oldest first, today last")

class MigrationResult(BaseModel):
    active: int
    completed: int
    cancelled: int

# Geo schemas
class GeocodeResponse(BaseModel):
    place_name: str
    address: str
    coordinates: List[float]

class RouteProperties(BaseModel):
    distance: float
    duration: float

class RouteResponse(BaseModel):
    type: str = "Feature"
    properties: RouteProperties
    geometry: Dict[str, Any]

# Error schemas
class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None

# Health check schema
class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: datetime
    database_connected: bool
