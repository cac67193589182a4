"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import (
    BookingStatus, RoomStatus, RoomType, Amenity,
    PaymentMethod, PaymentStatus, LedgerEntryKind, UserRole,
)


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    room_number: str = Field(min_length=1)
    room_type: RoomType = RoomType.STANDARD
    floor: int = 1
    capacity: int = Field(ge=1, le=10)
    price_per_night: Decimal = Field(ge=0)
    amenities: List[Amenity] = []
    description: Optional[str] = None


class UpdateRoomRequest(BaseModel):
    """Partial room update DTO; only fields that are set are applied"""
    room_number: Optional[str] = Field(None, min_length=1)
    room_type: Optional[RoomType] = None
    floor: Optional[int] = None
    capacity: Optional[int] = Field(None, ge=1, le=10)
    price_per_night: Optional[Decimal] = Field(None, ge=0)
    amenities: Optional[List[Amenity]] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    last_cleaned: Optional[datetime] = None
    next_maintenance: Optional[date] = None


class RoomStatusRequest(BaseModel):
    """Room status change DTO"""
    status: RoomStatus


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    room_number: str
    room_type: str
    floor: int
    capacity: int
    price_per_night: Decimal
    amenities: List[str]
    description: Optional[str] = None
    status: str
    is_active: bool
    last_cleaned: Optional[datetime] = None
    next_maintenance: Optional[date] = None
    created_at: datetime
    modified_at: datetime
    version: int


class RoomListResponse(BaseModel):
    items: List[RoomResponse]
    total: int
    page: int
    limit: int


class RoomRepairResponse(BaseModel):
    """One room status repaired by reconciliation"""
    room_id: UUID
    room_number: str
    previous_status: str
    new_status: str


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class ServiceRequest(BaseModel):
    """Ancillary service line DTO"""
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1, default=1)


class GuestBookingRequest(BaseModel):
    """Self-service booking request DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    number_of_guests: int = Field(ge=1)
    special_requests: str = ""

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out date must be after check-in date')
        return v


class CreateBookingRequest(GuestBookingRequest):
    """Staff booking request DTO"""
    guest_id: UUID
    additional_services: List[ServiceRequest] = []
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)


class UpdateBookingRequest(BaseModel):
    """Administrative booking update DTO"""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    number_of_guests: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None
    special_requests: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)


class TransitionNoteRequest(BaseModel):
    """Optional note attached to check-in/check-out"""
    notes: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: Optional[str] = None


class ServiceChargeResponse(BaseModel):
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    booking_number: str
    guest_id: UUID
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    room_id: UUID
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    check_in: date
    check_out: date
    nights: int
    number_of_guests: int
    nightly_rate: Decimal
    total_amount: Decimal
    tax_rate: Optional[Decimal] = None
    status: str
    payment_status: str
    channel: str
    additional_services: List[ServiceChargeResponse] = []
    special_requests: str = ""
    notes: Optional[str] = None
    created_at: datetime
    modified_at: datetime
    created_by: Optional[UUID] = None
    version: int


class BookingListResponse(BaseModel):
    items: List[BookingResponse]
    total: int
    page: int
    limit: int


# ============================================================================
# BILLING SCHEMAS
# ============================================================================

class LedgerEntryRequest(BaseModel):
    """Payment/refund request DTO"""
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    note: Optional[str] = None


class PaymentStatusRequest(BaseModel):
    """Manual payment status override DTO"""
    payment_status: PaymentStatus


class LedgerEntryResponse(BaseModel):
    entry_id: UUID
    booking_id: UUID
    amount: Decimal
    method: PaymentMethod
    kind: LedgerEntryKind
    note: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    booking_id: UUID
    nights: int
    nightly_rate: Decimal
    room_total: Decimal
    services_total: Decimal
    charge: Decimal
    paid: Decimal
    refunded: Decimal
    remaining: Decimal
    payment_status: PaymentStatus

    class Config:
        from_attributes = True


class LedgerResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    balance: BalanceResponse


class BillingRowResponse(BaseModel):
    booking_id: UUID
    booking_number: str
    guest_name: Optional[str] = None
    room_number: Optional[str] = None
    booking_status: BookingStatus
    check_in: date
    check_out: date
    total_amount: Decimal
    paid_amount: Decimal
    refunded_amount: Decimal
    remaining: Decimal
    payment_status: PaymentStatus
    created_at: datetime


class InvoiceLineItemResponse(BaseModel):
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    """Invoice document DTO"""
    invoice_number: str
    issue_date: date
    hotel_name: str
    currency: str
    guest_name: str
    guest_email: str
    room_number: str
    room_type: str
    check_in: date
    check_out: date
    nights: int
    line_items: List[InvoiceLineItemResponse]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    total_paid: Decimal
    total_refunded: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus

    class Config:
        from_attributes = True


# ============================================================================
# SETTINGS SCHEMAS
# ============================================================================

class HotelSettingsResponse(BaseModel):
    hotel_name: str
    currency: str
    tax_percent: Decimal

    class Config:
        from_attributes = True


class UpdateHotelSettingsRequest(BaseModel):
    hotel_name: Optional[str] = Field(None, min_length=1)
    currency: Optional[str] = Field(None, min_length=1)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100)


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool


class ErrorResponse(BaseModel):
    """Error body DTO"""
    message: str
    error_code: str
