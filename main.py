from fastapi import FastAPI, Depends, Query, Response
from uuid import UUID
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRequest, RoomStatusRequest, RoomResponse,
    RoomListResponse, RoomRepairResponse,
    # Bookings
    GuestBookingRequest, CreateBookingRequest, UpdateBookingRequest,
    TransitionNoteRequest, CancelBookingRequest, ServiceRequest,
    BookingResponse, BookingListResponse, ServiceChargeResponse,
    # Billing
    LedgerEntryRequest, PaymentStatusRequest, LedgerEntryResponse, LedgerResponse,
    BalanceResponse, BillingRowResponse, InvoiceResponse,
    # Settings
    HotelSettingsResponse, UpdateHotelSettingsRequest,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, get_current_actor, fake_users_db, get_user,
    require_managers, require_front_desk, require_staff, require_admin,
)
from api.errors import register_exception_handlers
from infrastructure.config import get_settings
from infrastructure.logging_config import setup_logging
from infrastructure.locking import RoomLockRegistry
from infrastructure.pdf_renderer import ReportLabInvoiceRenderer
from infrastructure.security import verify_password, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES
from domain.auth import User
from domain.exceptions import InvalidArgumentError, NotFoundError, UnauthorizedError
from domain.value_objects import Actor, DateRange, HotelSettings

from application.services import RoomService, BookingService, ReconciliationService
from application.billing import BillingService, InvoiceService
from infrastructure.repositories.in_memory_repositories import (
    InMemoryRoomRepository, InMemoryBookingRepository, InMemoryLedgerRepository,
    InMemorySettingsRepository, InMemoryGuestDirectory,
)
from domain.enums import BookingStatus, BookingChannel, RoomStatus, RoomType, PaymentStatus

settings = get_settings()
logger = setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Room registry, booking lifecycle, billing ledger and invoices for a single hotel",
    version="1.0.0"
)
register_exception_handlers(app)

# Initialize repositories
room_repo = InMemoryRoomRepository()
booking_repo = InMemoryBookingRepository(
    number_prefix=settings.BOOKING_NUMBER_PREFIX,
    number_width=settings.BOOKING_NUMBER_WIDTH,
)
ledger_repo = InMemoryLedgerRepository()
settings_repo = InMemorySettingsRepository(
    HotelSettings(
        hotel_name=settings.HOTEL_NAME,
        currency=settings.CURRENCY,
        tax_percent=settings.TAX_PERCENT,
    )
)
guest_directory = InMemoryGuestDirectory.from_users(fake_users_db)
room_locks = RoomLockRegistry()
invoice_renderer = ReportLabInvoiceRenderer()

# Dependency injection
def get_room_service() -> RoomService:
    return RoomService(room_repo, booking_repo)

def get_booking_service() -> BookingService:
    return BookingService(booking_repo, room_repo, guest_directory, room_locks)

def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(room_repo, booking_repo, room_locks)

def get_billing_service() -> BillingService:
    return BillingService(
        ledger_repo, booking_repo, room_repo, guest_directory,
        cap_refunds_at_payments=settings.CAP_REFUNDS_AT_PAYMENTS,
    )

def get_invoice_service() -> InvoiceService:
    return InvoiceService(
        booking_repo, room_repo, ledger_repo, settings_repo, guest_directory, invoice_renderer
    )

# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise UnauthorizedError("Incorrect username or password")
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    logger.info("User %s logged in", user.username)
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.get("/rooms", response_model=RoomListResponse, tags=["Rooms"])
async def list_rooms(
    status: Optional[RoomStatus] = None,
    room_type: Optional[RoomType] = None,
    floor: Optional[int] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """List rooms with filters, sorted by room number"""
    rooms, total = await service.list_rooms(
        status=status, room_type=room_type, floor=floor,
        min_price=min_price, max_price=max_price, search=search,
        page=page, limit=limit,
    )
    return RoomListResponse(
        items=[_room_to_response(r) for r in rooms], total=total, page=page, limit=limit
    )

@app.get("/rooms/available", response_model=List[RoomResponse], tags=["Rooms"])
async def find_available_rooms(
    check_in_date: Optional[date] = Query(None, alias="checkInDate"),
    check_out_date: Optional[date] = Query(None, alias="checkOutDate"),
    room_type: Optional[RoomType] = Query(None, alias="roomType"),
    guests: int = Query(1, ge=1),
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Rooms free for the given dates, cheapest first"""
    if (check_in_date is None) != (check_out_date is None):
        raise InvalidArgumentError("Both checkInDate and checkOutDate are required for a date search")

    date_range = None
    if check_in_date is not None:
        if check_out_date <= check_in_date:
            raise InvalidArgumentError("Check-out date must be after check-in date")
        date_range = DateRange(check_in=check_in_date, check_out=check_out_date)

    rooms = await service.find_available(min_guests=guests, room_type=room_type, date_range=date_range)
    return [_room_to_response(r) for r in rooms]

@app.get("/rooms/statistics", tags=["Rooms"])
async def get_room_statistics(
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(require_staff)
):
    """Room counts per status and per type"""
    return await service.room_statistics()

@app.post("/rooms/reconcile", response_model=List[RoomRepairResponse], tags=["Rooms"])
async def reconcile_rooms(
    service: ReconciliationService = Depends(get_reconciliation_service),
    actor: Actor = Depends(require_managers)
):
    """Repair room statuses that disagree with their bookings"""
    repairs = await service.reconcile_room_statuses(actor)
    return [
        RoomRepairResponse(
            room_id=r["room_id"],
            room_number=r["room_number"],
            previous_status=r["previous_status"].value,
            new_status=r["new_status"].value,
        )
        for r in repairs
    ]

@app.post("/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(require_managers)
):
    """Create new room"""
    room = await service.create_room(
        actor=actor,
        room_number=request.room_number,
        capacity=request.capacity,
        price_per_night=request.price_per_night,
        room_type=request.room_type,
        floor=request.floor,
        amenities=request.amenities,
        description=request.description,
    )
    return _room_to_response(room)

@app.get("/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get room by ID"""
    room = await service.get_room(room_id)
    if not room:
        raise NotFoundError("Room not found")
    return _room_to_response(room)

@app.put("/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    room_id: UUID,
    request: UpdateRoomRequest,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(require_managers)
):
    """Update room details"""
    room = await service.update_room(room_id, request.model_dump(exclude_unset=True), actor)
    return _room_to_response(room)

@app.patch("/rooms/{room_id}/status", response_model=RoomResponse, tags=["Rooms"])
async def set_room_status(
    room_id: UUID,
    request: RoomStatusRequest,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(require_staff)
):
    """Operational status change (housekeeping, maintenance)"""
    room = await service.set_status(room_id, request.status, actor)
    return _room_to_response(room)

@app.delete("/rooms/{room_id}", tags=["Rooms"])
async def delete_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(require_managers)
):
    """Delete room without active bookings"""
    await service.delete_room(room_id, actor)
    return {"message": "Room deleted successfully"}

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/bookings/guest-book", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def guest_book(
    request: GuestBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Self-service booking for the authenticated user; starts Pending"""
    booking = await service.guest_book(
        actor=actor,
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        number_of_guests=request.number_of_guests,
        special_requests=request.special_requests,
    )
    return await _booking_to_response(booking, service)

@app.post("/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Front-desk booking on behalf of a guest; starts Confirmed"""
    booking = await service.create_booking(
        actor=actor,
        guest_id=request.guest_id,
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        number_of_guests=request.number_of_guests,
        channel=BookingChannel.STAFF,
        services=[s.model_dump() for s in request.additional_services],
        special_requests=request.special_requests,
        tax_rate=request.tax_rate,
    )
    return await _booking_to_response(booking, service)

@app.get("/bookings", response_model=BookingListResponse, tags=["Bookings"])
async def list_bookings(
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    guest_id: Optional[UUID] = None,
    room_id: Optional[UUID] = None,
    check_in_from: Optional[date] = None,
    check_out_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """List bookings, newest first; guests only see their own"""
    bookings, total = await service.list_bookings(
        actor=actor, status=status, payment_status=payment_status,
        guest_id=guest_id, room_id=room_id,
        check_in_from=check_in_from, check_out_to=check_out_to,
        page=page, limit=limit,
    )
    return BookingListResponse(
        items=[await _booking_to_response(b, service) for b in bookings],
        total=total, page=page, limit=limit,
    )

@app.get("/bookings/statistics", tags=["Bookings"])
async def get_booking_statistics(
    period: int = Query(30, ge=1),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_staff)
):
    """Counts and revenue over the trailing period (days)"""
    return await service.booking_statistics(period_days=period)

@app.get("/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get booking by ID"""
    booking = await service.get_booking_for(booking_id, actor)
    return await _booking_to_response(booking, service)

@app.put("/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def update_booking(
    booking_id: UUID,
    request: UpdateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_managers)
):
    """Administrative update of dates, guests, tax rate and notes"""
    booking = await service.update_booking(
        booking_id,
        actor,
        check_in=request.check_in,
        check_out=request.check_out,
        number_of_guests=request.number_of_guests,
        notes=request.notes,
        special_requests=request.special_requests,
        tax_rate=request.tax_rate,
    )
    return await _booking_to_response(booking, service)

@app.delete("/bookings/{booking_id}", tags=["Bookings"])
async def delete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_managers)
):
    """Hard delete; room status is not restored"""
    await service.delete_booking(booking_id, actor)
    return {"message": "Booking deleted successfully"}

@app.patch("/bookings/{booking_id}/checkin", response_model=BookingResponse, tags=["Bookings"])
async def check_in_booking(
    booking_id: UUID,
    request: Optional[TransitionNoteRequest] = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Check in guest (Confirmed only); room becomes Occupied"""
    booking = await service.check_in_guest(booking_id, actor, request.notes if request else None)
    return await _booking_to_response(booking, service)

@app.patch("/bookings/{booking_id}/checkout", response_model=BookingResponse, tags=["Bookings"])
async def check_out_booking(
    booking_id: UUID,
    request: Optional[TransitionNoteRequest] = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Check out guest (Checked In only); room goes to Cleaning"""
    booking = await service.check_out_guest(booking_id, actor, request.notes if request else None)
    return await _booking_to_response(booking, service)

@app.patch("/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: Optional[CancelBookingRequest] = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Cancel booking; room becomes Available"""
    booking = await service.cancel_booking(booking_id, actor, request.reason if request else None)
    return await _booking_to_response(booking, service)

@app.patch("/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Confirm a pending booking"""
    booking = await service.confirm_booking(booking_id, actor)
    return await _booking_to_response(booking, service)

@app.patch("/bookings/{booking_id}/unconfirm", response_model=BookingResponse, tags=["Bookings"])
async def unconfirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Revert a confirmed booking to pending"""
    booking = await service.revert_to_pending(booking_id, actor)
    return await _booking_to_response(booking, service)

@app.patch("/bookings/{booking_id}/no-show", response_model=BookingResponse, tags=["Bookings"])
async def no_show_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Mark booking as no-show"""
    booking = await service.mark_no_show(booking_id, actor)
    return await _booking_to_response(booking, service)

@app.post("/bookings/{booking_id}/services", response_model=BookingResponse, tags=["Bookings"])
async def add_booking_service(
    booking_id: UUID,
    request: ServiceRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Add an ancillary service to an active booking"""
    booking = await service.add_service(
        booking_id, actor, request.name, request.price, request.quantity
    )
    return await _booking_to_response(booking, service)

# ============================================================================
# BILLING ENDPOINTS
# ============================================================================

@app.get("/billing", response_model=List[BillingRowResponse], tags=["Billing"])
async def list_billing(
    booking_status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    created_from: Optional[date] = None,
    created_to: Optional[date] = None,
    service: BillingService = Depends(get_billing_service),
    actor: Actor = Depends(require_front_desk)
):
    """Billing overview, one row per booking"""
    rows = await service.list_billing(
        booking_status=booking_status,
        payment_status=payment_status,
        created_from=created_from,
        created_to=created_to,
    )
    return [BillingRowResponse(**row) for row in rows]

@app.get("/billing/{booking_id}/invoice", response_model=InvoiceResponse, tags=["Billing"])
async def get_invoice(
    booking_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    actor: Actor = Depends(get_current_actor)
):
    """Invoice document for a booking"""
    invoice = await service.get_invoice(booking_id, actor)
    return InvoiceResponse.model_validate(invoice.model_dump())

@app.get("/billing/{booking_id}/invoice.pdf", tags=["Billing"])
async def download_invoice_pdf(
    booking_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    actor: Actor = Depends(get_current_actor)
):
    """Invoice rendered as a PDF attachment"""
    filename, media_type, content = await service.render_invoice(booking_id, actor)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )

@app.post("/billing/{booking_id}/payments", response_model=LedgerEntryResponse, status_code=201, tags=["Billing"])
async def record_payment(
    booking_id: UUID,
    request: LedgerEntryRequest,
    service: BillingService = Depends(get_billing_service),
    actor: Actor = Depends(require_front_desk)
):
    """Record a payment against a booking"""
    entry = await service.record_payment(booking_id, request.amount, request.method, actor, request.note)
    return LedgerEntryResponse.model_validate(entry)

@app.post("/billing/{booking_id}/refund", response_model=LedgerEntryResponse, status_code=201, tags=["Billing"])
async def record_refund(
    booking_id: UUID,
    request: LedgerEntryRequest,
    service: BillingService = Depends(get_billing_service),
    actor: Actor = Depends(require_front_desk)
):
    """Record a refund against a booking"""
    entry = await service.record_refund(booking_id, request.amount, request.method, actor, request.note)
    return LedgerEntryResponse.model_validate(entry)

@app.patch("/billing/{booking_id}/status", response_model=BookingResponse, tags=["Billing"])
async def override_payment_status(
    booking_id: UUID,
    request: PaymentStatusRequest,
    service: BillingService = Depends(get_billing_service),
    booking_service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(require_front_desk)
):
    """Manually override the stored payment status"""
    booking = await service.set_payment_status_override(booking_id, request.payment_status, actor)
    return await _booking_to_response(booking, booking_service)

@app.get("/billing/{booking_id}/ledger", response_model=LedgerResponse, tags=["Billing"])
async def get_ledger(
    booking_id: UUID,
    service: BillingService = Depends(get_billing_service),
    actor: Actor = Depends(require_front_desk)
):
    """Ledger entries and derived balance"""
    entries = await service.get_ledger(booking_id)
    balance = await service.compute_balance(booking_id)
    return LedgerResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        balance=BalanceResponse.model_validate(balance),
    )

# ============================================================================
# SETTINGS ENDPOINTS
# ============================================================================

@app.get("/settings", response_model=HotelSettingsResponse, tags=["Settings"])
async def get_hotel_settings(
    service: InvoiceService = Depends(get_invoice_service),
    actor: Actor = Depends(get_current_actor)
):
    return HotelSettingsResponse.model_validate(await service.get_settings())

@app.put("/settings", response_model=HotelSettingsResponse, tags=["Settings"])
async def update_hotel_settings(
    request: UpdateHotelSettingsRequest,
    service: InvoiceService = Depends(get_invoice_service),
    actor: Actor = Depends(require_admin)
):
    """Update hotel name, currency or tax percent"""
    updated = await service.update_settings(actor, **request.model_dump(exclude_unset=True))
    return HotelSettingsResponse.model_validate(updated)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        room_number=room.room_number,
        room_type=room.room_type.value,
        floor=room.floor,
        capacity=room.capacity,
        price_per_night=room.price_per_night,
        amenities=[a.value for a in room.amenities],
        description=room.description,
        status=room.status.value,
        is_active=room.is_active,
        last_cleaned=room.last_cleaned,
        next_maintenance=room.next_maintenance,
        created_at=room.created_at,
        modified_at=room.modified_at,
        version=room.version
    )

async def _booking_to_response(booking, service: BookingService) -> BookingResponse:
    """Convert Booking entity to BookingResponse with room and guest details"""
    room = await service.room_repo.find_by_id(booking.room_id)
    guest = await service.guest_directory.find_by_id(booking.guest_id)
    return BookingResponse(
        booking_id=booking.booking_id,
        booking_number=booking.booking_number,
        guest_id=booking.guest_id,
        guest_name=guest.name if guest else None,
        guest_email=guest.email if guest else None,
        room_id=booking.room_id,
        room_number=room.room_number if room else None,
        room_type=room.room_type.value if room else None,
        check_in=booking.date_range.check_in,
        check_out=booking.date_range.check_out,
        nights=booking.get_nights(),
        number_of_guests=booking.number_of_guests,
        nightly_rate=booking.nightly_rate,
        total_amount=booking.total_amount,
        tax_rate=booking.tax_rate,
        status=booking.status.value,
        payment_status=booking.payment_status.value,
        channel=booking.channel.value,
        additional_services=[
            ServiceChargeResponse(
                name=s.name,
                unit_price=s.unit_price,
                quantity=s.quantity,
                line_total=s.line_total
            )
            for s in booking.additional_services
        ],
        special_requests=booking.special_requests,
        notes=booking.notes,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        created_by=booking.created_by,
        version=booking.version
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
