"""
Billing calculations

Pure functions over a booking and its ledger entries. Nothing here is
persisted; balances and invoices are recomputed on every read.
"""
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel

from domain.entities import Booking, Room, LedgerEntry
from domain.enums import LedgerEntryKind, PaymentStatus
from domain.value_objects import GuestProfile, HotelSettings, quantize_money

ZERO = Decimal("0")


class BalanceSummary(BaseModel):
    """Ledger-derived balance for one booking"""
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


def derive_payment_status(paid: Decimal, remaining: Decimal) -> PaymentStatus:
    if remaining == 0:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def sum_entries(entries: Iterable[LedgerEntry], kind: LedgerEntryKind) -> Decimal:
    return quantize_money(sum((e.amount for e in entries if e.kind == kind), ZERO))


def compute_balance(booking: Booking, entries: Iterable[LedgerEntry]) -> BalanceSummary:
    """remaining = max(0, charge - paid + refunded)"""
    entries = list(entries)
    paid = sum_entries(entries, LedgerEntryKind.PAYMENT)
    refunded = sum_entries(entries, LedgerEntryKind.REFUND)
    charge = booking.charge_total()
    remaining = quantize_money(max(ZERO, charge - paid + refunded))

    return BalanceSummary(
        booking_id=booking.booking_id,
        nights=booking.get_nights(),
        nightly_rate=booking.nightly_rate,
        room_total=booking.total_amount,
        services_total=quantize_money(booking.services_total()),
        charge=charge,
        paid=paid,
        refunded=refunded,
        remaining=remaining,
        payment_status=derive_payment_status(paid, remaining),
    )


# ============================================================================
# INVOICE DOCUMENT MODEL
# ============================================================================

class InvoiceLineItem(BaseModel):
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class InvoiceDocument(BaseModel):
    """Renderer-agnostic invoice; a renderer turns this into bytes"""
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

    line_items: List[InvoiceLineItem]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal

    total_paid: Decimal
    total_refunded: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus


def assemble_invoice(
    booking: Booking,
    room: Room,
    entries: Iterable[LedgerEntry],
    settings: HotelSettings,
    guest: Optional[GuestProfile] = None,
    issue_date: Optional[date] = None,
) -> InvoiceDocument:
    entries = list(entries)
    nights = booking.get_nights()

    items = [
        InvoiceLineItem(
            description=f"Room {room.room_number} ({room.room_type.value.title()}) per night",
            quantity=nights,
            unit_price=quantize_money(booking.nightly_rate),
            total=booking.total_amount,
        )
    ]
    for service in booking.additional_services:
        items.append(
            InvoiceLineItem(
                description=service.name,
                quantity=service.quantity,
                unit_price=quantize_money(service.unit_price),
                total=quantize_money(service.line_total),
            )
        )

    subtotal = quantize_money(sum((i.total for i in items), ZERO))
    tax_rate = (
        booking.tax_rate
        if booking.tax_rate is not None
        else Decimal(settings.tax_percent) / 100
    )
    tax_amount = quantize_money(subtotal * tax_rate)
    grand_total = quantize_money(subtotal + tax_amount)

    paid = sum_entries(entries, LedgerEntryKind.PAYMENT)
    refunded = sum_entries(entries, LedgerEntryKind.REFUND)
    balance_due = quantize_money(max(ZERO, grand_total - paid + refunded))

    return InvoiceDocument(
        invoice_number=booking.booking_number,
        issue_date=issue_date or date.today(),
        hotel_name=settings.hotel_name,
        currency=settings.currency,
        guest_name=guest.name if guest else "",
        guest_email=guest.email if guest else "",
        room_number=room.room_number,
        room_type=room.room_type.value,
        check_in=booking.date_range.check_in,
        check_out=booking.date_range.check_out,
        nights=nights,
        line_items=items,
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        grand_total=grand_total,
        total_paid=paid,
        total_refunded=refunded,
        balance_due=balance_due,
        payment_status=derive_payment_status(paid, balance_due),
    )


class InvoiceRenderer(ABC):
    """Rendering collaborator: invoice document in, downloadable bytes out"""

    media_type: str = "application/octet-stream"
    extension: str = "bin"

    @abstractmethod
    def render(self, invoice: InvoiceDocument) -> bytes:
        pass
