"""Application Services - Billing ledger and invoices"""
import logging
from uuid import UUID
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Dict, Any, Tuple

from domain.repositories import (
    BookingRepository, RoomRepository, LedgerRepository, SettingsRepository, GuestDirectory,
)
from domain.entities import Booking, LedgerEntry
from domain.enums import BookingStatus, PaymentMethod, LedgerEntryKind, PaymentStatus
from domain.exceptions import InvalidArgumentError, NotFoundError, ConflictError
from domain.billing import (
    BalanceSummary, InvoiceDocument, InvoiceRenderer, compute_balance, assemble_invoice,
)
from domain.value_objects import Actor, HotelSettings, quantize_money
from application.services import ensure_can_access

logger = logging.getLogger(__name__)


def _parse_amount(amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidArgumentError("Amount must be a number")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidArgumentError("Amount must be a number")
    if not value.is_finite() or value <= 0:
        raise InvalidArgumentError("Amount must be greater than 0")
    return quantize_money(value)


def _parse_method(method) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).upper())
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid payment method: {method}",
            details={"allowed": [m.value for m in PaymentMethod]},
        )


class BillingService:
    """Append-only payment ledger with derived balances"""

    def __init__(
        self,
        ledger_repo: LedgerRepository,
        booking_repo: BookingRepository,
        room_repo: RoomRepository,
        guest_directory: GuestDirectory,
        cap_refunds_at_payments: bool = False,
    ):
        self.ledger_repo = ledger_repo
        self.booking_repo = booking_repo
        self.room_repo = room_repo
        self.guest_directory = guest_directory
        self.cap_refunds_at_payments = cap_refunds_at_payments

    async def _require_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repo.find_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def record_payment(
        self,
        booking_id: UUID,
        amount,
        method,
        actor: Actor,
        note: Optional[str] = None,
    ) -> LedgerEntry:
        """Append a payment. Overpayment is accepted; remaining floors at zero."""
        value = _parse_amount(amount)
        payment_method = _parse_method(method)
        booking = await self._require_booking(booking_id)

        entry = LedgerEntry(
            booking_id=booking.booking_id,
            amount=value,
            method=payment_method,
            kind=LedgerEntryKind.PAYMENT,
            note=note,
            recorded_by=actor.user_id,
        )
        await self.ledger_repo.append(entry)
        logger.info(
            "Payment %s %s recorded on booking %s by %s",
            value, payment_method.value, booking.booking_number, actor.user_id,
        )
        return entry

    async def record_refund(
        self,
        booking_id: UUID,
        amount,
        method,
        actor: Actor,
        note: Optional[str] = None,
    ) -> LedgerEntry:
        """Append a refund; optionally capped at cumulative payments"""
        value = _parse_amount(amount)
        payment_method = _parse_method(method)
        booking = await self._require_booking(booking_id)

        if self.cap_refunds_at_payments:
            balance = compute_balance(booking, await self.ledger_repo.find_by_booking(booking_id))
            if balance.refunded + value > balance.paid:
                logger.warning(
                    "Refund of %s on booking %s rejected: paid %s, already refunded %s",
                    value, booking.booking_number, balance.paid, balance.refunded,
                )
                raise ConflictError(
                    "Refund exceeds total payments",
                    details={"paid": str(balance.paid), "refunded": str(balance.refunded)},
                )

        entry = LedgerEntry(
            booking_id=booking.booking_id,
            amount=value,
            method=payment_method,
            kind=LedgerEntryKind.REFUND,
            note=note,
            recorded_by=actor.user_id,
        )
        await self.ledger_repo.append(entry)
        logger.info(
            "Refund %s %s recorded on booking %s by %s",
            value, payment_method.value, booking.booking_number, actor.user_id,
        )
        return entry

    async def compute_balance(self, booking_id: UUID) -> BalanceSummary:
        booking = await self._require_booking(booking_id)
        return compute_balance(booking, await self.ledger_repo.find_by_booking(booking_id))

    async def get_ledger(self, booking_id: UUID) -> List[LedgerEntry]:
        """Entries in the order they were recorded"""
        await self._require_booking(booking_id)
        return await self.ledger_repo.find_by_booking(booking_id)

    async def set_payment_status_override(
        self,
        booking_id: UUID,
        status,
        actor: Actor,
    ) -> Booking:
        """Manual correction of the cached status; the ledger is not touched"""
        try:
            payment_status = status if isinstance(status, PaymentStatus) else PaymentStatus(str(status).upper())
        except ValueError:
            raise InvalidArgumentError(f"Invalid payment status: {status}")

        booking = await self._require_booking(booking_id)
        booking.override_payment_status(payment_status)
        await self.booking_repo.update(booking)
        logger.info(
            "Payment status of booking %s overridden to %s by %s",
            booking.booking_number, payment_status.value, actor.user_id,
        )
        return booking

    async def list_billing(
        self,
        booking_status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """One row per booking with its ledger-derived totals, newest first"""
        rows = []
        for booking in await self.booking_repo.find_all():
            if booking_status and booking.status != booking_status:
                continue
            created = booking.created_at.date()
            if created_from and created < created_from:
                continue
            if created_to and created > created_to:
                continue

            balance = compute_balance(booking, await self.ledger_repo.find_by_booking(booking.booking_id))
            if payment_status and balance.payment_status != payment_status:
                continue

            guest = await self.guest_directory.find_by_id(booking.guest_id)
            room = await self.room_repo.find_by_id(booking.room_id)
            rows.append({
                "booking_id": booking.booking_id,
                "booking_number": booking.booking_number,
                "guest_name": guest.name if guest else None,
                "room_number": room.room_number if room else None,
                "booking_status": booking.status,
                "check_in": booking.date_range.check_in,
                "check_out": booking.date_range.check_out,
                "total_amount": balance.charge,
                "paid_amount": balance.paid,
                "refunded_amount": balance.refunded,
                "remaining": balance.remaining,
                "payment_status": balance.payment_status,
                "created_at": booking.created_at,
            })

        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows


class InvoiceService:
    """Builds invoice documents and hands them to a renderer"""

    def __init__(
        self,
        booking_repo: BookingRepository,
        room_repo: RoomRepository,
        ledger_repo: LedgerRepository,
        settings_repo: SettingsRepository,
        guest_directory: GuestDirectory,
        renderer: InvoiceRenderer,
    ):
        self.booking_repo = booking_repo
        self.room_repo = room_repo
        self.ledger_repo = ledger_repo
        self.settings_repo = settings_repo
        self.guest_directory = guest_directory
        self.renderer = renderer

    async def get_invoice(
        self,
        booking_id: UUID,
        actor: Actor,
        issue_date: Optional[date] = None,
    ) -> InvoiceDocument:
        booking = await self.booking_repo.find_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        ensure_can_access(actor, booking)

        room = await self.room_repo.find_by_id(booking.room_id)
        if not room:
            raise NotFoundError("Room not found")

        return assemble_invoice(
            booking=booking,
            room=room,
            entries=await self.ledger_repo.find_by_booking(booking_id),
            settings=await self.settings_repo.get(),
            guest=await self.guest_directory.find_by_id(booking.guest_id),
            issue_date=issue_date,
        )

    async def render_invoice(self, booking_id: UUID, actor: Actor) -> Tuple[str, str, bytes]:
        """Returns (filename, media type, content)"""
        invoice = await self.get_invoice(booking_id, actor)
        content = self.renderer.render(invoice)
        logger.info("Invoice %s rendered (%d bytes)", invoice.invoice_number, len(content))
        return f"invoice-{invoice.invoice_number}.{self.renderer.extension}", self.renderer.media_type, content

    async def get_settings(self) -> HotelSettings:
        return await self.settings_repo.get()

    async def update_settings(self, actor: Actor, **changes) -> HotelSettings:
        """Partial update of hotel-wide invoice settings"""
        current = await self.settings_repo.get()
        candidate = current.model_dump()
        candidate.update({k: v for k, v in changes.items() if v is not None})
        try:
            updated = HotelSettings(**candidate)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid settings: {e}")

        saved = await self.settings_repo.update(updated)
        logger.info("Hotel settings updated by %s: %s", actor.user_id, sorted(changes))
        return saved
