"""Domain Value Objects"""
import math
from pydantic import BaseModel, Field, validator
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from domain.enums import UserRole, STAFF_ROLES

CENT = Decimal("0.01")


def quantize_money(amount) -> Decimal:
    """Round a monetary amount half-up to two places"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class DateRange(BaseModel):
    """Value Object for a half-open stay interval [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights, never less than one"""
        return max(1, math.ceil((self.check_out - self.check_in) / timedelta(days=1)))

    def overlaps(self, other: "DateRange") -> bool:
        """Touching boundaries do not overlap"""
        return self.check_in < other.check_out and self.check_out > other.check_in

    class Config:
        frozen = True


class ServiceCharge(BaseModel):
    """Ancillary service billed on top of room nights"""
    name: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1, default=1)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    class Config:
        frozen = True


class Actor(BaseModel):
    """Authenticated principal performing an operation"""
    user_id: UUID
    role: UserRole

    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    class Config:
        frozen = True


class GuestProfile(BaseModel):
    """Guest details resolved from the identity collaborator"""
    guest_id: UUID
    name: str
    email: str = ""

    class Config:
        frozen = True


class HotelSettings(BaseModel):
    """Property-wide values used on invoices"""
    hotel_name: str = "LuxuryStay"
    currency: str = "Rs"
    tax_percent: Decimal = Field(ge=0, le=100, default=Decimal("10"))

    class Config:
        from_attributes = True
