"""
Fee calculation for ticket purchases.

Fee model (per event settings):
- subtotal        = unit_price * quantity
- platform_fee    = subtotal * platform_fee_percentage / 100
- processing_fee  = subtotal * payment_processing_fee_percentage / 100
                    + payment_processing_fee_fixed * quantity
- total_amount    = subtotal + platform_fee + processing_fee   (fee_payer == buyer)
                    subtotal                                   (fee_payer == organizer)

All arithmetic is Decimal. Each component is rounded half-up to cents and the
total is the sum of the rounded components, so a preview and the charge the
server creates are identical for identical inputs. When the organizer pays,
fees are still recorded on the sale and withheld from the payout through the
application fee.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from ticketing.models.fee_settings import FeePayer

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the literal the caller wrote instead of the binary expansion
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal) -> int:
    return int((quantize_money(value) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeSettingsSnapshot:
    """Immutable copy of an event's fee configuration, read once per computation."""

    platform_fee_percentage: Decimal = Decimal("0")
    payment_processing_fee_percentage: Decimal = Decimal("0")
    payment_processing_fee_fixed: Decimal = Decimal("0")
    fee_payer: str = FeePayer.BUYER

    def __post_init__(self):
        if self.fee_payer not in (FeePayer.BUYER, FeePayer.ORGANIZER):
            raise ValueError(f"Unknown fee payer: {self.fee_payer!r}")

    @classmethod
    def from_model(cls, settings) -> "FeeSettingsSnapshot":
        return cls(
            platform_fee_percentage=to_decimal(settings.platform_fee_percentage or 0),
            payment_processing_fee_percentage=to_decimal(
                settings.payment_processing_fee_percentage or 0
            ),
            payment_processing_fee_fixed=to_decimal(settings.payment_processing_fee_fixed or 0),
            fee_payer=settings.fee_payer or FeePayer.BUYER,
        )


@dataclass(frozen=True)
class FeeBreakdown:
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    platform_fee: Decimal
    processing_fee: Decimal
    total_amount: Decimal
    fee_payer: str

    @property
    def application_fee_amount(self) -> int:
        """Platform share of the charge, in minor units."""
        return to_minor_units(self.platform_fee + self.processing_fee)

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total_amount)


def calculate_fees(
    unit_price: Number,
    quantity: int,
    settings: FeeSettingsSnapshot,
) -> FeeBreakdown:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError("quantity must be a positive integer")

    price = to_decimal(unit_price)
    if price < 0:
        raise ValueError("unit_price must not be negative")

    exact_subtotal = price * quantity
    subtotal = quantize_money(exact_subtotal)
    platform_fee = quantize_money(exact_subtotal * settings.platform_fee_percentage / HUNDRED)
    processing_fee = quantize_money(
        exact_subtotal * settings.payment_processing_fee_percentage / HUNDRED
        + settings.payment_processing_fee_fixed * quantity
    )

    if settings.fee_payer == FeePayer.BUYER:
        total = subtotal + platform_fee + processing_fee
    else:
        total = subtotal

    return FeeBreakdown(
        unit_price=quantize_money(price),
        quantity=quantity,
        subtotal=subtotal,
        platform_fee=platform_fee,
        processing_fee=processing_fee,
        total_amount=total,
        fee_payer=settings.fee_payer,
    )
