"""
Rental price calculation.

The charge is ``rate x days`` where days is the rental span rounded up to
whole 24-hour periods (at least one), plus a flat percentage tax and any
fixed fees. Rounding to cents happens once, on the final total.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Tuple

from django.conf import settings

from api.exceptions import ValidationError

_CENT = Decimal('0.01')
_DAY_SECONDS = timedelta(days=1).total_seconds()


@dataclass(frozen=True)
class PriceQuote:
    days: int
    daily_rate: Decimal
    base: Decimal
    tax_rate: Decimal
    tax: Decimal
    fees: Tuple[Tuple[str, Decimal], ...] = field(default_factory=tuple)
    total: Decimal = Decimal('0.00')
    currency: str = ''

    @property
    def fees_total(self):
        return sum((amount for _, amount in self.fees), Decimal('0'))

    def as_dict(self):
        return {
            'days': self.days,
            'daily_rate': str(self.daily_rate),
            'base': str(self.base),
            'tax_rate': str(self.tax_rate),
            'tax': str(self.tax),
            'fees': [{'name': name, 'amount': str(amount)} for name, amount in self.fees],
            'total': str(self.total),
            'currency': self.currency,
        }


def rental_days(pickup, dropoff) -> int:
    """Whole days charged for the window, rounded up, minimum one."""
    if pickup is None or dropoff is None:
        raise ValidationError("Pickup and drop-off times are required.")
    if dropoff <= pickup:
        raise ValidationError("Drop-off time must be after pickup time.")
    seconds = (dropoff - pickup).total_seconds()
    return max(1, math.ceil(seconds / _DAY_SECONDS))


def _normalise_location(value):
    return ' '.join((value or '').split()).lower()


def calculate_price(daily_rate, pickup, dropoff, pickup_location='', dropoff_location='',
                    tax_rate: Optional[Decimal] = None, dropoff_fee: Optional[Decimal] = None,
                    currency: Optional[str] = None) -> PriceQuote:
    try:
        rate = Decimal(str(daily_rate))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid daily rate.")
    if rate <= 0:
        raise ValidationError("Invalid car price: daily rate must be greater than zero.")

    tax_rate = settings.RENTAL_TAX_RATE if tax_rate is None else Decimal(str(tax_rate))
    dropoff_fee = settings.RENTAL_DROPOFF_FEE if dropoff_fee is None else Decimal(str(dropoff_fee))
    currency = currency or settings.RENTAL_CURRENCY

    days = rental_days(pickup, dropoff)
    base = rate * days
    tax = base * tax_rate

    fees: List[Tuple[str, Decimal]] = []
    if dropoff_location and _normalise_location(dropoff_location) != _normalise_location(pickup_location):
        fees.append(('dropoff_fee', dropoff_fee))

    quote = PriceQuote(
        days=days,
        daily_rate=rate,
        base=base,
        tax_rate=tax_rate,
        tax=tax,
        fees=tuple(fees),
        currency=currency,
    )
    total = base + tax + quote.fees_total
    return replace(quote, total=total.quantize(_CENT, rounding=ROUND_HALF_UP))


def quote_for_reservation(reservation) -> PriceQuote:
    return calculate_price(
        reservation.vehicle.price_per_day,
        reservation.pickup_time,
        reservation.dropoff_time,
        pickup_location=reservation.pickup_location,
        dropoff_location=reservation.dropoff_location,
    )
