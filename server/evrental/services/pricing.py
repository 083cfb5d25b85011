"""Rental price quotes."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class PriceQuote:
    """Price breakdown of a rental, all amounts in minor units."""

    hours: int
    base_price: int
    insurance_amount: int
    tax_amount: int
    discount_amount: int
    total_amount: int
    deposit_amount: int
    # Discount actually granted by each promotion, in the order given
    applied_discounts: tuple[int, ...] = ()

    @property
    def subtotal(self) -> int:
        return self.base_price + self.insurance_amount + self.tax_amount

    @property
    def total_payable(self) -> int:
        """Rental total plus deposit."""
        return self.total_amount + self.deposit_amount


def billable_hours(start: datetime, end: datetime) -> int:
    """Started hours between start and end; at least one."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_HOUR))


def quote_rental(
    hourly_rate: int,
    deposit_amount: int,
    start: datetime,
    end: datetime,
    discount_rates: Sequence[float] = (),
    insurance_rate: float = 0.10,
    tax_rate: float = 0.08,
) -> PriceQuote:
    """
    Price a rental.

    Each discount rate is a fraction of the base price. Discounts are
    granted in order until the subtotal is used up, so the total never
    goes below zero.
    """
    hours = billable_hours(start, end)
    base_price = hours * hourly_rate
    insurance_amount = round(base_price * insurance_rate)
    tax_amount = round(base_price * tax_rate)
    subtotal = base_price + insurance_amount + tax_amount

    applied = []
    remaining = subtotal
    for rate in discount_rates:
        granted = min(round(base_price * rate), remaining)
        applied.append(granted)
        remaining -= granted

    discount_amount = subtotal - remaining
    return PriceQuote(
        hours=hours,
        base_price=base_price,
        insurance_amount=insurance_amount,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=subtotal - discount_amount,
        deposit_amount=deposit_amount,
        applied_discounts=tuple(applied),
    )
