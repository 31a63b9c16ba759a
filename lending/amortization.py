"""
Amortization Module

Fixed-payment (French / annuity) calculation, the interest/principal
breakdown of an annuity schedule, and calendar month arithmetic for due dates.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import List
import calendar

from .money import ZERO, AmountLike, to_decimal


ONE = Decimal('1')
HUNDRED = Decimal('100')


def compute_periodic_payment(
    principal: AmountLike,
    periods: int,
    periodic_rate_percent: AmountLike
) -> Decimal:
    """
    Calculate the fixed periodic payment of an annuity

    Standard loan payment formula: P * [r(1+r)^n] / [(1+r)^n - 1]
    Where P = principal, r = periodic rate, n = number of payments

    Args:
        principal: Amount lent, must be positive
        periods: Number of payments, must be positive
        periodic_rate_percent: Flat per-period rate in percent (15.5 means 15.5%)

    Returns:
        Payment amount at full Decimal precision (not rounded)
    """
    principal = to_decimal(principal)
    periodic_rate = to_decimal(periodic_rate_percent) / HUNDRED
    num_payments = int(periods)

    if periodic_rate == ZERO:
        # No interest - simple division
        return principal / Decimal(num_payments)

    factor = (ONE + periodic_rate) ** num_payments
    return principal * periodic_rate * factor / (factor - ONE)


@dataclass(frozen=True)
class AmortizationEntry:
    """Single row of an annuity breakdown table"""
    number: int
    payment: Decimal
    interest: Decimal
    principal: Decimal
    remaining_balance: Decimal


def build_amortization_table(
    principal: AmountLike,
    periods: int,
    periodic_rate_percent: AmountLike
) -> List[AmortizationEntry]:
    """
    Split each fixed payment into its interest and principal parts

    Interest is charged on the remaining balance each period; the last row
    pays off exactly what is left so the final balance is zero.
    """
    remaining = to_decimal(principal)
    periodic_rate = to_decimal(periodic_rate_percent) / HUNDRED
    payment = compute_periodic_payment(remaining, periods, periodic_rate_percent)

    table = []
    for number in range(1, periods + 1):
        interest = remaining * periodic_rate
        if number == periods:
            principal_part = remaining
            row_payment = principal_part + interest
        else:
            principal_part = payment - interest
            row_payment = payment
        remaining = remaining - principal_part

        table.append(AmortizationEntry(
            number=number,
            payment=row_payment,
            interest=interest,
            principal=principal_part,
            remaining_balance=remaining
        ))

    return table


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
