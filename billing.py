"""
Rental billing.

Durations are measured over [out_date, in_date], with ``now`` standing in for
an open rental's in_date. Day billing uses the absolute elapsed time rounded
up to whole days (minimum 1). Month billing counts calendar months touched and
ignores the day of month, so Jan 31 -> Feb 1 is 2 months.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from models import Rental, RentalSummary

SECONDS_PER_DAY = 24 * 60 * 60


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _end(in_date: Optional[datetime], now: Optional[datetime]) -> datetime:
    if in_date is not None:
        return in_date
    return now if now is not None else datetime.now(timezone.utc)


def days_rented(out_date: datetime, in_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    start = as_utc(out_date)
    end = as_utc(_end(in_date, now))
    diff = abs((end - start).total_seconds())
    days = math.ceil(diff / SECONDS_PER_DAY)
    return 1 if days == 0 else days


def months_rented(out_date: datetime, in_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    # calendar month of each timestamp as recorded, not shifted to UTC
    start = out_date
    end = _end(in_date, now)
    year_diff = end.year - start.year
    month_diff = end.month - start.month
    return year_diff * 12 + month_diff + 1


def duration(rental: Rental, now: Optional[datetime] = None) -> int:
    if rental.billing_cycle == "day":
        return days_rented(rental.out_date, rental.in_date, now)
    return months_rented(rental.out_date, rental.in_date, now)


def total_billed(rental: Rental, now: Optional[datetime] = None) -> float:
    return duration(rental, now) * rental.rate


def total_paid(rental: Rental) -> float:
    return sum(p.amount for p in rental.payments)


def balance(rental: Rental, now: Optional[datetime] = None) -> float:
    return total_billed(rental, now) - total_paid(rental)


def summarize(
    rental: Rental,
    *,
    asset_id: str,
    asset_name: str,
    customer_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RentalSummary:
    billed = total_billed(rental, now)
    paid = total_paid(rental)
    return RentalSummary(
        rental_id=rental.id,
        asset_id=asset_id,
        asset_name=asset_name,
        customer_id=rental.customer_id,
        customer_name=customer_name,
        out_date=rental.out_date,
        in_date=rental.in_date,
        billing_cycle=rental.billing_cycle,
        rate=rental.rate,
        duration=duration(rental, now),
        total_billed=billed,
        total_paid=paid,
        balance=billed - paid,
    )
