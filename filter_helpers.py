import math
from datetime import datetime
from typing import Optional

VALID_STATUSES = {"Available", "Rented"}
VALID_RENTAL_STATES = {"active", "completed"}
VALID_BILLING_CYCLES = {"day", "month"}
VALID_PAYMENT_MODES = {"Cash", "Credit Card", "Bank Transfer", "Other"}


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value == "":
        return None
    return value


def normalize_status(status: Optional[str]) -> Optional[str]:
    if status in VALID_STATUSES:
        return status
    return None


def normalize_rental_state(state: Optional[str]) -> Optional[str]:
    if state in VALID_RENTAL_STATES:
        return state
    return None


def normalize_billing_cycle(cycle: Optional[str]) -> Optional[str]:
    if cycle in VALID_BILLING_CYCLES:
        return cycle
    return None


def normalize_payment_mode(mode: Optional[str]) -> str:
    if mode in VALID_PAYMENT_MODES:
        return mode
    return "Cash"


def parse_form_datetime(value: Optional[str]) -> Optional[datetime]:
    """'YYYY-MM-DD' or a full ISO timestamp from a form field; blank or bad input is None."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_form_amount(value: Optional[str]) -> Optional[float]:
    try:
        amount = float((value or "").strip())
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def parse_form_rate(value: Optional[str]) -> Optional[float]:
    """Finite, non-negative rate from a form field; anything else is None."""
    try:
        rate = float((value or "").strip())
    except ValueError:
        return None
    if not math.isfinite(rate) or rate < 0:
        return None
    return rate
