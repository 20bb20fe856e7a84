from datetime import datetime, timedelta, timezone

import billing
from models import Payment, Rental


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _rental(out_date, in_date=None, rate=50.0, cycle="day", payments=()):
    return Rental(
        id="RENT-1",
        customer_id="CUST-001",
        out_date=out_date,
        in_date=in_date,
        rate=rate,
        billing_cycle=cycle,
        payments=[
            Payment(id=f"PAY-{i}", amount=amount, date="2024-01-02", mode="Cash")
            for i, amount in enumerate(payments)
        ],
    )


def test_open_day_rental_bills_elapsed_days():
    r = _rental(_utc(2024, 1, 1), rate=50)
    now = _utc(2024, 1, 3)

    assert billing.days_rented(r.out_date, r.in_date, now) == 2
    assert billing.total_billed(r, now) == 100


def test_payment_reduces_balance_by_its_amount():
    now = _utc(2024, 1, 3)
    unpaid = _rental(_utc(2024, 1, 1), rate=50)
    paid = _rental(_utc(2024, 1, 1), rate=50, payments=[40])

    assert billing.balance(unpaid, now) == 100
    assert billing.balance(paid, now) == 60
    assert billing.balance(unpaid, now) - billing.balance(paid, now) == 40


def test_same_moment_counts_as_one_day():
    start = _utc(2024, 5, 1, 9, 0)
    assert billing.days_rented(start, start) == 1


def test_partial_day_rounds_up():
    start = _utc(2024, 5, 1, 9, 0)
    assert billing.days_rented(start, start + timedelta(days=1, minutes=1)) == 2
    assert billing.days_rented(start, start + timedelta(hours=3)) == 1


def test_day_difference_is_absolute():
    start = _utc(2024, 5, 10)
    assert billing.days_rented(start, _utc(2024, 5, 7)) == 3


def test_month_rental_ignores_day_of_month():
    r = _rental(_utc(2024, 1, 31), _utc(2024, 2, 1), rate=150, cycle="month")

    assert billing.months_rented(r.out_date, r.in_date) == 2
    assert billing.total_billed(r) == 300


def test_same_calendar_month_bills_one_month():
    assert billing.months_rented(_utc(2024, 3, 1), _utc(2024, 3, 31)) == 1


def test_month_count_across_year_boundary():
    # (2025 - 2024) * 12 + (2 - 11) + 1
    assert billing.months_rented(_utc(2024, 11, 15), _utc(2025, 2, 1)) == 4


def test_naive_datetimes_are_treated_as_utc():
    start = datetime(2024, 1, 1)
    assert billing.days_rented(start, _utc(2024, 1, 4)) == 3


def test_overpayment_gives_negative_balance():
    r = _rental(_utc(2024, 1, 1), _utc(2024, 1, 2), rate=10, payments=[25])
    assert billing.total_paid(r) == 25
    assert billing.balance(r) == -15


def test_no_payments_sum_to_zero():
    assert billing.total_paid(_rental(_utc(2024, 1, 1))) == 0


def test_summary_carries_all_amounts():
    r = _rental(_utc(2024, 1, 1), rate=50, payments=[40])
    s = billing.summarize(r, asset_id="ASSET-001", asset_name="Mixer", customer_name="John", now=_utc(2024, 1, 3))

    assert s.duration == 2
    assert s.total_billed == 100
    assert s.total_paid == 40
    assert s.balance == 60
    assert s.customer_name == "John"


def test_month_count_uses_each_timestamps_own_calendar():
    ist = timezone(timedelta(hours=5, minutes=30))
    # 2024-02-01 00:30 in India is still January in UTC
    out = datetime(2024, 2, 1, 0, 30, tzinfo=ist)

    assert billing.months_rented(out, datetime(2024, 2, 20, tzinfo=ist)) == 1
    assert billing.months_rented(out, datetime(2024, 3, 1, 0, 30, tzinfo=ist)) == 2
