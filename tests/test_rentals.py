from datetime import datetime, timedelta, timezone

import crud
from models import AssetIn, CustomerIn


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_rent_marks_asset_rented_with_asset_terms(db_session):
    rental = crud.rent_asset(db_session, "ASSET-002", "CUST-001")

    assert rental is not None
    assert rental.rate == 150
    assert rental.billing_cycle == "month"
    assert rental.in_date is None
    assert rental.payments == []

    asset = crud.get_asset(db_session, "ASSET-002")
    assert asset.status == "Rented"
    assert asset.rental_history[-1].id == rental.id


def test_rent_accepts_overridden_terms_and_agreement(db_session):
    out = _utc(2024, 1, 1, 8)
    rental = crud.rent_asset(
        db_session,
        "ASSET-001",
        "CUST-002",
        rate=42.5,
        billing_cycle="month",
        out_date=out,
        agreement_copy="data:application/pdf;base64,AAAA",
    )

    loaded = crud.get_open_rental(db_session, "ASSET-001")
    assert loaded.id == rental.id
    assert loaded.rate == 42.5
    assert loaded.billing_cycle == "month"
    assert loaded.out_date == out
    assert loaded.agreement_copy.startswith("data:application/pdf")


def test_second_rent_is_refused_while_open(db_session):
    first = crud.rent_asset(db_session, "ASSET-001", "CUST-001")
    assert first is not None

    assert crud.rent_asset(db_session, "ASSET-001", "CUST-002") is None

    asset = crud.get_asset(db_session, "ASSET-001")
    assert [r.id for r in asset.rental_history] == [first.id]


def test_rent_unknown_asset_or_customer_is_refused(db_session):
    assert crud.rent_asset(db_session, "ASSET-404", "CUST-001") is None
    assert crud.rent_asset(db_session, "ASSET-001", "CUST-404") is None
    assert crud.get_asset(db_session, "ASSET-001").status == "Available"


def test_rate_is_frozen_on_the_rental(db_session):
    rental = crud.rent_asset(db_session, "ASSET-001", "CUST-001")

    asset = crud.get_asset(db_session, "ASSET-001")
    body = AssetIn(**asset.model_dump(include=set(AssetIn.model_fields)))
    body.rate = 999
    body.billing_cycle = "month"
    updated = crud.update_asset(db_session, "ASSET-001", body)

    assert updated.rate == 999
    assert updated.status == "Rented"
    open_rental = crud.get_open_rental(db_session, "ASSET-001")
    assert open_rental.id == rental.id
    assert open_rental.rate == 50
    assert open_rental.billing_cycle == "day"


def test_return_closes_open_rental(db_session):
    crud.rent_asset(db_session, "ASSET-001", "CUST-001", out_date=_utc(2024, 1, 1))
    back = _utc(2024, 1, 4)

    assert crud.return_asset(db_session, "ASSET-001", now=back) is True

    asset = crud.get_asset(db_session, "ASSET-001")
    assert asset.status == "Available"
    assert asset.rental_history[0].in_date == back
    assert crud.get_open_rental(db_session, "ASSET-001") is None


def test_return_without_open_rental_is_noop(db_session):
    assert crud.return_asset(db_session, "ASSET-003") is False
    assert crud.return_asset(db_session, "ASSET-404") is False


def test_asset_can_be_rented_again_after_return(db_session):
    crud.rent_asset(db_session, "ASSET-001", "CUST-001")
    crud.return_asset(db_session, "ASSET-001")

    again = crud.rent_asset(db_session, "ASSET-001", "CUST-002")

    assert again is not None
    history = crud.get_asset(db_session, "ASSET-001").rental_history
    assert len(history) == 2
    assert sum(1 for r in history if r.in_date is None) == 1


def test_add_payment_appends_and_updates_balance(db_session):
    rental = crud.rent_asset(db_session, "ASSET-001", "CUST-001", out_date=_utc(2024, 1, 1))
    now = _utc(2024, 1, 3)

    payment = crud.add_payment(db_session, "ASSET-001", rental.id, 40, "2024-01-02", "Bank Transfer")

    assert payment is not None
    assert payment.mode == "Bank Transfer"
    summary = crud.rental_summary(db_session, "ASSET-001", rental.id, now=now)
    assert summary.total_billed == 100
    assert summary.total_paid == 40
    assert summary.balance == 60
    assert summary.customer_name == "John Doe Construction"


def test_payment_can_be_added_to_a_closed_rental(db_session):
    rental = crud.rent_asset(db_session, "ASSET-003", "CUST-002")
    crud.return_asset(db_session, "ASSET-003")

    assert crud.add_payment(db_session, "ASSET-003", rental.id, 75) is not None
    assert crud.add_payment(db_session, "ASSET-003", "RENT-404", 75) is None


def test_list_rentals_splits_active_and_completed(db_session):
    crud.rent_asset(db_session, "ASSET-001", "CUST-001", out_date=_utc(2024, 1, 1))
    crud.return_asset(db_session, "ASSET-001", now=_utc(2024, 1, 5))
    crud.rent_asset(db_session, "ASSET-003", "CUST-002", out_date=_utc(2024, 1, 2))
    crud.return_asset(db_session, "ASSET-003", now=_utc(2024, 1, 9))
    crud.rent_asset(db_session, "ASSET-002", "CUST-001")

    active = crud.list_rentals(db_session, "active")
    completed = crud.list_rentals(db_session, "completed")

    assert [s.asset_id for s in active] == ["ASSET-002"]
    # latest return first
    assert [s.asset_id for s in completed] == ["ASSET-003", "ASSET-001"]
    assert len(crud.list_rentals(db_session)) == 3


def test_dashboard_stats_count_statuses(db_session):
    crud.rent_asset(db_session, "ASSET-001", "CUST-001")

    stats = crud.dashboard_stats(db_session)

    assert stats.total_assets == 3
    assert stats.rented_assets == 1
    assert stats.available_assets == 2
    assert stats.total_customers == 2


def test_customer_history_and_active_count(db_session):
    start = _utc(2024, 3, 1)
    crud.rent_asset(db_session, "ASSET-001", "CUST-001", out_date=start)
    crud.return_asset(db_session, "ASSET-001", now=start + timedelta(days=2))
    crud.rent_asset(db_session, "ASSET-003", "CUST-001", out_date=start + timedelta(days=5))

    history = crud.customer_rental_history(db_session, "CUST-001")

    assert [s.asset_id for s in history] == ["ASSET-003", "ASSET-001"]
    assert crud.customer_active_rental_count(db_session, "CUST-001") == 1
    assert crud.customer_active_rental_count(db_session, "CUST-002") == 0


def test_search_and_filters(db_session):
    crud.create_asset(
        db_session,
        AssetIn(name="Drill", product_type="Construction Equipment", make="Bosch", serial_number="BX-1"),
    )
    crud.rent_asset(db_session, "ASSET-003", "CUST-001")

    assert [a.name for a in crud.list_assets_filtered(db_session, q="bosch")] == ["Drill"]
    assert [a.id for a in crud.list_assets_filtered(db_session, status="Rented")] == ["ASSET-003"]
    assert len(crud.list_assets_filtered(db_session, product_type="Construction Equipment")) == 3


def test_customer_update_and_delete(db_session):
    c = crud.create_customer(db_session, CustomerIn(name="Acme", email="a@acme.test", phone="1"))

    updated = crud.update_customer(
        db_session, c.id, CustomerIn(name="Acme Ltd", email="a@acme.test", phone="2", phone2="3")
    )
    assert updated.id == c.id
    assert crud.get_customer(db_session, c.id).phone2 == "3"

    assert crud.delete_customer(db_session, c.id) is True
    assert crud.delete_customer(db_session, c.id) is False
    assert crud.update_customer(db_session, c.id, CustomerIn(name="x", email="x", phone="x")) is None


def test_new_ids_carry_prefix():
    a, b = crud.new_id("ASSET"), crud.new_id("ASSET")

    assert a.startswith("ASSET-")
    assert a != b


def test_invalid_payment_amount_is_refused(db_session):
    rental = crud.rent_asset(db_session, "ASSET-001", "CUST-001")

    for amount in (0, -10, float("nan"), float("inf")):
        assert crud.add_payment(db_session, "ASSET-001", rental.id, amount) is None

    assert crud.get_open_rental(db_session, "ASSET-001").payments == []


def test_invalid_rate_is_refused_without_renting(db_session):
    for rate in (-1, float("nan"), float("inf")):
        assert crud.rent_asset(db_session, "ASSET-001", "CUST-001", rate=rate) is None

    assert crud.get_asset(db_session, "ASSET-001").status == "Available"
    assert crud.rent_asset(db_session, "ASSET-001", "CUST-001", rate=0).rate == 0
