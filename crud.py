from __future__ import annotations

import json
import logging
import math
from datetime import datetime

from typing import Optional
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy.orm import Session

import billing
import store
from models import (
    Asset,
    AssetIn,
    AutoBackupInfo,
    BackupDocument,
    BillingCycle,
    Customer,
    CustomerIn,
    DashboardStats,
    OperationResult,
    Payment,
    PaymentMode,
    Rental,
    RentalState,
    RentalSummary,
    SecuritySettings,
    SecurityUpdate,
)
from seed import (
    INITIAL_ASSETS,
    INITIAL_CUSTOMERS,
    INITIAL_PASSWORD,
    INITIAL_PRODUCT_TYPES,
    INITIAL_SECURITY_ANSWER,
    INITIAL_SECURITY_QUESTION,
)
from store import utcnow

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
AUTO_BACKUP_INTERVAL_MS = 24 * 60 * 60 * 1000
MIN_PASSWORD_LENGTH = 6

INVALID_BACKUP_MESSAGE = "Invalid or corrupted backup file."
UNPARSABLE_BACKUP_MESSAGE = "Failed to parse the backup file. It might be corrupted."


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12].upper()}"


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _valid_money(value: float, *, allow_zero: bool) -> bool:
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return False
    return value >= 0 if allow_zero else value > 0


# ---------- Collections ----------
def _load_assets(db: Session) -> list[Asset]:
    raw = store.get(db, store.ASSETS_KEY, [a.to_document() for a in INITIAL_ASSETS])
    return [Asset.model_validate(a) for a in raw]


def _save_assets(db: Session, assets: list[Asset], *, commit: bool) -> bool:
    return store.set(db, store.ASSETS_KEY, [a.to_document() for a in assets], commit=commit)


def _load_customers(db: Session) -> list[Customer]:
    raw = store.get(db, store.CUSTOMERS_KEY, [c.to_document() for c in INITIAL_CUSTOMERS])
    return [Customer.model_validate(c) for c in raw]


def _save_customers(db: Session, customers: list[Customer], *, commit: bool) -> bool:
    return store.set(db, store.CUSTOMERS_KEY, [c.to_document() for c in customers], commit=commit)


def _open_rental(asset: Asset) -> Optional[Rental]:
    for r in asset.rental_history:
        if r.in_date is None:
            return r
    return None


# ---------- Asset ----------
def list_assets(db: Session) -> list[Asset]:
    return _load_assets(db)


def list_assets_filtered(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    product_type: str | None = None,
) -> list[Asset]:
    assets = _load_assets(db)
    if q:
        needle = q.lower()
        assets = [
            a for a in assets
            if any(needle in (v or "").lower() for v in (a.id, a.name, a.make, a.model, a.serial_number))
        ]
    if status:
        assets = [a for a in assets if a.status == status]
    if product_type:
        assets = [a for a in assets if a.product_type == product_type]
    return assets


def get_asset(db: Session, asset_id: str) -> Optional[Asset]:
    for a in _load_assets(db):
        if a.id == asset_id:
            return a
    return None


def create_asset(db: Session, body: AssetIn, *, commit: bool = True) -> Asset:
    assets = _load_assets(db)
    a = Asset(**body.model_dump(), id=new_id("ASSET"), status="Available", rental_history=[])
    assets.append(a)
    _save_assets(db, assets, commit=commit)
    return a


def update_asset(db: Session, asset_id: str, body: AssetIn, *, commit: bool = True) -> Optional[Asset]:
    """Replace the catalog fields; status and rental history stay as stored."""
    assets = _load_assets(db)
    for i, a in enumerate(assets):
        if a.id == asset_id:
            updated = Asset(
                **body.model_dump(),
                id=a.id,
                status=a.status,
                rental_history=a.rental_history,
            )
            assets[i] = updated
            _save_assets(db, assets, commit=commit)
            return updated
    return None


def delete_asset(db: Session, asset_id: str, *, commit: bool = True) -> bool:
    assets = _load_assets(db)
    remaining = [a for a in assets if a.id != asset_id]
    if len(remaining) == len(assets):
        return False
    _save_assets(db, remaining, commit=commit)
    return True


# ---------- Rental ----------
def get_open_rental(db: Session, asset_id: str) -> Optional[Rental]:
    a = get_asset(db, asset_id)
    return _open_rental(a) if a else None


def rent_asset(
    db: Session,
    asset_id: str,
    customer_id: str,
    rate: Optional[float] = None,
    billing_cycle: Optional[BillingCycle] = None,
    out_date: Optional[datetime] = None,
    agreement_copy: Optional[str] = None,
    *,
    commit: bool = True,
) -> Optional[Rental]:
    """
    Open a rental on an asset. Rate and billing cycle default to the asset's
    current terms and are frozen on the rental from then on.
    """
    assets = _load_assets(db)
    a = next((x for x in assets if x.id == asset_id), None)
    if a is None:
        return None
    # one open rental per asset
    if _open_rental(a) is not None:
        logger.info("rent refused asset_id=%s reason=already_rented", asset_id)
        return None
    if get_customer(db, customer_id) is None:
        logger.info("rent refused asset_id=%s reason=unknown_customer customer_id=%s", asset_id, customer_id)
        return None
    if rate is not None and not _valid_money(rate, allow_zero=True):
        logger.info("rent refused asset_id=%s reason=invalid_rate rate=%r", asset_id, rate)
        return None

    rental = Rental(
        id=new_id("RENT"),
        customer_id=customer_id,
        out_date=out_date or utcnow(),
        in_date=None,
        rate=a.rate if rate is None else rate,
        billing_cycle=billing_cycle or a.billing_cycle,
        payments=[],
        agreement_copy=agreement_copy or None,
    )
    a.rental_history.append(rental)
    a.status = "Rented"

    _save_assets(db, assets, commit=commit)
    return rental


def return_asset(db: Session, asset_id: str, *, now: Optional[datetime] = None, commit: bool = True) -> bool:
    assets = _load_assets(db)
    a = next((x for x in assets if x.id == asset_id), None)
    if a is None:
        return False

    rental = _open_rental(a)
    if rental is None:
        return False

    rental.in_date = now or utcnow()
    a.status = "Available"

    _save_assets(db, assets, commit=commit)
    return True


def add_payment(
    db: Session,
    asset_id: str,
    rental_id: str,
    amount: float,
    date: Optional[str] = None,
    mode: PaymentMode = "Cash",
    *,
    commit: bool = True,
) -> Optional[Payment]:
    if not _valid_money(amount, allow_zero=False):
        logger.info("payment refused asset_id=%s rental_id=%s amount=%r", asset_id, rental_id, amount)
        return None
    assets = _load_assets(db)
    a = next((x for x in assets if x.id == asset_id), None)
    if a is None:
        return None
    rental = next((r for r in a.rental_history if r.id == rental_id), None)
    if rental is None:
        return None

    payment = Payment(
        id=new_id("PAY"),
        amount=amount,
        date=date or utcnow().isoformat(),
        mode=mode,
    )
    rental.payments.append(payment)

    _save_assets(db, assets, commit=commit)
    return payment


def _customer_names(db: Session) -> dict[str, str]:
    return {c.id: c.name for c in _load_customers(db)}


def rental_summary(
    db: Session, asset_id: str, rental_id: str, *, now: Optional[datetime] = None
) -> Optional[RentalSummary]:
    a = get_asset(db, asset_id)
    if a is None:
        return None
    rental = next((r for r in a.rental_history if r.id == rental_id), None)
    if rental is None:
        return None
    names = _customer_names(db)
    return billing.summarize(
        rental,
        asset_id=a.id,
        asset_name=a.name,
        customer_name=names.get(rental.customer_id),
        now=now,
    )


def list_rentals(
    db: Session, state: Optional[RentalState] = None, *, now: Optional[datetime] = None
) -> list[RentalSummary]:
    """
    Every rental across all assets.

    ``active`` keeps open rentals in history order, ``completed`` keeps closed
    rentals with the latest return first.
    """
    names = _customer_names(db)
    rows = [
        billing.summarize(r, asset_id=a.id, asset_name=a.name, customer_name=names.get(r.customer_id), now=now)
        for a in _load_assets(db)
        for r in a.rental_history
    ]
    if state == "active":
        return [s for s in rows if s.in_date is None]
    if state == "completed":
        closed = [s for s in rows if s.in_date is not None]
        return sorted(closed, key=lambda s: billing.as_utc(s.in_date), reverse=True)
    return rows


def dashboard_stats(db: Session) -> DashboardStats:
    assets = _load_assets(db)
    rented = sum(1 for a in assets if a.status == "Rented")
    return DashboardStats(
        total_assets=len(assets),
        rented_assets=rented,
        available_assets=len(assets) - rented,
        total_customers=len(_load_customers(db)),
    )


# ---------- Customer ----------
def list_customers(db: Session) -> list[Customer]:
    return _load_customers(db)


def get_customer(db: Session, customer_id: str) -> Optional[Customer]:
    for c in _load_customers(db):
        if c.id == customer_id:
            return c
    return None


def create_customer(db: Session, body: CustomerIn, *, commit: bool = True) -> Customer:
    customers = _load_customers(db)
    c = Customer(**body.model_dump(), id=new_id("CUST"))
    customers.append(c)
    _save_customers(db, customers, commit=commit)
    return c


def update_customer(db: Session, customer_id: str, body: CustomerIn, *, commit: bool = True) -> Optional[Customer]:
    customers = _load_customers(db)
    for i, c in enumerate(customers):
        if c.id == customer_id:
            updated = Customer(**body.model_dump(), id=c.id)
            customers[i] = updated
            _save_customers(db, customers, commit=commit)
            return updated
    return None


def delete_customer(db: Session, customer_id: str, *, commit: bool = True) -> bool:
    customers = _load_customers(db)
    remaining = [c for c in customers if c.id != customer_id]
    if len(remaining) == len(customers):
        return False
    _save_customers(db, remaining, commit=commit)
    return True


def customer_active_rental_count(db: Session, customer_id: str) -> int:
    return sum(
        1 for a in _load_assets(db)
        if any(r.customer_id == customer_id and r.in_date is None for r in a.rental_history)
    )


def customer_rental_history(db: Session, customer_id: str, *, now: Optional[datetime] = None) -> list[RentalSummary]:
    names = _customer_names(db)
    rows = [
        billing.summarize(r, asset_id=a.id, asset_name=a.name, customer_name=names.get(r.customer_id), now=now)
        for a in _load_assets(db)
        for r in a.rental_history
        if r.customer_id == customer_id
    ]
    return sorted(rows, key=lambda s: billing.as_utc(s.out_date), reverse=True)


# ---------- Product type ----------
def list_product_types(db: Session) -> list[str]:
    return store.get(db, store.PRODUCT_TYPES_KEY, INITIAL_PRODUCT_TYPES)


def product_type_in_use(db: Session, name: str) -> bool:
    return any(a.product_type == name for a in _load_assets(db))


def create_product_type(db: Session, *, name: str, commit: bool = True) -> bool:
    name = (name or "").strip()
    if not name:
        return False
    types = list_product_types(db)
    if any(t.lower() == name.lower() for t in types):
        return False

    types.append(name)
    return store.set(db, store.PRODUCT_TYPES_KEY, types, commit=commit)


def delete_product_type(db: Session, *, name: str, commit: bool = True) -> bool:
    types = list_product_types(db)
    if name not in types:
        return False

    # in use by an asset: keep it
    if product_type_in_use(db, name):
        return False

    return store.set(db, store.PRODUCT_TYPES_KEY, [t for t in types if t != name], commit=commit)


# ---------- Security ----------
def get_security_settings(db: Session) -> SecuritySettings:
    return SecuritySettings(
        password=store.get(db, store.PASSWORD_KEY, INITIAL_PASSWORD),
        question=store.get(db, store.SECURITY_QUESTION_KEY, INITIAL_SECURITY_QUESTION),
        answer=store.get(db, store.SECURITY_ANSWER_KEY, INITIAL_SECURITY_ANSWER),
    )


def verify_password(db: Session, submitted: str) -> bool:
    return submitted == get_security_settings(db).password


def update_security_settings(db: Session, body: SecurityUpdate, *, commit: bool = True) -> OperationResult:
    current = get_security_settings(db)
    changes: dict[str, str] = {}

    if body.new_password:
        if body.confirm_password is not None and body.new_password != body.confirm_password:
            return OperationResult(success=False, message="New passwords do not match.")
        if len(body.new_password) < MIN_PASSWORD_LENGTH:
            return OperationResult(
                success=False,
                message=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long.",
            )
        if body.current_password != current.password:
            return OperationResult(success=False, message="Incorrect current password.")
        changes[store.PASSWORD_KEY] = body.new_password

    if body.question is not None and body.answer is not None:
        if body.question and not body.answer:
            return OperationResult(
                success=False,
                message="Security answer cannot be empty if a question is set.",
            )
        changes[store.SECURITY_QUESTION_KEY] = body.question
        changes[store.SECURITY_ANSWER_KEY] = body.answer

    if changes and not store.set_many(db, changes, commit=commit):
        return OperationResult(success=False, message="Could not save settings.")
    return OperationResult(success=True, message="Settings updated successfully!")


def recover_password(db: Session, answer: str) -> OperationResult:
    settings = get_security_settings(db)
    if not settings.question or not settings.answer:
        return OperationResult(success=False, message="No recovery information has been set up.")

    if (answer or "").strip().lower() == settings.answer.strip().lower():
        return OperationResult(success=True, message=f"Your password is: {settings.password}")
    return OperationResult(success=False, message="The answer provided is incorrect.")


# ---------- Backup ----------
def export_all_data(db: Session, *, now: Optional[datetime] = None) -> dict:
    settings = get_security_settings(db)
    doc = BackupDocument(
        assets=_load_assets(db),
        customers=_load_customers(db),
        product_types=list_product_types(db),
        app_password=settings.password,
        security_question=settings.question,
        security_answer=settings.answer,
        export_date=(now or utcnow()).isoformat(),
        version=BACKUP_VERSION,
    )
    return doc.to_document()


def parse_backup(raw: str | bytes) -> tuple[Optional[BackupDocument], Optional[str]]:
    """
    Validate an export file before anything is written.
    Returns (document, None) on success, (None, error_message) otherwise.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        logger.exception("import failed: unparsable payload")
        return None, UNPARSABLE_BACKUP_MESSAGE

    if not isinstance(data, dict):
        return None, INVALID_BACKUP_MESSAGE
    try:
        return BackupDocument.model_validate(data), None
    except ValidationError as e:
        logger.warning("import rejected: %s error(s) first=%s", e.error_count(), e.errors()[0].get("loc"))
        return None, INVALID_BACKUP_MESSAGE


def import_all_data(db: Session, raw: str | bytes, *, commit: bool = True) -> OperationResult:
    doc, err = parse_backup(raw)
    if err or doc is None:
        return OperationResult(success=False, message=err or INVALID_BACKUP_MESSAGE)

    ok = store.set_many(
        db,
        {
            store.ASSETS_KEY: [a.to_document() for a in doc.assets],
            store.CUSTOMERS_KEY: [c.to_document() for c in doc.customers],
            store.PRODUCT_TYPES_KEY: doc.product_types,
            store.PASSWORD_KEY: doc.app_password,
            store.SECURITY_QUESTION_KEY: doc.security_question,
            store.SECURITY_ANSWER_KEY: doc.security_answer,
        },
        commit=commit,
    )
    if not ok:
        return OperationResult(success=False, message="Could not save the imported data.")

    logger.info("import ok assets=%s customers=%s", len(doc.assets), len(doc.customers))
    return OperationResult(success=True, message="Data imported successfully!")


def get_auto_backup(db: Session) -> AutoBackupInfo:
    return AutoBackupInfo(
        data=store.get(db, store.AUTO_BACKUP_DATA_KEY, None),
        timestamp=store.get(db, store.AUTO_BACKUP_TIMESTAMP_KEY, None),
    )


def save_auto_backup(db: Session, data: dict, *, now: Optional[datetime] = None, commit: bool = True) -> bool:
    return store.set_many(
        db,
        {
            store.AUTO_BACKUP_DATA_KEY: data,
            store.AUTO_BACKUP_TIMESTAMP_KEY: _epoch_ms(now or utcnow()),
        },
        commit=commit,
    )


def auto_backup_due(info: AutoBackupInfo, now: datetime) -> bool:
    last = info.timestamp or 0
    return _epoch_ms(now) - last > AUTO_BACKUP_INTERVAL_MS


def run_auto_backup_if_due(db: Session, *, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    if not auto_backup_due(get_auto_backup(db), now):
        return False

    logger.info("performing automatic backup")
    data = export_all_data(db, now=now)
    ok = save_auto_backup(db, data, now=now)
    if ok:
        logger.info("automatic backup successful")
    else:
        logger.error("automatic backup failed")
    return ok


def restore_auto_backup(db: Session) -> OperationResult:
    info = get_auto_backup(db)
    if not info.data:
        return OperationResult(success=False, message="No automatic backup found to restore.")
    return import_all_data(db, json.dumps(info.data))
