from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy.orm import Session

import billing
import crud
from models import (
    Asset,
    AssetIn,
    BillingCycle,
    Customer,
    CustomerIn,
    DashboardStats,
    OperationResult,
    PaymentMode,
    SecuritySettings,
    SecurityUpdate,
)
from scanner import BarcodeScanner

logger = logging.getLogger(__name__)

View = Literal["dashboard", "assets", "customers", "rentals", "create-rental"]
VIEWS = ("dashboard", "assets", "customers", "rentals", "create-rental")


@dataclass
class PaymentTarget:
    asset_id: str
    rental_id: str


@dataclass
class AppState:
    assets: list[Asset] = field(default_factory=list)
    customers: list[Customer] = field(default_factory=list)
    product_types: list[str] = field(default_factory=list)
    security: SecuritySettings = field(default_factory=lambda: SecuritySettings(password=""))
    auto_backup_date: Optional[datetime] = None

    is_loading: bool = True
    is_authenticated: bool = False
    current_view: View = "dashboard"

    detail_asset: Optional[Asset] = None
    payment_target: Optional[PaymentTarget] = None
    preselected_asset_id: Optional[str] = None
    message: Optional[str] = None


class AppController:
    """
    Owns the in-memory copy of every collection.

    Each mutation goes through ``crud`` and then re-reads the collections it
    touched, so ``state`` always mirrors the store after a write.
    """

    def __init__(self, session_factory: Callable[[], Session], scanner: Optional[BarcodeScanner] = None):
        self.session_factory = session_factory
        self.scanner = scanner or BarcodeScanner()
        self.state = AppState()

    def _session(self) -> Session:
        return self.session_factory()

    # ---------- Loading ----------
    def startup(self, *, now: Optional[datetime] = None) -> AppState:
        self.state.is_loading = True
        try:
            self.refresh_all()
            # backup runs after the initial load
            try:
                with self._session() as db:
                    if crud.run_auto_backup_if_due(db, now=now):
                        self.refresh_auto_backup_info()
            except Exception:
                logger.exception("automatic backup failed")
        finally:
            self.state.is_loading = False
        return self.state

    def refresh_all(self) -> None:
        with self._session() as db:
            self.state.assets = crud.list_assets(db)
            self.state.customers = crud.list_customers(db)
            self.state.product_types = crud.list_product_types(db)
            self.state.security = crud.get_security_settings(db)
        self.refresh_auto_backup_info()

    def refresh_assets(self) -> None:
        with self._session() as db:
            self.state.assets = crud.list_assets(db)
        if self.state.detail_asset is not None:
            self.state.detail_asset = self.find_asset(self.state.detail_asset.id)

    def refresh_customers(self) -> None:
        with self._session() as db:
            self.state.customers = crud.list_customers(db)

    def refresh_product_types(self) -> None:
        with self._session() as db:
            self.state.product_types = crud.list_product_types(db)

    def refresh_security(self) -> None:
        with self._session() as db:
            self.state.security = crud.get_security_settings(db)

    def refresh_auto_backup_info(self) -> None:
        with self._session() as db:
            info = crud.get_auto_backup(db)
        self.state.auto_backup_date = (
            datetime.fromtimestamp(info.timestamp / 1000, tz=timezone.utc) if info.timestamp else None
        )

    def find_asset(self, asset_id: str) -> Optional[Asset]:
        return next((a for a in self.state.assets if a.id == asset_id), None)

    def dashboard_stats(self) -> DashboardStats:
        rented = sum(1 for a in self.state.assets if a.status == "Rented")
        return DashboardStats(
            total_assets=len(self.state.assets),
            rented_assets=rented,
            available_assets=len(self.state.assets) - rented,
            total_customers=len(self.state.customers),
        )

    def rented_assets(self) -> list[Asset]:
        return [a for a in self.state.assets if a.status == "Rented"]

    def available_assets(self) -> list[Asset]:
        return [a for a in self.state.assets if a.status == "Available"]

    # ---------- Navigation / modals ----------
    def navigate(self, view: str) -> View:
        if view not in VIEWS:
            view = "dashboard"
        if view == "create-rental" and not self.state.is_authenticated:
            view = "dashboard"
        self.state.current_view = view  # type: ignore[assignment]
        return self.state.current_view

    def open_detail(self, asset: Asset) -> None:
        self.state.detail_asset = asset

    def close_detail(self) -> None:
        self.state.detail_asset = None

    def open_payment(self, asset_id: str, rental_id: str) -> None:
        self.state.payment_target = PaymentTarget(asset_id=asset_id, rental_id=rental_id)

    def close_payment(self) -> None:
        self.state.payment_target = None

    def rent_from_detail(self, asset_id: str) -> None:
        self.close_detail()
        self.state.preselected_asset_id = asset_id
        self.navigate("create-rental")

    def cancel_create_rental(self) -> None:
        self.state.preselected_asset_id = None
        self.navigate("rentals")

    def add_payment_from_detail(self, asset_id: str) -> bool:
        asset = self.find_asset(asset_id)
        current = next((r for r in asset.rental_history if r.in_date is None), None) if asset else None
        if asset is None or current is None:
            return False
        self.open_payment(asset.id, current.id)
        self.close_detail()
        return True

    # ---------- Session ----------
    def login(self, password: str) -> bool:
        with self._session() as db:
            ok = crud.verify_password(db, password)
        if ok:
            self.state.is_authenticated = True
        return ok

    def logout(self) -> None:
        self.state.is_authenticated = False
        if self.state.current_view == "create-rental":
            self.navigate("dashboard")

    def recover_password(self, answer: str) -> OperationResult:
        with self._session() as db:
            return crud.recover_password(db, answer)

    def update_security_settings(self, body: SecurityUpdate) -> OperationResult:
        with self._session() as db:
            result = crud.update_security_settings(db, body)
        if result.success:
            self.refresh_security()
        return result

    # ---------- Assets ----------
    def add_asset(self, body: AssetIn) -> Asset:
        with self._session() as db:
            asset = crud.create_asset(db, body)
        self.refresh_assets()
        return asset

    def update_asset(self, asset_id: str, body: AssetIn) -> Optional[Asset]:
        with self._session() as db:
            asset = crud.update_asset(db, asset_id, body)
        self.refresh_assets()
        return asset

    def delete_asset(self, asset_id: str) -> bool:
        with self._session() as db:
            ok = crud.delete_asset(db, asset_id)
        self.refresh_assets()
        return ok

    # ---------- Customers ----------
    def add_customer(self, body: CustomerIn) -> Customer:
        with self._session() as db:
            customer = crud.create_customer(db, body)
        self.refresh_customers()
        return customer

    def update_customer(self, customer_id: str, body: CustomerIn) -> Optional[Customer]:
        with self._session() as db:
            customer = crud.update_customer(db, customer_id, body)
        self.refresh_customers()
        return customer

    def delete_customer(self, customer_id: str) -> bool:
        with self._session() as db:
            ok = crud.delete_customer(db, customer_id)
        self.refresh_customers()
        return ok

    # ---------- Product types ----------
    def add_product_type(self, name: str) -> OperationResult:
        trimmed = (name or "").strip()
        if not trimmed:
            return OperationResult(success=False, message="Product type name cannot be empty.")
        if any(t.lower() == trimmed.lower() for t in self.state.product_types):
            return OperationResult(success=False, message=f'Product type "{trimmed}" already exists.')

        with self._session() as db:
            ok = crud.create_product_type(db, name=trimmed)
        self.refresh_product_types()
        if not ok:
            return OperationResult(success=False, message=f'Product type "{trimmed}" already exists.')
        return OperationResult(success=True, message=f'Product type "{trimmed}" added.')

    def delete_product_type(self, name: str) -> OperationResult:
        if any(a.product_type == name for a in self.state.assets):
            return OperationResult(
                success=False,
                message=f'Cannot delete "{name}" because it is still being used by one or more assets.',
            )
        with self._session() as db:
            ok = crud.delete_product_type(db, name=name)
        self.refresh_product_types()
        if not ok:
            return OperationResult(success=False, message=f'Could not delete "{name}".')
        return OperationResult(success=True, message=f'Product type "{name}" deleted.')

    # ---------- Rentals ----------
    def rent_asset(
        self,
        asset_id: str,
        customer_id: str,
        rate: Optional[float] = None,
        billing_cycle: Optional[BillingCycle] = None,
        out_date: Optional[datetime] = None,
        agreement_copy: Optional[str] = None,
    ) -> bool:
        with self._session() as db:
            rental = crud.rent_asset(db, asset_id, customer_id, rate, billing_cycle, out_date, agreement_copy)
        self.refresh_assets()
        self.state.preselected_asset_id = None
        return rental is not None

    def return_confirmation(self, asset_id: str, *, now: Optional[datetime] = None) -> Optional[str]:
        """Prompt shown before a return, or None when nothing is out."""
        asset = self.find_asset(asset_id)
        rental = next((r for r in asset.rental_history if r.in_date is None), None) if asset else None
        if rental is None:
            return None
        due = billing.balance(rental, now)
        if due > 0:
            return (
                f"This rental has an outstanding balance of ${due:.2f}. "
                "Are you sure you want to mark it as returned?"
            )
        return "Are you sure you want to mark this asset as returned?"

    def return_asset(self, asset_id: str) -> bool:
        with self._session() as db:
            ok = crud.return_asset(db, asset_id)
        self.refresh_assets()
        if ok and self.state.detail_asset is not None and self.state.detail_asset.id == asset_id:
            self.close_detail()
        return ok

    def add_payment(
        self,
        asset_id: str,
        rental_id: str,
        amount: float,
        date: Optional[str] = None,
        mode: PaymentMode = "Cash",
    ) -> bool:
        with self._session() as db:
            payment = crud.add_payment(db, asset_id, rental_id, amount, date, mode)
        self.refresh_assets()
        if payment is not None:
            self.close_payment()
        return payment is not None

    # ---------- Data ----------
    def export_data(self) -> dict:
        with self._session() as db:
            return crud.export_all_data(db)

    def import_data(self, raw: str | bytes) -> OperationResult:
        with self._session() as db:
            result = crud.import_all_data(db, raw)
        if result.success:
            self.refresh_all()
        return result

    def restore_auto_backup(self) -> OperationResult:
        with self._session() as db:
            result = crud.restore_auto_backup(db)
        if result.success:
            self.refresh_all()
        return result

    # ---------- Barcode ----------
    def handle_key(self, key: str, at_ms: float, *, in_form_field: bool = False) -> Optional[Asset]:
        code = self.scanner.feed(key, at_ms, in_form_field=in_form_field)
        if code is None:
            return None
        return self.lookup_scan(code)

    def lookup_scan(self, code: str) -> Optional[Asset]:
        asset = self.find_asset(code)
        if asset is None:
            self.state.message = f'Asset with ID "{code}" not found.'
            return None
        self.state.message = None
        self.open_detail(asset)
        return asset
