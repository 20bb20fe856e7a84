from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, require_admin, simulated_latency
from filter_helpers import (
    blank_to_none,
    normalize_rental_state,
    normalize_status,
)
from models import (
    Asset,
    AssetIn,
    DashboardStats,
    Payment,
    PaymentIn,
    Rental,
    RentalSummary,
    RentIn,
    ScanKeyIn,
    ScanResult,
)
from scanner import ENTER

router = APIRouter(dependencies=[Depends(simulated_latency)])


@router.get("/assets", response_model=list[Asset])
def list_assets_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    product_type: Optional[str] = None,
    db: Session = Depends(get_db),
):
    status = normalize_status(status)
    product_type = blank_to_none(product_type)

    return crud.list_assets_filtered(db, q=q, status=status, product_type=product_type)


@router.post("/assets", response_model=Asset, status_code=201, dependencies=[Depends(require_admin)])
def create_asset_api(
    request: Request,
    body: AssetIn,
    db: Session = Depends(get_db),
):
    created = crud.create_asset(db, body)
    request.app.state.controller.refresh_assets()
    return created


@router.get("/assets/{asset_id}", response_model=Asset)
def get_asset_api(
    asset_id: str,
    db: Session = Depends(get_db),
):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="asset not found")
    return asset


@router.put("/assets/{asset_id}", response_model=Asset, dependencies=[Depends(require_admin)])
def update_asset_api(
    request: Request,
    asset_id: str,
    body: AssetIn,
    db: Session = Depends(get_db),
):
    updated = crud.update_asset(db, asset_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="asset not found")
    request.app.state.controller.refresh_assets()
    return updated


@router.delete("/assets/{asset_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_asset_api(
    request: Request,
    asset_id: str,
    db: Session = Depends(get_db),
):
    ok = crud.delete_asset(db, asset_id)
    if not ok:
        raise HTTPException(status_code=404, detail="asset not found")
    request.app.state.controller.refresh_assets()
    return None


# -----------------------
# Rentals
# -----------------------
@router.post(
    "/assets/{asset_id}/rent",
    response_model=Rental,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def rent_asset_api(
    request: Request,
    asset_id: str,
    body: RentIn,
    db: Session = Depends(get_db),
):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="asset not found")
    if asset.status != "Available" or crud.get_open_rental(db, asset_id):
        raise HTTPException(status_code=409, detail="asset is already rented")
    if not crud.get_customer(db, body.customer_id):
        raise HTTPException(status_code=400, detail="customer not found")

    rental = crud.rent_asset(
        db,
        asset_id,
        body.customer_id,
        body.rate,
        body.billing_cycle,
        body.out_date,
        body.agreement_copy,
    )
    if not rental:
        raise HTTPException(status_code=409, detail="asset could not be rented")
    request.app.state.controller.refresh_assets()
    return rental


@router.post("/assets/{asset_id}/return", response_model=Asset, dependencies=[Depends(require_admin)])
def return_asset_api(
    request: Request,
    asset_id: str,
    db: Session = Depends(get_db),
):
    if not crud.get_asset(db, asset_id):
        raise HTTPException(status_code=404, detail="asset not found")
    if not crud.return_asset(db, asset_id):
        raise HTTPException(status_code=409, detail="asset has no open rental")
    request.app.state.controller.refresh_assets()
    return crud.get_asset(db, asset_id)


@router.post(
    "/assets/{asset_id}/rentals/{rental_id}/payments",
    response_model=Payment,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def add_payment_api(
    request: Request,
    asset_id: str,
    rental_id: str,
    body: PaymentIn,
    db: Session = Depends(get_db),
):
    payment = crud.add_payment(db, asset_id, rental_id, body.amount, body.date, body.mode)
    if not payment:
        raise HTTPException(status_code=404, detail="rental not found")
    request.app.state.controller.refresh_assets()
    return payment


@router.get("/assets/{asset_id}/rentals/{rental_id}", response_model=RentalSummary)
def rental_summary_api(
    asset_id: str,
    rental_id: str,
    db: Session = Depends(get_db),
):
    summary = crud.rental_summary(db, asset_id, rental_id)
    if not summary:
        raise HTTPException(status_code=404, detail="rental not found")
    return summary


@router.get("/rentals", response_model=list[RentalSummary])
def list_rentals_api(
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.list_rentals(db, normalize_rental_state(state))  # type: ignore[arg-type]


@router.get("/dashboard", response_model=DashboardStats)
def dashboard_api(db: Session = Depends(get_db)):
    return crud.dashboard_stats(db)


@router.post("/scanner/keys", response_model=ScanResult)
def scanner_key_api(request: Request, body: ScanKeyIn):
    controller = request.app.state.controller
    if body.key == ENTER:
        controller.refresh_assets()
        controller.state.message = None
    asset = controller.handle_key(body.key, body.at_ms, in_form_field=body.in_form_field)
    message = controller.state.message if body.key == ENTER and asset is None else None
    return ScanResult(asset=asset, message=message)
