from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, is_authenticated, ui_login_redirect
from export_utils import rentals_to_csv_response, to_data_url
from filter_helpers import (
    blank_to_none,
    normalize_billing_cycle,
    normalize_payment_mode,
    normalize_rental_state,
    normalize_status,
    parse_form_amount,
    parse_form_datetime,
    parse_form_rate,
)
from models import MAX_PHOTOS, AssetIn

router = APIRouter()


async def _read_uploads(files: list[UploadFile], limit: int) -> list[str]:
    urls: list[str] = []
    for f in files:
        if not f.filename:
            continue
        if len(urls) >= limit:
            break
        urls.append(to_data_url(await f.read(), f.content_type))
    return urls


@router.get("/ui", include_in_schema=False)
def ui_root():
    return RedirectResponse(url="/ui/dashboard", status_code=303)


@router.get("/ui/dashboard", response_class=HTMLResponse)
def dashboard_ui(request: Request, db: Session = Depends(get_db)):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "stats": crud.dashboard_stats(db),
            "active_rentals": crud.list_rentals(db, "active"),
            "is_authenticated": is_authenticated(request),
        },
    )


@router.get("/ui/assets", response_class=HTMLResponse)
def assets_ui(
    request: Request,
    q: Optional[str] = None,
    status: Optional[str] = None,
    product_type: Optional[str] = None,
    db: Session = Depends(get_db),
):
    status = normalize_status(status)
    product_type = blank_to_none(product_type)

    assets = crud.list_assets_filtered(db, q=q, status=status, product_type=product_type)

    active_rentals = {}
    for asset in assets:
        active = next((r for r in asset.rental_history if r.in_date is None), None)
        if active:
            active_rentals[asset.id] = active

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "assets.html",
        {
            "assets": assets,
            "active_rentals": active_rentals,
            "q": q or "",
            "status": status or "",
            "product_type": product_type or "",
            "product_types": crud.list_product_types(db),
            "is_authenticated": is_authenticated(request),
        },
    )


@router.post("/ui/assets")
async def create_asset_ui(
    request: Request,
    name: str = Form(...),
    product_type: str = Form(...),
    make: str = Form(""),
    model: str = Form(""),
    serial_number: str = Form(""),
    purchase_date: str = Form(""),
    rate: str = Form("0"),
    billing_cycle: str = Form("day"),
    photos: list[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    parsed_rate = parse_form_rate(rate or "0")
    if parsed_rate is None:
        return RedirectResponse(url="/ui/assets", status_code=303)

    body = AssetIn(
        name=name,
        product_type=product_type,
        make=make,
        model=model,
        serial_number=serial_number,
        purchase_date=purchase_date,
        photos=await _read_uploads(photos, MAX_PHOTOS),
        rate=parsed_rate,
        billing_cycle=normalize_billing_cycle(billing_cycle) or "day",
    )
    crud.create_asset(db, body)
    request.app.state.controller.refresh_assets()
    return RedirectResponse(url="/ui/assets", status_code=303)


@router.get("/ui/assets/{asset_id}", response_class=HTMLResponse)
def asset_detail_ui(request: Request, asset_id: str, db: Session = Depends(get_db)):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="asset not found")

    summaries = [crud.rental_summary(db, asset.id, r.id) for r in asset.rental_history]

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "asset_detail.html",
        {
            "asset": asset,
            "rentals": summaries,
            "open_rental": crud.get_open_rental(db, asset.id),
            "customers": crud.list_customers(db),
            "product_types": crud.list_product_types(db),
            "max_photos": MAX_PHOTOS,
            "is_authenticated": is_authenticated(request),
        },
    )


@router.get("/ui/assets/{asset_id}/rentals/{rental_id}", response_class=HTMLResponse)
def rental_detail_ui(request: Request, asset_id: str, rental_id: str, db: Session = Depends(get_db)):
    asset = crud.get_asset(db, asset_id)
    rental = next((r for r in asset.rental_history if r.id == rental_id), None) if asset else None
    if rental is None:
        raise HTTPException(status_code=404, detail="rental not found")

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "rental_detail.html",
        {
            "asset": asset,
            "rental": rental,
            "summary": crud.rental_summary(db, asset_id, rental_id),
            "is_authenticated": is_authenticated(request),
        },
    )


@router.post("/ui/assets/{asset_id}/edit")
async def update_asset_ui(
    request: Request,
    asset_id: str,
    name: str = Form(...),
    product_type: str = Form(...),
    make: str = Form(""),
    model: str = Form(""),
    serial_number: str = Form(""),
    purchase_date: str = Form(""),
    rate: str = Form(""),
    billing_cycle: str = Form("day"),
    remove_photos: list[int] = Form(default=[]),
    photos: list[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    current = crud.get_asset(db, asset_id)
    if not current:
        return RedirectResponse(url="/ui/assets", status_code=303)

    parsed_rate = parse_form_rate(rate) if blank_to_none(rate) is not None else current.rate
    if parsed_rate is None:
        return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)

    drop = set(remove_photos)
    kept = [p for i, p in enumerate(current.photos) if i not in drop]
    kept += await _read_uploads(photos, MAX_PHOTOS - len(kept))

    body = AssetIn(
        name=name,
        product_type=product_type,
        make=make,
        model=model,
        serial_number=serial_number,
        purchase_date=purchase_date,
        photos=kept,
        rate=parsed_rate,
        billing_cycle=normalize_billing_cycle(billing_cycle) or current.billing_cycle,
    )
    crud.update_asset(db, asset_id, body)
    request.app.state.controller.refresh_assets()
    return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)


@router.post("/ui/assets/{asset_id}/delete")
def delete_asset_ui(
    request: Request,
    asset_id: str,
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    crud.delete_asset(db, asset_id)
    request.app.state.controller.refresh_assets()
    return RedirectResponse(url="/ui/assets", status_code=303)


@router.post("/ui/assets/{asset_id}/rent")
async def rent_asset_ui(
    request: Request,
    asset_id: str,
    customer_id: str = Form(...),
    rate: Optional[str] = Form(None),
    billing_cycle: Optional[str] = Form(None),
    out_date: Optional[str] = Form(None),
    agreement_copy: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    # blank rate means the asset's own rate; an unparsable one rents nothing
    parsed_rate = None
    if blank_to_none(rate) is not None:
        parsed_rate = parse_form_rate(rate)
        if parsed_rate is None:
            return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)

    agreement = None
    if agreement_copy is not None and agreement_copy.filename:
        agreement = to_data_url(await agreement_copy.read(), agreement_copy.content_type)

    crud.rent_asset(
        db,
        asset_id,
        customer_id,
        parsed_rate,
        normalize_billing_cycle(billing_cycle),  # type: ignore[arg-type]
        parse_form_datetime(out_date),
        agreement,
    )
    request.app.state.controller.refresh_assets()
    return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)


@router.post("/ui/assets/{asset_id}/return")
def return_asset_ui(
    request: Request,
    asset_id: str,
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    crud.return_asset(db, asset_id)
    request.app.state.controller.refresh_assets()
    return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)


@router.post("/ui/assets/{asset_id}/rentals/{rental_id}/payments")
def add_payment_ui(
    request: Request,
    asset_id: str,
    rental_id: str,
    amount: str = Form(...),
    date: Optional[str] = Form(None),
    mode: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    value = parse_form_amount(amount)
    if value is not None:
        crud.add_payment(db, asset_id, rental_id, value, blank_to_none(date), normalize_payment_mode(mode))  # type: ignore[arg-type]
        request.app.state.controller.refresh_assets()
    return RedirectResponse(url=f"/ui/assets/{asset_id}", status_code=303)


@router.get("/ui/rentals", response_class=HTMLResponse)
def rentals_ui(request: Request, db: Session = Depends(get_db)):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "rentals.html",
        {
            "active_rentals": crud.list_rentals(db, "active"),
            "completed_rentals": crud.list_rentals(db, "completed"),
            "is_authenticated": is_authenticated(request),
        },
    )


@router.get("/ui/rentals/export")
def export_rentals_ui(
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    state = normalize_rental_state(state)
    rows = crud.list_rentals(db, state)  # type: ignore[arg-type]
    return rentals_to_csv_response(rows, filename=f"{state or 'all'}_rentals_report.csv")


@router.get("/ui/scan")
def scan_ui(request: Request, code: str = ""):
    controller = request.app.state.controller
    controller.refresh_assets()
    asset = controller.lookup_scan(code.strip())
    if asset is None:
        return RedirectResponse(url="/ui/assets", status_code=303)
    return RedirectResponse(url=f"/ui/assets/{asset.id}", status_code=303)
