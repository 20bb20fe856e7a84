from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, is_authenticated, ui_login_redirect
from export_utils import to_data_url
from models import CustomerIn

router = APIRouter()


async def _read_photo(upload: Optional[UploadFile]) -> Optional[str]:
    if upload is None or not upload.filename:
        return None
    return to_data_url(await upload.read(), upload.content_type)


@router.get("/ui/product-types", response_class=HTMLResponse)
def product_types_ui(request: Request, db: Session = Depends(get_db)):
    types = crud.list_product_types(db)
    assets = crud.list_assets(db)
    usage = {t: sum(1 for a in assets if a.product_type == t) for t in types}
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "product_types.html",
        {
            "product_types": types,
            "usage": usage,
            "is_authenticated": is_authenticated(request),
        },
    )


@router.post("/ui/product-types")
def create_product_type_ui(
    request: Request,
    name: str = Form(...),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    crud.create_product_type(db, name=name)
    request.app.state.controller.refresh_product_types()
    return RedirectResponse(url="/ui/product-types", status_code=303)


@router.post("/ui/product-types/delete")
def delete_product_type_ui(
    request: Request,
    name: str = Form(...),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    crud.delete_product_type(db, name=name)
    request.app.state.controller.refresh_product_types()
    return RedirectResponse(url="/ui/product-types", status_code=303)


@router.get("/ui/customers", response_class=HTMLResponse)
def customers_ui(request: Request, db: Session = Depends(get_db)):
    customers = crud.list_customers(db)
    active_counts = {c.id: crud.customer_active_rental_count(db, c.id) for c in customers}
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "customers.html",
        {
            "customers": customers,
            "active_counts": active_counts,
            "is_authenticated": is_authenticated(request),
        },
    )


@router.get("/ui/customers/{customer_id}", response_class=HTMLResponse)
def customer_detail_ui(request: Request, customer_id: str, db: Session = Depends(get_db)):
    customer = crud.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="customer not found")

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "customer_detail.html",
        {
            "customer": customer,
            "rentals": crud.customer_rental_history(db, customer_id),
            "is_authenticated": is_authenticated(request),
        },
    )


@router.post("/ui/customers")
async def create_customer_ui(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(...),
    phone2: Optional[str] = Form(None),
    aadhar: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    body = CustomerIn(
        name=name,
        email=email,
        phone=phone,
        phone2=phone2 or None,
        aadhar=aadhar or None,
        address=address or None,
        photo=await _read_photo(photo),
    )
    crud.create_customer(db, body)
    request.app.state.controller.refresh_customers()
    return RedirectResponse(url="/ui/customers", status_code=303)


@router.post("/ui/customers/{customer_id}/edit")
async def update_customer_ui(
    request: Request,
    customer_id: str,
    name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(...),
    phone2: Optional[str] = Form(None),
    aadhar: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    current = crud.get_customer(db, customer_id)
    if not current:
        return RedirectResponse(url="/ui/customers", status_code=303)

    body = CustomerIn(
        name=name,
        email=email,
        phone=phone,
        phone2=phone2 or None,
        aadhar=aadhar or None,
        address=address or None,
        photo=await _read_photo(photo) or current.photo,
    )
    crud.update_customer(db, customer_id, body)
    request.app.state.controller.refresh_customers()
    return RedirectResponse(url=f"/ui/customers/{customer_id}", status_code=303)


@router.post("/ui/customers/{customer_id}/delete")
def delete_customer_ui(
    request: Request,
    customer_id: str,
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    # customers with something still out stay on the roster
    if crud.customer_active_rental_count(db, customer_id) == 0:
        crud.delete_customer(db, customer_id)
        request.app.state.controller.refresh_customers()
    return RedirectResponse(url="/ui/customers", status_code=303)
