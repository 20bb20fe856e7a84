from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, require_admin, simulated_latency
from models import Customer, CustomerIn, ProductTypeIn, RentalSummary

router = APIRouter(dependencies=[Depends(simulated_latency)])


@router.get("/customers", response_model=list[Customer])
def list_customers_api(db: Session = Depends(get_db)):
    return crud.list_customers(db)


@router.post("/customers", response_model=Customer, status_code=201, dependencies=[Depends(require_admin)])
def create_customer_api(
    request: Request,
    body: CustomerIn,
    db: Session = Depends(get_db),
):
    created = crud.create_customer(db, body)
    request.app.state.controller.refresh_customers()
    return created


@router.get("/customers/{customer_id}", response_model=Customer)
def get_customer_api(
    customer_id: str,
    db: Session = Depends(get_db),
):
    customer = crud.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="customer not found")
    return customer


@router.put("/customers/{customer_id}", response_model=Customer, dependencies=[Depends(require_admin)])
def update_customer_api(
    request: Request,
    customer_id: str,
    body: CustomerIn,
    db: Session = Depends(get_db),
):
    updated = crud.update_customer(db, customer_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="customer not found")
    request.app.state.controller.refresh_customers()
    return updated


@router.delete("/customers/{customer_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_customer_api(
    request: Request,
    customer_id: str,
    db: Session = Depends(get_db),
):
    ok = crud.delete_customer(db, customer_id)
    if not ok:
        raise HTTPException(status_code=404, detail="customer not found")
    request.app.state.controller.refresh_customers()
    return None


@router.get("/customers/{customer_id}/rentals", response_model=list[RentalSummary])
def customer_rentals_api(
    customer_id: str,
    db: Session = Depends(get_db),
):
    if not crud.get_customer(db, customer_id):
        raise HTTPException(status_code=404, detail="customer not found")
    return crud.customer_rental_history(db, customer_id)


# -----------------------
# Product types
# -----------------------
@router.get("/product-types", response_model=list[str])
def list_product_types_api(db: Session = Depends(get_db)):
    return crud.list_product_types(db)


@router.post(
    "/product-types",
    response_model=list[str],
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_product_type_api(
    request: Request,
    body: ProductTypeIn,
    db: Session = Depends(get_db),
):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="product type name cannot be empty")
    if not crud.create_product_type(db, name=name):
        raise HTTPException(status_code=409, detail=f'product type "{name}" already exists')
    request.app.state.controller.refresh_product_types()
    return crud.list_product_types(db)


@router.delete("/product-types/{name}", response_model=list[str], dependencies=[Depends(require_admin)])
def delete_product_type_api(
    request: Request,
    name: str,
    db: Session = Depends(get_db),
):
    if name not in crud.list_product_types(db):
        raise HTTPException(status_code=404, detail="product type not found")
    if crud.product_type_in_use(db, name):
        raise HTTPException(status_code=409, detail=f'product type "{name}" is used by one or more assets')
    crud.delete_product_type(db, name=name)
    request.app.state.controller.refresh_product_types()
    return crud.list_product_types(db)
