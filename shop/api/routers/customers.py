# shop/api/routers/customers.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shop.data.database import get_db
from shop.domain.schemas import (
    AddressIn,
    AddressListResponse,
    AddressResponse,
    AddressOut,
    CustomerCreateIn,
    CustomerOut,
    CustomerResponse,
)
from shop.services.customer_service import CustomerService

router = APIRouter(prefix="/api/customers", tags=["customers"])


def get_service(db: Session):
    return CustomerService(db)


@router.post("", response_model=CustomerResponse, status_code=201)
def register_customer(payload: CustomerCreateIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    customer = svc.register(payload)
    return {"success": True, "message": "Customer registered", "customer": CustomerOut.model_validate(customer)}


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "customer": CustomerOut.model_validate(svc.get_customer(customer_id))}


@router.post("/{customer_id}/addresses", response_model=AddressResponse, status_code=201)
def add_address(customer_id: int, payload: AddressIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    address = svc.add_address(customer_id, payload)
    return {"success": True, "message": "Address saved", "address": AddressOut.model_validate(address)}


@router.get("/{customer_id}/addresses", response_model=AddressListResponse)
def list_addresses(customer_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "addresses": [AddressOut.model_validate(a) for a in svc.list_addresses(customer_id)]}
