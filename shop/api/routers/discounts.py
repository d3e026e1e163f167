# shop/api/routers/discounts.py
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shop.data.database import get_db
from shop.domain.schemas import (
    DiscountCreateIn,
    DiscountOut,
    DiscountResponse,
    DiscountValidationResponse,
)
from shop.services.discount_service import DiscountService

router = APIRouter(prefix="/api/discounts", tags=["discounts"])


def get_service(db: Session):
    return DiscountService(db)


@router.post("", response_model=DiscountResponse, status_code=201)
def create_discount(payload: DiscountCreateIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    discount = svc.create(payload)
    return {"success": True, "message": "Discount created", "discount": DiscountOut.model_validate(discount)}


@router.get("/{code}/validate", response_model=DiscountValidationResponse)
def validate_discount(
    code: str,
    amount: Decimal = Query(..., ge=0),
    customer_id: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    """
    Checks a code against an order amount without redeeming it.
    """
    svc = get_service(db)
    return {"success": True, **svc.validate_code(code, amount, customer_id)}
