# shop/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shop.api.deps import get_cart_owner, require_customer
from shop.data.database import get_db
from shop.domain.owner import CartOwner
from shop.domain.schemas import (
    CartAddIn,
    CartMergeIn,
    CartRemoveIn,
    CartResponse,
    CartUpdateIn,
    DiscountCodeIn,
)
from shop.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("", response_model=CartResponse)
def get_cart(owner: CartOwner = Depends(get_cart_owner), db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "cart": svc.get_cart(owner)}


@router.post("/add", response_model=CartResponse)
def add_item(
    payload: CartAddIn,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = svc.add_item(owner, payload.product_id, payload.quantity)
    return {"success": True, "message": "Product added to cart", "cart": cart}


@router.post("/update", response_model=CartResponse)
def update_item(
    payload: CartUpdateIn,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    """
    Quantity 0 removes the line.
    """
    svc = get_service(db)
    cart = svc.update_item(owner, payload.item_id, payload.quantity)
    return {"success": True, "message": "Cart updated", "cart": cart}


@router.post("/remove", response_model=CartResponse)
def remove_item(
    payload: CartRemoveIn,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = svc.remove_item(owner, payload.item_id)
    return {"success": True, "message": "Product removed from cart", "cart": cart}


@router.post("/clear", response_model=CartResponse)
def clear_cart(owner: CartOwner = Depends(get_cart_owner), db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "message": "Cart cleared", "cart": svc.clear(owner)}


@router.post("/discount", response_model=CartResponse)
def apply_discount(
    payload: DiscountCodeIn,
    owner: CartOwner = Depends(get_cart_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = svc.apply_discount(owner, payload.discount_code)
    return {"success": True, "message": "Discount applied", "cart": cart}


@router.delete("/discount", response_model=CartResponse)
def remove_discount(owner: CartOwner = Depends(get_cart_owner), db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "message": "Discount removed", "cart": svc.remove_discount(owner)}


@router.post("/merge", response_model=CartResponse)
def merge_guest_cart(
    payload: CartMergeIn,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
):
    """
    Called right after login: the guest cart of the session joins the customer's cart.
    """
    svc = get_service(db)
    cart = svc.merge_guest_cart(payload.session_id, customer_id)
    return {"success": True, "message": "Guest cart merged", "cart": cart}
