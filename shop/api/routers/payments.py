# shop/api/routers/payments.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from shop.api.deps import get_payment_gateway, require_customer
from shop.data.database import get_db
from shop.domain.schemas import (
    PaymentCompleteIn,
    PaymentFailIn,
    PaymentMethodsResponse,
    PaymentProcessIn,
    PaymentProcessResponse,
    PaymentResponse,
    PaymentStatusResponse,
    RefundIn,
    RefundResponse,
)
from shop.services.gateway import CardDetails, PaymentGateway
from shop.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payments", tags=["payments"])


def get_service(db: Session, gateway: PaymentGateway):
    return PaymentService(db, gateway)


@router.post("/process", response_model=PaymentProcessResponse)
def process_payment(
    payload: PaymentProcessIn,
    response: Response,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Pays an order. A declined card answers 402 with success=false; the order
    stays pending and can be paid again.
    """
    svc = get_service(db, gateway)
    card = CardDetails(**payload.card_details.model_dump()) if payload.card_details else None

    result = svc.process(customer_id, payload.order_id, payload.payment_method, card)
    if not result["success"]:
        response.status_code = 402
    return result


@router.get("/methods", response_model=PaymentMethodsResponse)
def payment_methods():
    return {"success": True, "payment_methods": PaymentService.methods()}


@router.get("/status/{order_id}", response_model=PaymentStatusResponse)
def payment_status(
    order_id: int,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    return {"success": True, "payment_status": svc.status(customer_id, order_id)}


@router.post("/{payment_id}/refund", response_model=RefundResponse)
def refund_payment(
    payment_id: int,
    payload: RefundIn,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    refund = svc.refund(customer_id, payment_id, payload.amount, payload.reason)
    return {"success": True, "message": "Refund processed successfully", "refund": refund}


@router.post("/{payment_id}/complete", response_model=PaymentResponse)
def complete_payment(
    payment_id: int,
    payload: PaymentCompleteIn,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Admin / gateway callback.
    """
    svc = get_service(db, gateway)
    result = svc.mark_as_completed(payment_id, payload.transaction_id, payload.gateway_response)
    return {"success": True, "message": "Payment marked as completed", **result}


@router.post("/{payment_id}/fail", response_model=PaymentResponse)
def fail_payment(
    payment_id: int,
    payload: PaymentFailIn,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    result = svc.mark_as_failed(payment_id, payload.reason, payload.gateway_response)
    return {"success": True, "message": "Payment marked as failed", **result}
