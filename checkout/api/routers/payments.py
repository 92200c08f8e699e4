# checkout/api/routers/payments.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from checkout.api.errors import unwrap
from checkout.data.database import get_db
from checkout.domain.schemas import PaymentInitiateIn, PaymentInitiateOut, PaymentResultOut
from checkout.domain.statuses import PaymentMethod
from checkout.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


@router.post("/initiate", response_model=PaymentInitiateOut)
def initiate(
    payload: PaymentInitiateIn,
    request: Request,
    svc: PaymentService = Depends(get_service),
):
    client_ip = request.client.host if request.client else "127.0.0.1"
    return unwrap(svc.initiate(payload.order_id, payload.user_id, client_ip=client_ip))


@router.get("/vnpay-callback", response_model=PaymentResultOut)
def vnpay_callback(
    request: Request,
    svc: PaymentService = Depends(get_service),
):
    """
    VNPay return URL. The whole query string is the signed payload.
    """
    return unwrap(svc.reconcile(PaymentMethod.VNPAY.value, dict(request.query_params)))


@router.get("/paypal-callback", response_model=PaymentResultOut)
def paypal_callback(
    orderId: int = Query(...),
    token: str = Query(...),
    user_id: int = Query(..., gt=0),
    svc: PaymentService = Depends(get_service),
):
    payload = {"orderId": str(orderId), "token": token}
    return unwrap(svc.reconcile(PaymentMethod.PAYPAL.value, payload, user_id=user_id))


@router.get("/paypal-cancel", response_model=PaymentResultOut)
def paypal_cancel(
    orderId: int = Query(...),
    user_id: int = Query(..., gt=0),
    svc: PaymentService = Depends(get_service),
):
    return unwrap(svc.cancel(orderId, user_id))
