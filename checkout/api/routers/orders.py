# checkout/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from checkout.api.errors import unwrap
from checkout.data.database import get_db
from checkout.domain.schemas import OrderFromCartIn, BuyNowIn, OrderOut, OrderListOut
from checkout.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderFromCartIn,
    svc: OrderService = Depends(get_service),
):
    """
    Creates an order from the selected cart lines.
    Stock, promotion and cart cleanup commit together; notification is sent asynchronously.
    """
    return unwrap(
        svc.create_order_from_cart(
            user_id=payload.user_id,
            address_id=payload.address_id,
            payment_method=payload.payment_method,
            cart_item_ids=payload.cart_item_ids,
            select_all=payload.select_all,
            promotion_code=payload.promotion_code,
        )
    )


@router.post("/buy-now", response_model=OrderOut, status_code=201)
def buy_now(
    payload: BuyNowIn,
    svc: OrderService = Depends(get_service),
):
    return unwrap(
        svc.buy_now(
            user_id=payload.user_id,
            variant_id=payload.product_variant_id,
            quantity=payload.quantity,
            address_id=payload.address_id,
            payment_method=payload.payment_method,
            promotion_code=payload.promotion_code,
        )
    )


@router.get("", response_model=OrderListOut)
def list_orders(
    user_id: int = Query(..., gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str | None = Query(None),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(user_id, page=page, limit=limit, status=status)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    """
    Order details with line items.
    """
    return unwrap(svc.get_order(order_id, user_id))


@router.put("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    return unwrap(svc.cancel_order(order_id, user_id))
