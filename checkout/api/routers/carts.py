# checkout/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from checkout.api.errors import unwrap
from checkout.data.database import get_db
from checkout.domain.schemas import (
    CartItemIn,
    CartItemUpdate,
    CartSelectionIn,
    CartOut,
)
from checkout.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db)


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    return unwrap(svc.get_cart(user_id))


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    return unwrap(svc.add_item(user_id, payload.product_variant_id, payload.quantity))


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    return unwrap(svc.update_item(user_id, item_id, payload.quantity, payload.is_selected))


@router.put("/selection", response_model=CartOut)
def set_selection(
    payload: CartSelectionIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    return unwrap(svc.set_selection(user_id, payload.selected_ids, payload.select_all, payload.deselect_all))


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    return unwrap(svc.remove_item(user_id, item_id))
