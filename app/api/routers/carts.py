#app/api/routers/carts.py
from fastapi import APIRouter, Depends

from app.api.deps import SERVICE_ERRORS, get_cart_service, get_owner, to_http
from app.domain.owner import Owner
from app.domain.schemas import CartOut, CouponIn, ItemIn, MergeIn, QuantityIn
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/", response_model=CartOut)
def get_cart(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    """
    Koszyk usera albo gościa, tworzony przy pierwszym odczycie.
    """
    return svc.get_cart(owner)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(owner, payload.product_id, payload.quantity, payload.options)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: QuantityIn,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_quantity(owner, item_id, payload.quantity)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_item(owner, item_id)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.delete("/", response_model=CartOut)
def clear_cart(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear(owner)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.post("/coupon", response_model=CartOut)
def apply_coupon(
    payload: CouponIn,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.apply_coupon(owner, payload.code)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.delete("/coupon", response_model=CartOut)
def remove_coupon(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_coupon(owner)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    payload: MergeIn,
    svc: CartService = Depends(get_cart_service),
):
    """
    Wołane przez warstwę logowania: koszyk gościa trafia do koszyka usera.
    """
    try:
        return svc.merge_guest_into_user(payload.session_id, payload.user_id)
    except SERVICE_ERRORS as e:
        raise to_http(e)
