"""
Cart routes

The cart lives in key-value storage under the caller's identity key.
Checkout turns it into an order (WhatsApp or Paystack).
"""
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from agribridge.adapters.supabase_client import RemoteDataStore
from agribridge.api.deps import get_cart, get_checkout_service, get_data_store
from agribridge.schemas.cart import CartAddResult, CartItemCreate, CartItemUpdate, CartResponse
from agribridge.schemas.order import CheckoutRequest, CheckoutResult, PaymentSetup
from agribridge.services.cart_store import CartStore, add_and_track
from agribridge.services.checkout_service import CheckoutService

router = APIRouter()


class PaymentConfirmation(BaseModel):
    status: str


def _cart_response(cart: CartStore) -> CartResponse:
    return CartResponse(
        items=cart.items,
        subtotal=round(cart.subtotal, 2),
        item_count=cart.item_count,
    )


def _resolve_product_id(cart: CartStore, product_id: str) -> Any:
    """Path params are strings; stored ids may be ints."""
    for item in cart.items:
        if str(item.id) == product_id:
            return item.id
    return product_id


@router.get("", response_model=CartResponse)
async def get_cart_items(cart: CartStore = Depends(get_cart)):
    """Current identity's cart"""
    return _cart_response(cart)


@router.post("/items", response_model=CartAddResult, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item_data: CartItemCreate,
    cart: CartStore = Depends(get_cart),
    data_store: RemoteDataStore = Depends(get_data_store),
):
    """Add a product; an existing line has its quantity increased"""
    return await add_and_track(cart, data_store, item_data.product, item_data.quantity)


@router.patch("/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    item_data: CartItemUpdate,
    cart: CartStore = Depends(get_cart),
):
    """Set a line's quantity; below 1 removes it"""
    cart.update_quantity(_resolve_product_id(cart, product_id), item_data.quantity)
    return _cart_response(cart)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(product_id: str, cart: CartStore = Depends(get_cart)):
    cart.remove_item(_resolve_product_id(cart, product_id))
    return _cart_response(cart)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(cart: CartStore = Depends(get_cart)):
    cart.clear()


@router.post("/checkout", response_model=CheckoutResult)
async def checkout(
    payload: CheckoutRequest,
    cart: CartStore = Depends(get_cart),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Place the order; the response carries the WhatsApp link to open"""
    return await service.checkout(cart, payload.delivery_details)


@router.post("/checkout/paystack", response_model=PaymentSetup)
async def start_paystack_checkout(
    payload: CheckoutRequest,
    channel: Optional[str] = Query(None),
    cart: CartStore = Depends(get_cart),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Create the order and return the Paystack popup config"""
    return await service.prepare_payment(cart, payload.delivery_details, specific_channel=channel)


@router.post("/checkout/paystack/{order_id}/confirm")
async def confirm_paystack_payment(
    order_id: str,
    payload: PaymentConfirmation,
    cart: CartStore = Depends(get_cart),
    service: CheckoutService = Depends(get_checkout_service),
):
    confirmed = service.confirm_payment(cart, order_id, payload.status)
    return {"order_id": order_id, "confirmed": confirmed}
