"""
CheckoutService - turns a cart into an order

Two flows share the same order-creation steps:
- WhatsApp checkout: create order, clear cart, hand off a summary message
- Paystack checkout: create order, return popup config; the cart is
  cleared only when the gateway reports success

Order creation is two inserts (orders, then order_items). If the items
insert fails the order row is deleted before the error is raised so no
order is left without lines. The cart is untouched on any failure.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from agribridge.adapters.supabase_client import RemoteDataStore
from agribridge.core.config import Settings, settings as default_settings
from agribridge.core.exceptions import (
    AuthenticationRequiredError,
    CheckoutValidationError,
    DataStoreError,
    EmptyCartError,
    OrderCreationError,
    OrderItemsError,
    PaymentChannelUnavailableError,
    ProductUnavailableError,
)
from agribridge.schemas.cart import CartLineItem
from agribridge.schemas.identity import Identity
from agribridge.schemas.order import (
    CheckoutResult,
    DeliveryDetails,
    OrderCreate,
    OrderItemCreate,
    OrderRecord,
    PaymentSetup,
)
from agribridge.services.cart_store import CartStore
from agribridge.services.messaging import MessageHandoff, RecordingHandoff, build_whatsapp_url

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"
PAYMENT_CHANNELS = ["card", "mobile_money"]


def to_minor_units(amount: float) -> int:
    """Convert an amount to pesewas/cents, rounding half up."""
    if amount is None:
        return 0
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(quantized * 100)


def format_amount(amount: float) -> str:
    """Thousands separators, up to three decimals, no trailing zeros."""
    text = f"{amount:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def calculate_subtotal(items: List[CartLineItem]) -> float:
    return sum(item.line_total for item in items)


def build_order_message(
    order: OrderRecord,
    identity: Identity,
    items: List[CartLineItem],
    subtotal: float,
    currency: str,
) -> str:
    """Human-readable order summary sent over WhatsApp."""
    lines = [
        "*New Order from Agribridge!* ✨",
        "",
        f"*Order ID:* {order.short_id}",
        f"*Customer:* {identity.full_name}",
        "",
        "I'd like to place an order for:",
        "",
    ]
    for item in items:
        farmer = f" (from {item.farmer_name})" if item.farmer_name else ""
        lines.append(
            f"*{item.name}*{farmer} (x{item.quantity}) - {currency} {format_amount(item.line_total)}"
        )
    lines.append("")
    lines.append(f"*Total: {currency} {format_amount(subtotal)}*")
    return "\n".join(lines)


def select_payment_channels(
    country: Optional[str],
    specific_channel: Optional[str] = None,
    home_country: str = "Ghana",
) -> List[str]:
    """
    Paystack channels offered to a customer.

    Mobile money is only available in the home country; everyone else
    pays by card.
    """
    channels = [specific_channel] if specific_channel else list(PAYMENT_CHANNELS)

    if country and country != home_country:
        if specific_channel == "mobile_money":
            raise PaymentChannelUnavailableError(
                f"Mobile Money payment is only available for customers in {home_country}.",
                channel=specific_channel,
                country=country,
            )
        channels = ["card"]

    return channels


def build_paystack_config(
    order: OrderRecord,
    identity: Identity,
    email: str,
    total_amount: float,
    channels: List[str],
    specific_channel: Optional[str],
    public_key: str,
    currency: str,
) -> Dict[str, Any]:
    """Inline popup setup; the client attaches its own callbacks."""
    payment_method = "Mobile Money" if specific_channel == "mobile_money" else "Card/Other"
    return {
        "key": public_key,
        "email": email,
        "amount": to_minor_units(total_amount),
        "currency": currency,
        "ref": str(order.id),
        "channels": channels,
        "metadata": {
            "custom_fields": [
                {"display_name": "Customer Name", "variable_name": "customer_name", "value": identity.full_name or ""},
                {"display_name": "Phone Number", "variable_name": "phone_number", "value": identity.phone_number or ""},
                {"display_name": "Payment Method", "variable_name": "payment_method", "value": payment_method},
            ]
        },
    }


class CheckoutService:
    """Order creation with compensating rollback."""

    def __init__(
        self,
        data_store: RemoteDataStore,
        messenger: Optional[MessageHandoff] = None,
        settings: Optional[Settings] = None,
    ):
        self.data_store = data_store
        self.messenger = messenger or RecordingHandoff()
        self.settings = settings or default_settings

    # ----- Preconditions -----

    def _require_ready(self, cart: CartStore) -> Identity:
        if cart.is_empty:
            raise EmptyCartError("Your cart is empty!")
        identity = cart.identity
        if identity is None or not identity.has_profile:
            raise AuthenticationRequiredError("Please log in to place an order.")
        return identity

    async def validate_cart_items(
        self, items: List[CartLineItem]
    ) -> Tuple[List[CartLineItem], List[CartLineItem]]:
        """Split items into (still listed, no longer listed)."""
        if not items:
            return [], []
        existing = set(await self.data_store.fetch_existing_product_ids([item.id for item in items]))
        valid = [item for item in items if item.id in existing]
        invalid = [item for item in items if item.id not in existing]
        if invalid:
            logger.warning(
                f"Found {len(invalid)} invalid item(s) in cart (likely deleted products): "
                f"{[item.id for item in invalid]}"
            )
        return valid, invalid

    async def _drop_unavailable(self, cart: CartStore) -> Tuple[List[CartLineItem], List[Any]]:
        valid, invalid = await self.validate_cart_items(cart.items)
        removed_ids = [item.id for item in invalid]
        if invalid:
            cart.replace_items(valid)
            if not valid:
                raise ProductUnavailableError(
                    f"{len(invalid)} item(s) were removed because they are no longer available.",
                    details={"removed_product_ids": removed_ids},
                )
        return valid, removed_ids

    # ----- Order creation -----

    async def create_order(
        self,
        identity: Identity,
        items: List[CartLineItem],
        total_amount: float,
        delivery_details: DeliveryDetails,
    ) -> OrderRecord:
        """
        Insert the order row and its lines.

        Raises:
            OrderCreationError: order row insert failed
            OrderItemsError: lines failed; the order row was deleted
            ProductUnavailableError: lines referenced a deleted product
        """
        order_payload = OrderCreate(
            user_id=identity.user_id,
            total_amount=total_amount,
            customer_name=identity.full_name,
            customer_phone=identity.phone_number,
            status=self.settings.ORDER_PLACED_STATUS,
            delivery_info=delivery_details.model_dump(exclude_none=True),
        )
        try:
            row = await self.data_store.insert_order(order_payload.model_dump(mode="json"))
        except DataStoreError as e:
            raise OrderCreationError(
                "There was an error processing your order. Please try again.",
                details={"cause": e.to_dict()},
            ) from e
        order = OrderRecord.model_validate(row)

        order_items = [
            OrderItemCreate(
                order_id=order.id,
                product_id=item.id,
                quantity=item.quantity,
                price=item.price,
                product_name=item.name,
                farmer_name=item.farmer_name or self.settings.DEFAULT_FARMER_NAME,
            ).model_dump(mode="json")
            for item in items
        ]
        try:
            await self.data_store.insert_order_items(order_items)
        except DataStoreError as e:
            rolled_back = await self._rollback_order(order.id)
            if e.remote_code == FOREIGN_KEY_VIOLATION:
                raise ProductUnavailableError(
                    "One or more products in your cart are no longer available.",
                    order_id=str(order.id),
                    rolled_back=rolled_back,
                ) from e
            raise OrderItemsError(
                "There was an error processing your order. Please try again.",
                order_id=str(order.id),
                rolled_back=rolled_back,
            ) from e

        logger.info(f"Created order {order.id} with {len(order_items)} item(s), total={total_amount}")
        return order

    async def _rollback_order(self, order_id: Any) -> bool:
        try:
            await self.data_store.delete_order(order_id)
        except DataStoreError as e:
            logger.error(f"Rollback failed, order {order_id} left without items: {e}")
            return False
        logger.warning(f"Rolled back order {order_id} after order items failed to insert")
        return True

    async def _record_sales(self, items: List[CartLineItem]) -> None:
        for item in items:
            try:
                await self.data_store.increment_product_sold_count(item.id, item.quantity)
            except DataStoreError as e:
                logger.error(f"Failed to increment sold count for {item.id}: {e}")

    # ----- WhatsApp checkout -----

    async def checkout(self, cart: CartStore, delivery_details: DeliveryDetails) -> CheckoutResult:
        """
        Place the order and hand the summary to WhatsApp.

        On success the cart is cleared. On any failure the cart keeps its
        items (minus products that no longer exist).
        """
        identity = self._require_ready(cart)
        items, removed_ids = await self._drop_unavailable(cart)

        subtotal = calculate_subtotal(items)
        order = await self.create_order(identity, items, subtotal, delivery_details)
        await self._record_sales(items)

        message = build_order_message(order, identity, items, subtotal, self.settings.CURRENCY)
        whatsapp_url = build_whatsapp_url(self.settings.WHATSAPP_NUMBER, message)

        cart.clear()
        self.messenger.open(whatsapp_url)

        return CheckoutResult(
            order=order,
            items=items,
            subtotal=subtotal,
            message=message,
            whatsapp_url=whatsapp_url,
            removed_product_ids=removed_ids,
        )

    # ----- Paystack checkout -----

    async def prepare_payment(
        self,
        cart: CartStore,
        delivery_details: DeliveryDetails,
        specific_channel: Optional[str] = None,
    ) -> PaymentSetup:
        """Create the order and build the Paystack popup config."""
        identity = self._require_ready(cart)

        email = identity.email
        if not email:
            raise CheckoutValidationError("We need your email address to process the payment.")

        channels = select_payment_channels(
            identity.country,
            specific_channel,
            home_country=self.settings.PAYSTACK_HOME_COUNTRY,
        )

        items, removed_ids = await self._drop_unavailable(cart)
        total_amount = calculate_subtotal(items)
        order = await self.create_order(identity, items, total_amount, delivery_details)

        config = build_paystack_config(
            order,
            identity,
            email,
            total_amount,
            channels,
            specific_channel,
            public_key=self.settings.PAYSTACK_PUBLIC_KEY,
            currency=self.settings.CURRENCY,
        )
        return PaymentSetup(
            order=order,
            items=items,
            total_amount=total_amount,
            paystack_config=config,
            removed_product_ids=removed_ids,
        )

    def confirm_payment(self, cart: CartStore, order_id: Any, status: str) -> bool:
        """Gateway callback; clears the cart only on success."""
        if status == "success":
            cart.clear()
            logger.info(f"Payment confirmed for order {order_id}")
            return True
        logger.warning(f"Payment for order {order_id} not successful: status={status}")
        return False
