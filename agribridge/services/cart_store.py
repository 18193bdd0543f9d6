"""
Cart store

Per-identity ordered line items persisted to a key-value store.

- One storage key per signed-in user, one shared key for guests
- Adding a product already in the cart increments its quantity
- Quantity never drops below 1; updating to 0 removes the line
- Every mutation is written back synchronously
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from agribridge.core.config import settings
from agribridge.core.exceptions import AuthenticationRequiredError, DataStoreError
from agribridge.core.kv_storage import KeyValueStorage
from agribridge.schemas.cart import CartAddResult, CartLineItem, Product
from agribridge.schemas.identity import Identity

logger = logging.getLogger(__name__)

ProductLike = Union[Product, Dict[str, Any]]

GUEST_SUFFIX = "guest"


def cart_storage_key(identity: Optional[Identity], prefix: Optional[str] = None) -> str:
    """Storage key for an identity; guests share a single key."""
    prefix = prefix or settings.CART_STORAGE_PREFIX
    if identity is None:
        return f"{prefix}_{GUEST_SUFFIX}"
    return f"{prefix}_{identity.user_id}"


class CartStore:
    """Cart for one identity at a time, backed by a KeyValueStorage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        identity: Optional[Identity] = None,
        key_prefix: Optional[str] = None,
    ):
        self.storage = storage
        self.key_prefix = key_prefix or settings.CART_STORAGE_PREFIX
        self.identity: Optional[Identity] = identity
        self._items: List[CartLineItem] = self.load()

    @property
    def storage_key(self) -> str:
        return cart_storage_key(self.identity, self.key_prefix)

    # ----- Persistence -----

    def load(self, identity_key: Optional[str] = None) -> List[CartLineItem]:
        """
        Read the cart stored under identity_key (default: current identity).

        Missing, corrupt or non-list entries yield an empty cart; the parse
        error is logged, never raised.
        """
        key = identity_key or self.storage_key
        raw = self.storage.get(key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to parse cart {key}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Cart {key} is not a list, ignoring")
            return []

        try:
            return [CartLineItem.model_validate(entry) for entry in data]
        except ValidationError as e:
            logger.warning(f"Cart {key} has invalid line items: {e}")
            return []

    def save(self) -> None:
        payload = json.dumps([item.model_dump(mode="json") for item in self._items])
        self.storage.set(self.storage_key, payload)

    def set_identity(self, identity: Optional[Identity]) -> List[CartLineItem]:
        """Login/logout transition: switch storage key and reload."""
        self.identity = identity
        self._items = self.load()
        logger.debug(f"Loaded {len(self._items)} cart item(s) for {self.storage_key}")
        return self.items

    # ----- Reads -----

    @property
    def items(self) -> List[CartLineItem]:
        return list(self._items)

    def get_item(self, product_id: Any) -> Optional[CartLineItem]:
        for item in self._items:
            if item.id == product_id:
                return item
        return None

    @property
    def subtotal(self) -> float:
        return sum(item.line_total for item in self._items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    # ----- Mutations -----

    def add_item(self, product: ProductLike, quantity: int = 1) -> CartAddResult:
        """
        Add quantity of product, merging with an existing line.

        Raises:
            AuthenticationRequiredError: no identity; nothing is changed
        """
        if self.identity is None:
            raise AuthenticationRequiredError(
                "You need to be logged in to add items to your cart."
            )

        if quantity <= 0:
            return CartAddResult()

        if not isinstance(product, Product):
            product = Product.model_validate(product)

        existing = self.get_item(product.id)
        if existing is not None:
            updated = existing.model_copy(update={"quantity": existing.quantity + quantity})
            self._items = [updated if item.id == product.id else item for item in self._items]
            result = CartAddResult(item=updated, created=False)
        else:
            line = CartLineItem.model_validate({**product.model_dump(), "quantity": quantity})
            self._items = [*self._items, line]
            result = CartAddResult(item=line, created=True)

        self.save()
        logger.info(f"Added {quantity} x {product.name or product.id} to {self.storage_key}")
        return result

    def remove_item(self, product_id: Any) -> None:
        remaining = [item for item in self._items if item.id != product_id]
        if len(remaining) == len(self._items):
            return
        self._items = remaining
        self.save()

    def update_quantity(self, product_id: Any, quantity: int) -> None:
        """Absolute set; anything below 1 removes the line."""
        if quantity < 1:
            self.remove_item(product_id)
            return
        if self.get_item(product_id) is None:
            return
        self._items = [
            item.model_copy(update={"quantity": quantity}) if item.id == product_id else item
            for item in self._items
        ]
        self.save()

    def replace_items(self, items: List[CartLineItem]) -> None:
        """Full replacement, e.g. after unavailable products were dropped."""
        self._items = list(items)
        self.save()

    def clear(self) -> None:
        """Empty the cart and delete the stored entry."""
        self._items = []
        self.storage.remove(self.storage_key)


async def add_and_track(cart: CartStore, data_store: Any, product: ProductLike, quantity: int = 1) -> CartAddResult:
    """
    add_item plus the product's "times in cart" counter.

    The counter only moves when a new line is created; its failure is
    logged and does not undo the add.
    """
    result = cart.add_item(product, quantity)
    if result.created and result.item is not None:
        try:
            await data_store.increment_times_in_cart(result.item.id)
        except DataStoreError as e:
            logger.error(f"Failed to increment cart count for {result.item.id}: {e}")
    return result
