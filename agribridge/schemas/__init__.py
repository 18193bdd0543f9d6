from agribridge.schemas.review import (
    AuthorSnapshot,
    ReviewRecord,
    ReviewNode,
    ReviewCreate,
    ReviewTreeResponse,
)
from agribridge.schemas.cart import (
    Product,
    CartLineItem,
    CartAddResult,
    CartItemCreate,
    CartItemUpdate,
    CartResponse,
)
from agribridge.schemas.identity import Identity
from agribridge.schemas.order import (
    DeliveryDetails,
    OrderCreate,
    OrderRecord,
    OrderItemCreate,
    OrderStatusEvent,
    OrderTrackingResponse,
    CheckoutRequest,
    CheckoutResult,
    PaymentSetup,
)
