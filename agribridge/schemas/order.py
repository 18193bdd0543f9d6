"""
Order schemas
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from agribridge.schemas.cart import CartLineItem


class DeliveryDetails(BaseModel):
    """Delivery info captured at checkout; stored on the order as-is."""
    model_config = ConfigDict(extra="allow")

    address: Optional[str] = None
    region: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    user_id: Any
    total_amount: float
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    status: str
    delivery_info: Dict[str, Any] = Field(default_factory=dict)


class OrderRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Any
    user_id: Optional[Any] = None
    total_amount: float = 0.0
    status: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_info: Optional[Dict[str, Any]] = None
    created_at: Optional[Any] = None

    @property
    def short_id(self) -> str:
        return str(self.id)[:8]


class OrderItemCreate(BaseModel):
    order_id: Any
    product_id: Any
    quantity: int
    price: float
    product_name: str
    farmer_name: str


class OrderStatusEvent(BaseModel):
    """Row of order_status_history."""
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    order_id: Any
    status: str
    notes: Optional[str] = None
    created_at: Optional[Any] = None


class OrderTrackingResponse(BaseModel):
    order: OrderRecord
    history: List[OrderStatusEvent]


class CheckoutRequest(BaseModel):
    delivery_details: DeliveryDetails


class CheckoutResult(BaseModel):
    order: OrderRecord
    items: List[CartLineItem]
    subtotal: float
    message: str
    whatsapp_url: str
    removed_product_ids: List[Any] = Field(default_factory=list)


class PaymentSetup(BaseModel):
    """Order created and awaiting payment in the Paystack popup."""
    order: OrderRecord
    items: List[CartLineItem]
    total_amount: float
    paystack_config: Dict[str, Any]
    removed_product_ids: List[Any] = Field(default_factory=list)
