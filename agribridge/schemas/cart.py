"""
Cart schemas
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Product as listed in the marketplace; extra columns are preserved."""
    model_config = ConfigDict(extra="allow")

    id: Any
    name: str = ""
    price: float = 0.0
    farmer: Optional[Dict[str, Any]] = None

    @property
    def farmer_name(self) -> Optional[str]:
        if not self.farmer:
            return None
        return self.farmer.get("full_name") or None


class CartLineItem(Product):
    quantity: int = Field(1, ge=1)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class CartAddResult(BaseModel):
    item: Optional[CartLineItem] = None
    created: bool = False


class CartItemCreate(BaseModel):
    product: Product
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: int


class CartResponse(BaseModel):
    items: List[CartLineItem]
    subtotal: float
    item_count: int
