from typing import List, Optional

from pydantic import Field

from storefront.schemas.base_schemas import CamelModel


class CartItemAdd(CamelModel):
    product_id: str = Field(..., min_length=1, description="Product id")
    quantity: int = Field(1, ge=1, le=1000, description="Units to add")


class CartItemUpdate(CamelModel):
    quantity: int = Field(..., ge=1, le=1000, description="New quantity")


class ProductSummary(CamelModel):
    id: str
    name: str
    base_price: float
    stock: int
    is_active: bool


class CartItemResponse(CamelModel):
    id: str
    product_id: str
    quantity: int
    product: Optional[ProductSummary] = None


class CartResponse(CamelModel):
    id: str
    user_id: str
    items: List[CartItemResponse] = Field(default_factory=list)
    subtotal: float = 0.0

    @classmethod
    def from_cart(cls, cart) -> "CartResponse":
        subtotal = sum(
            (item.product.base_price * item.quantity for item in cart.items if item.product is not None),
            0,
        )
        return cls(
            id=cart.id,
            user_id=cart.user_id,
            items=[CartItemResponse.model_validate(item) for item in cart.items],
            subtotal=float(subtotal),
        )
