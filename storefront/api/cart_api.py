from fastapi import APIRouter, Depends

from storefront.api.dependencies_api import get_cart_service, get_current_user
from storefront.core.security import CurrentUser
from storefront.schemas.base_schemas import MessageResponse
from storefront.schemas.cart_schemas import CartItemAdd, CartItemResponse, CartItemUpdate, CartResponse
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
def get_cart(
    current_user: CurrentUser = Depends(get_current_user),
    carts: CartService = Depends(get_cart_service),
):
    return CartResponse.from_cart(carts.get_cart(current_user.id))


@router.post("/items", response_model=CartItemResponse)
def add_cart_item(
    body: CartItemAdd,
    current_user: CurrentUser = Depends(get_current_user),
    carts: CartService = Depends(get_cart_service),
):
    return carts.add_item(current_user.id, body.product_id, body.quantity)


@router.put("/items/{item_id}", response_model=CartItemResponse)
def update_cart_item(
    item_id: str,
    body: CartItemUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    carts: CartService = Depends(get_cart_service),
):
    return carts.update_item(current_user.id, item_id, body.quantity)


@router.delete("/items/{item_id}", response_model=MessageResponse)
def remove_cart_item(
    item_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    carts: CartService = Depends(get_cart_service),
):
    carts.remove_item(current_user.id, item_id)
    return MessageResponse(message="Item removed from cart")
