from typing import Optional

from sqlalchemy.orm import Session

from storefront.core.database import atomic
from storefront.core.exceptions import CartItemNotFoundException, ProductNotFoundException
from storefront.core.logging import BusinessLogger
from storefront.crud.cart_crud import CartCRUD
from storefront.crud.catalog_crud import CatalogCRUD
from storefront.models.catalog_models import Cart, CartItem

business_logger = BusinessLogger("cart")


class CartService:
    """The customer's cart; read by checkout, emptied when an order is placed"""

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartCRUD(db)
        self.catalog = CatalogCRUD(db)

    def get_cart(self, user_id: str) -> Cart:
        cart = self.carts.get_by_user(user_id)
        if cart is None:
            with atomic(self.db):
                cart = self.carts.get_or_create(user_id)
        return cart

    def add_item(self, user_id: str, product_id: str, quantity: int = 1) -> CartItem:
        product = self.catalog.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundException(product_id)

        with atomic(self.db):
            cart = self.carts.get_or_create(user_id)
            item = self.carts.find_item_by_product(cart, product_id)
            if item is None:
                item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
                self.db.add(item)
            else:
                item.quantity += quantity

        business_logger.log_operation("CART_ADD", user_id, product_id=product_id, quantity=quantity)
        return item

    def update_item(self, user_id: str, item_id: str, quantity: int) -> CartItem:
        item = self._get_own_item(user_id, item_id)
        with atomic(self.db):
            item.quantity = quantity
        return item

    def remove_item(self, user_id: str, item_id: str) -> None:
        item = self._get_own_item(user_id, item_id)
        with atomic(self.db):
            self.db.delete(item)
        business_logger.log_operation("CART_REMOVE", user_id, item_id=item_id)

    def _get_own_item(self, user_id: str, item_id: str) -> CartItem:
        cart: Optional[Cart] = self.carts.get_by_user(user_id)
        item = self.carts.get_item(cart, item_id) if cart is not None else None
        if item is None:
            raise CartItemNotFoundException(item_id)
        return item
