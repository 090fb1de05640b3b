from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from storefront.models.catalog_models import Cart, CartItem


class CartCRUD:
    """Cart persistence; one cart per user"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: str) -> Optional[Cart]:
        stmt = (
            select(Cart)
            .where(Cart.user_id == user_id)
            .options(selectinload(Cart.items).selectinload(CartItem.product))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_or_create(self, user_id: str) -> Cart:
        cart = self.get_by_user(user_id)
        if cart is None:
            cart = Cart(user_id=user_id)
            self.db.add(cart)
            self.db.flush()
        return cart

    def get_item(self, cart: Cart, item_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_item_by_product(self, cart: Cart, product_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(CartItem.cart_id == cart.id, CartItem.product_id == product_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def clear(self, cart: Cart) -> int:
        """Delete every line of the cart, returns the number removed"""
        result = self.db.execute(
            delete(CartItem).where(CartItem.cart_id == cart.id).execution_options(synchronize_session=False)
        )
        self.db.expire(cart, ["items"])
        return result.rowcount
