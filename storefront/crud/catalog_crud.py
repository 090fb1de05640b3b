"""
Catalog data access

The order core only needs two things from the catalog: the current price and
availability of a product, and a way to move its stock counter.
"""
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.core.exceptions import InsufficientStockException
from storefront.models.catalog_models import Product

logger = logging.getLogger(__name__)


class CatalogCRUD:
    """Product reads and stock arithmetic"""

    def __init__(self, db: Session, stock_floor_enforced: bool = True):
        """
        Args:
            db: SQLAlchemy session of the current request
            stock_floor_enforced: refuse decrements that would take stock below zero
        """
        self.db = db
        self.stock_floor_enforced = stock_floor_enforced

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def adjust_stock(self, product_id: str, delta: int) -> None:
        """
        Move the stock counter by ``delta`` in a single UPDATE statement.

        Runs inside the caller's transaction; nothing is committed here.

        Args:
            product_id: product to adjust
            delta: positive to restore stock, negative to consume it

        Raises:
            InsufficientStockException: the floor check rejected the decrement
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + delta)
            .execution_options(synchronize_session=False)
        )
        if delta < 0 and self.stock_floor_enforced:
            stmt = stmt.where(Product.stock + delta >= 0)

        result = self.db.execute(stmt)
        if result.rowcount == 0:
            if delta < 0 and self.stock_floor_enforced and self.get_product(product_id) is not None:
                logger.warning(f"Stock floor rejected decrement: product={product_id} delta={delta}")
                raise InsufficientStockException(product_id, -delta)
            logger.warning(f"Stock adjustment matched no product: product={product_id} delta={delta}")
            return

        # refresh a product instance already loaded by this session
        loaded = self.db.identity_map.get(Session.identity_key(Product, product_id))
        if loaded is not None:
            self.db.expire(loaded, ["stock"])
