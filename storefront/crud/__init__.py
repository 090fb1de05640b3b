from .cart_crud import CartCRUD
from .catalog_crud import CatalogCRUD

__all__ = ["CartCRUD", "CatalogCRUD"]
