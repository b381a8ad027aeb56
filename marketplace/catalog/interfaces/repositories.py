from abc import ABC, abstractmethod
from typing import Dict, Iterable, List

from marketplace.catalog.models import ProductRead, ShopRead


class AbstractCatalogRepository(ABC):
    """Interface abstraite pour la lecture du catalogue et les mouvements de stock."""

    @abstractmethod
    async def get_products(self, product_ids: Iterable[int]) -> Dict[int, ProductRead]:
        """Retourne un instantané des produits existants, indexé par ID."""
        raise NotImplementedError

    @abstractmethod
    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Décrémente atomiquement le stock si suffisant. Retourne False sinon."""
        raise NotImplementedError

    @abstractmethod
    async def increment_stock(self, product_id: int, quantity: int) -> bool:
        """Incrémente atomiquement le stock. Retourne False si le produit n'existe plus."""
        raise NotImplementedError

    @abstractmethod
    async def get_shops(self, shop_ids: Iterable[int]) -> List[ShopRead]:
        raise NotImplementedError
