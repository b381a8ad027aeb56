import logging
from typing import Dict, Iterable, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.catalog.interfaces.repositories import AbstractCatalogRepository
from marketplace.catalog.models import Product, ProductRead, Shop, ShopRead
from marketplace.core.utils import utcnow

logger = logging.getLogger(__name__)


class SQLAlchemyCatalogRepository(AbstractCatalogRepository):
    """Accès au catalogue. Le stock n'est jamais modifié en lecture-écriture applicative."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_products(self, product_ids: Iterable[int]) -> Dict[int, ProductRead]:
        ids = set(product_ids)
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids)).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return {product.id: ProductRead.model_validate(product, from_attributes=True) for product in result.scalars().all()}

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"[CatalogRepository] Décrément refusé pour produit {product_id} (quantité {quantity}).")
            return False
        return True

    async def increment_stock(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def get_shops(self, shop_ids: Iterable[int]) -> List[ShopRead]:
        ids = set(shop_ids)
        if not ids:
            return []
        result = await self.db.execute(select(Shop).where(Shop.id.in_(ids)).order_by(Shop.id))
        return [ShopRead.model_validate(shop, from_attributes=True) for shop in result.scalars().all()]
