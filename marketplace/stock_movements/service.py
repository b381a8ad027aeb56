import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.catalog.interfaces.repositories import AbstractCatalogRepository
from marketplace.orders.models import ReconciliationEntry
from marketplace.stock_movements.models import MovementType
from marketplace.stock_movements.repositories import StockMovementRepository

logger = logging.getLogger(__name__)


@dataclass
class StockStepReport:
    """Bilan d'une série d'étapes de stock pour une commande."""
    applied: List[Tuple[int, int]] = field(default_factory=list)
    failed: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class StockMovementService:
    """Sorties et remises en stock d'une commande, exécutées étape par étape.

    Chaque ligne est appliquée et journalisée dans sa propre transaction.
    Un échec sur une ligne est journalisé et n'interrompt pas les suivantes;
    `find_unbalanced` permet ensuite de retrouver les commandes incohérentes.
    """

    def __init__(self, db: AsyncSession, catalog_repository: AbstractCatalogRepository,
                 movement_repository: StockMovementRepository):
        self.db = db
        self.catalog_repository = catalog_repository
        self.movement_repository = movement_repository

    async def reserve_for_order(self, order_id: int, lines: Iterable[Tuple[int, int]]) -> StockStepReport:
        """Décrémente le stock pour chaque couple (product_id, quantity)."""
        report = StockStepReport()
        for product_id, quantity in lines:
            try:
                applied = await self.catalog_repository.decrement_stock(product_id, quantity)
                await self.movement_repository.record(
                    order_id=order_id,
                    product_id=product_id,
                    quantity_change=-quantity,
                    movement_type=MovementType.ORDER_RESERVATION,
                    succeeded=applied,
                    error=None if applied else "stock insuffisant ou produit introuvable",
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"[StockMovementService] Commande {order_id}: échec sortie stock produit {product_id}: {e}")
                await self._record_failure(order_id, product_id, -quantity, MovementType.ORDER_RESERVATION, str(e))
                applied = False

            if applied:
                report.applied.append((product_id, quantity))
            else:
                logger.warning(f"[StockMovementService] Commande {order_id}: produit {product_id} non décrémenté ({quantity}).")
                report.failed.append((product_id, quantity))
        return report

    async def restore_for_order(self, order_id: int) -> StockStepReport:
        """Remet en stock tout ce qui a été effectivement sorti pour la commande.

        Les produits disparus du catalogue sont ignorés (étape journalisée en échec).
        """
        report = StockStepReport()
        outstanding = await self.movement_repository.outstanding_by_product(order_id)
        for product_id, quantity in sorted(outstanding.items()):
            try:
                applied = await self.catalog_repository.increment_stock(product_id, quantity)
                await self.movement_repository.record(
                    order_id=order_id,
                    product_id=product_id,
                    quantity_change=quantity,
                    movement_type=MovementType.ORDER_RESTORATION,
                    succeeded=applied,
                    error=None if applied else "produit introuvable",
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"[StockMovementService] Commande {order_id}: échec remise en stock produit {product_id}: {e}")
                await self._record_failure(order_id, product_id, quantity, MovementType.ORDER_RESTORATION, str(e))
                applied = False

            if applied:
                report.applied.append((product_id, quantity))
            else:
                logger.warning(f"[StockMovementService] Commande {order_id}: produit {product_id} ignoré lors de la remise en stock.")
                report.failed.append((product_id, quantity))
        return report

    async def find_unbalanced(self, limit: int, offset: int) -> Tuple[List[ReconciliationEntry], int]:
        return await self.movement_repository.find_unbalanced(limit=limit, offset=offset)

    async def _record_failure(self, order_id: int, product_id: int, quantity_change: int,
                              movement_type: MovementType, error: str) -> None:
        try:
            await self.movement_repository.record(
                order_id=order_id,
                product_id=product_id,
                quantity_change=quantity_change,
                movement_type=movement_type,
                succeeded=False,
                error=error,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[StockMovementService] Commande {order_id}: journalisation impossible: {e}")
