import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.orders.constants import OrderStatus
from marketplace.orders.models import Order, OrderItem, ReconciliationEntry
from marketplace.stock_movements.models import MovementType, StockMovement

logger = logging.getLogger(__name__)


class StockMovementRepository:
    """Accès au journal des mouvements de stock liés aux commandes."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def record(
        self,
        order_id: int,
        product_id: int,
        quantity_change: int,
        movement_type: MovementType,
        succeeded: bool = True,
        error: Optional[str] = None,
    ) -> None:
        self.db.add(StockMovement(
            order_id=order_id,
            product_id=product_id,
            quantity_change=quantity_change,
            movement_type=movement_type.value,
            succeeded=succeeded,
            error=error[:255] if error else None,
        ))
        await self.db.flush()

    async def outstanding_by_product(self, order_id: int) -> Dict[int, int]:
        """Quantités sorties du stock et pas encore remises, par produit."""
        stmt = (
            select(StockMovement.product_id, func.sum(StockMovement.quantity_change))
            .where(StockMovement.order_id == order_id, StockMovement.succeeded.is_(True))
            .group_by(StockMovement.product_id)
        )
        result = await self.db.execute(stmt)
        return {product_id: -int(net) for product_id, net in result.all() if net and net < 0}

    async def find_unbalanced(self, limit: int, offset: int) -> Tuple[List[ReconciliationEntry], int]:
        """Commandes dont le journal de stock ne correspond pas au statut.

        - commande annulée: tout ce qui a été sorti doit avoir été remis;
        - sinon: chaque unité commandée doit avoir été sortie du stock.
        """
        ordered_sq = (
            select(OrderItem.order_id.label("order_id"), func.sum(OrderItem.quantity).label("ordered"))
            .group_by(OrderItem.order_id)
            .subquery()
        )
        succeeded_reservation = and_(
            StockMovement.succeeded.is_(True),
            StockMovement.movement_type == MovementType.ORDER_RESERVATION.value,
        )
        succeeded_restoration = and_(
            StockMovement.succeeded.is_(True),
            StockMovement.movement_type == MovementType.ORDER_RESTORATION.value,
        )
        ledger_sq = (
            select(
                StockMovement.order_id.label("order_id"),
                func.sum(case((succeeded_reservation, -StockMovement.quantity_change), else_=0)).label("decremented"),
                func.sum(case((succeeded_restoration, StockMovement.quantity_change), else_=0)).label("restored"),
                func.sum(case((StockMovement.succeeded.is_(False), 1), else_=0)).label("failed_steps"),
            )
            .group_by(StockMovement.order_id)
            .subquery()
        )

        decremented = func.coalesce(ledger_sq.c.decremented, 0)
        restored = func.coalesce(ledger_sq.c.restored, 0)
        failed_steps = func.coalesce(ledger_sq.c.failed_steps, 0)
        unbalanced = or_(
            and_(Order.status == OrderStatus.CANCELLED.value, decremented != restored),
            and_(Order.status != OrderStatus.CANCELLED.value, decremented != ordered_sq.c.ordered),
        )

        base = (
            select(Order.id, Order.status, ordered_sq.c.ordered, decremented, restored, failed_steps)
            .join(ordered_sq, ordered_sq.c.order_id == Order.id)
            .outerjoin(ledger_sq, ledger_sq.c.order_id == Order.id)
            .where(unbalanced)
        )
        total = await self.db.scalar(select(func.count()).select_from(base.subquery()))
        result = await self.db.execute(base.order_by(Order.id).offset(offset).limit(limit))
        entries = [
            ReconciliationEntry(
                order_id=order_id,
                status=status,
                ordered_quantity=int(ordered),
                decremented=int(dec),
                restored=int(res),
                failed_steps=int(failed),
            )
            for order_id, status, ordered, dec, res, failed in result.all()
        ]
        return entries, total or 0
