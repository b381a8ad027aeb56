import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, distinct, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.utils import quantize_money, utcnow
from marketplace.orders.constants import DeliveryStatus, OrderStatus
from marketplace.orders.interfaces.repositories import AbstractOrderRepository
from marketplace.orders.models import Order, OrderItem, VendorOrderStats

logger = logging.getLogger(__name__)


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SQLAlchemyOrderRepository(AbstractOrderRepository):
    """Implémentation SQLAlchemy du repository des commandes."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _select_orders(self):
        # populate_existing: les transitions sont des UPDATE directs, l'identity map peut être périmée
        return (
            select(Order)
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )

    async def _paginate(self, conditions: list, limit: int, offset: int) -> Tuple[List[Order], int]:
        total = await self.db.scalar(select(func.count()).select_from(Order).where(*conditions))
        stmt = (
            self._select_orders()
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total or 0

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        logger.debug(f"[OrderRepository] Récupération commande ID: {order_id}")
        result = await self.db.execute(self._select_orders().where(Order.id == order_id))
        return result.scalars().first()

    async def get_by_idempotency_key(self, buyer_id: int, idempotency_key: str) -> Optional[Order]:
        stmt = self._select_orders().where(Order.buyer_id == buyer_id, Order.idempotency_key == idempotency_key)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def add(self, order: Order) -> Order:
        self.db.add(order)
        await self.db.flush()
        logger.debug(f"[OrderRepository] Commande {order.id} ajoutée ({len(order.items)} lignes).")
        return order

    async def list_for_buyer(self, buyer_id: int, limit: int, offset: int,
                             status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        conditions = [Order.buyer_id == buyer_id]
        if status is not None:
            conditions.append(Order.status == status.value)
        return await self._paginate(conditions, limit, offset)

    async def list_for_vendor(self, vendor_id: int, limit: int, offset: int,
                              status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        conditions = [self._has_vendor_item(vendor_id)]
        if status is not None:
            conditions.append(Order.status == status.value)
        return await self._paginate(conditions, limit, offset)

    async def list_all(self, limit: int, offset: int,
                       status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        conditions = []
        if status is not None:
            conditions.append(Order.status == status.value)
        return await self._paginate(conditions, limit, offset)

    @staticmethod
    def _has_vendor_item(vendor_id: int):
        return exists().where(OrderItem.order_id == Order.id, OrderItem.vendor_id == vendor_id)

    async def vendor_has_item(self, order_id: int, vendor_id: int) -> bool:
        stmt = select(OrderItem.id).where(OrderItem.order_id == order_id, OrderItem.vendor_id == vendor_id).limit(1)
        return (await self.db.scalar(stmt)) is not None

    async def transition(
        self,
        order_id: int,
        expected_statuses: Iterable[OrderStatus],
        values: Dict[str, Any],
        note: Optional[str] = None,
        extra_conditions: Optional[Dict[str, Any]] = None,
        excluded_delivery_statuses: Iterable[DeliveryStatus] = (),
    ) -> bool:
        expected = [status.value for status in expected_statuses]
        stmt = update(Order).where(Order.id == order_id, Order.status.in_(expected))
        excluded = [status.value for status in excluded_delivery_statuses]
        if excluded:
            stmt = stmt.where(Order.delivery_status.not_in(excluded))
        for column, expected_value in (extra_conditions or {}).items():
            stmt = stmt.where(getattr(Order, column) == _column_value(expected_value))

        new_values = {column: _column_value(value) for column, value in values.items()}
        new_values["updated_at"] = utcnow()
        if note:
            new_values["notes"] = case(
                (Order.notes.is_(None), note),
                (Order.notes == "", note),
                else_=Order.notes + "\n" + note,
            )

        result = await self.db.execute(stmt.values(**new_values).execution_options(synchronize_session=False))
        if result.rowcount != 1:
            logger.info(f"[OrderRepository] Transition refusée pour la commande {order_id} (statuts attendus: {expected}).")
            return False
        return True

    async def update_tracking(self, order_id: int, values: Dict[str, Any]) -> bool:
        new_values = {column: _column_value(value) for column, value in values.items()}
        new_values["tracking_updated_at"] = utcnow()
        new_values["updated_at"] = new_values["tracking_updated_at"]
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status != OrderStatus.CANCELLED.value)
            .values(**new_values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def vendor_stats(self, vendor_id: int) -> VendorOrderStats:
        """Compteurs par statut et chiffre d'affaires du vendeur, agrégés en SQL."""
        vendor_orders = select(distinct(OrderItem.order_id)).where(OrderItem.vendor_id == vendor_id)
        counts_stmt = (
            select(Order.status, func.count(Order.id))
            .where(Order.id.in_(vendor_orders))
            .group_by(Order.status)
        )
        counts = {status: count for status, count in (await self.db.execute(counts_stmt)).all()}

        revenue_stmt = (
            select(func.coalesce(func.sum(OrderItem.unit_price * OrderItem.quantity), 0))
            .join(Order, Order.id == OrderItem.order_id)
            .where(OrderItem.vendor_id == vendor_id, Order.status != OrderStatus.CANCELLED.value)
        )
        revenue = await self.db.scalar(revenue_stmt)

        return VendorOrderStats(
            total_orders=sum(counts.values()),
            pending=counts.get(OrderStatus.PENDING.value, 0),
            processing=counts.get(OrderStatus.PROCESSING.value, 0),
            completed=counts.get(OrderStatus.COMPLETED.value, 0),
            cancelled=counts.get(OrderStatus.CANCELLED.value, 0),
            revenue=quantize_money(Decimal(str(revenue or 0))),
        )
