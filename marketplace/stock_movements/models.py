from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from marketplace.core.utils import utcnow


class MovementType(str, Enum):
    ORDER_RESERVATION = "order_reservation"
    ORDER_RESTORATION = "order_restoration"


class StockMovementBase(SQLModel):
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: int = Field(index=True)
    # Négatif pour une sortie de stock, positif pour une remise en stock
    quantity_change: int
    movement_type: str = Field(max_length=50)
    succeeded: bool = Field(default=True)
    error: Optional[str] = Field(default=None, max_length=255)


class StockMovement(StockMovementBase, table=True):
    """Journal des étapes de stock exécutées pour une commande."""
    __tablename__ = "stock_movements"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

