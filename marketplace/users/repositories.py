import logging
from typing import List, Optional

from fastcrud import FastCRUD
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.users.interfaces.repositories import AbstractUserRepository
from marketplace.users.models import CartItem, Notification, NotificationType, User, UserRead

logger = logging.getLogger(__name__)


class SQLAlchemyUserRepository(AbstractUserRepository):
    """Implémentation SQLAlchemy du repository utilisateur.

    Les écritures sont ajoutées à la session sans commit: la transaction
    appartient au service appelant.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_user = FastCRUD(User)

    async def get_by_id(self, user_id: int) -> Optional[UserRead]:
        logger.debug(f"[UserRepository] Récupération utilisateur ID: {user_id}")
        return await self.crud_user.get(
            db=self.db, schema_to_select=UserRead, return_as_model=True, id=user_id
        )

    async def get_cart(self, user_id: int) -> List[CartItem]:
        stmt = select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def clear_cart(self, user_id: int, cart_item_ids: List[int]) -> int:
        # Les lignes ajoutées après l'instantané du panier sont conservées
        stmt = delete(CartItem).where(CartItem.user_id == user_id, CartItem.id.in_(cart_item_ids))
        result = await self.db.execute(stmt)
        logger.debug(f"[UserRepository] Panier de l'utilisateur {user_id} vidé ({result.rowcount} lignes).")
        return result.rowcount

    async def add_notification(self, user_id: int, message: str, type: NotificationType) -> None:
        self.db.add(Notification(user_id=user_id, message=message, type=type))
        await self.db.flush()
