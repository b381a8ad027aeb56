from abc import ABC, abstractmethod
from typing import List, Optional

from marketplace.users.models import CartItem, NotificationType, UserRead


class AbstractUserRepository(ABC):
    """Interface abstraite pour l'accès aux utilisateurs, paniers et notifications."""

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[UserRead]:
        raise NotImplementedError

    @abstractmethod
    async def get_cart(self, user_id: int) -> List[CartItem]:
        """Retourne les lignes du panier dans leur ordre d'ajout."""
        raise NotImplementedError

    @abstractmethod
    async def clear_cart(self, user_id: int, cart_item_ids: List[int]) -> int:
        """Retire du panier les lignes commandées et retourne le nombre de lignes supprimées."""
        raise NotImplementedError

    @abstractmethod
    async def add_notification(self, user_id: int, message: str, type: NotificationType) -> None:
        raise NotImplementedError
