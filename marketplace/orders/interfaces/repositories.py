from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from marketplace.orders.constants import DeliveryStatus, OrderStatus
from marketplace.orders.models import Order, VendorOrderStats


class AbstractOrderRepository(ABC):
    """Interface abstraite pour le repository des commandes et de leurs lignes.

    Les écritures ne font pas de commit: la transaction appartient au service.
    """

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Récupère une commande avec ses lignes, rechargée depuis la base."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_idempotency_key(self, buyer_id: int, idempotency_key: str) -> Optional[Order]:
        raise NotImplementedError

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Ajoute une commande et ses lignes, et attribue les identifiants."""
        raise NotImplementedError

    @abstractmethod
    async def list_for_buyer(self, buyer_id: int, limit: int, offset: int,
                             status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        raise NotImplementedError

    @abstractmethod
    async def list_for_vendor(self, vendor_id: int, limit: int, offset: int,
                              status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        """Commandes contenant au moins un produit du vendeur."""
        raise NotImplementedError

    @abstractmethod
    async def list_all(self, limit: int, offset: int,
                       status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        raise NotImplementedError

    @abstractmethod
    async def vendor_has_item(self, order_id: int, vendor_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def transition(
        self,
        order_id: int,
        expected_statuses: Iterable[OrderStatus],
        values: Dict[str, Any],
        note: Optional[str] = None,
        extra_conditions: Optional[Dict[str, Any]] = None,
        excluded_delivery_statuses: Iterable[DeliveryStatus] = (),
    ) -> bool:
        """Applique `values` en une seule écriture conditionnelle.

        La mise à jour n'a lieu que si le statut courant fait partie de
        `expected_statuses`, que chaque colonne de `extra_conditions` a la
        valeur attendue et que le suivi n'est pas dans `excluded_delivery_statuses`.
        `note` est ajoutée en fin des notes existantes.
        Retourne False si aucune ligne n'a été modifiée.
        """
        raise NotImplementedError

    @abstractmethod
    async def update_tracking(self, order_id: int, values: Dict[str, Any]) -> bool:
        """Met à jour le suivi sauf si la commande est annulée."""
        raise NotImplementedError

    @abstractmethod
    async def vendor_stats(self, vendor_id: int) -> VendorOrderStats:
        raise NotImplementedError
