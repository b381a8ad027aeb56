from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from marketplace.coupons.models import CouponRead


class AbstractCouponRepository(ABC):
    """Interface abstraite pour le registre des coupons."""

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[CouponRead]:
        """Récupère un coupon par son code normalisé (majuscules)."""
        raise NotImplementedError

    @abstractmethod
    async def increment_usage(self, code: str) -> bool:
        """Incrémente atomiquement le compteur si la limite le permet."""
        raise NotImplementedError

    @abstractmethod
    async def list_active(self, moment: datetime, limit: int, offset: int) -> Tuple[List[CouponRead], int]:
        raise NotImplementedError
