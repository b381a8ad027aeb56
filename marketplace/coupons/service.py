import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple

from marketplace.core.utils import quantize_money, utcnow
from marketplace.coupons.exceptions import (
    CouponExpiredException,
    CouponMinNotMetException,
    CouponNotFoundException,
    CouponNotYetValidException,
    CouponUsageLimitReachedException,
)
from marketplace.coupons.interfaces.repositories import AbstractCouponRepository
from marketplace.coupons.models import CouponRead, DiscountType

logger = logging.getLogger(__name__)


def calculate_discount(coupon: CouponRead, order_amount: Decimal) -> Decimal:
    """Calcule la remise d'un coupon pour un montant donné.

    Retourne 0 sous le minimum de commande. Une remise en pourcentage est
    plafonnée par `max_discount_amount`; toute remise est bornée au montant
    pour que le total reste positif.
    """
    if order_amount < coupon.min_order_value:
        return Decimal("0.00")

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = order_amount * coupon.discount_value / Decimal(100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, coupon.max_discount_amount)
    else:
        discount = coupon.discount_value

    return quantize_money(min(discount, order_amount))


@dataclass(frozen=True)
class CouponQuote:
    coupon: CouponRead
    discount: Decimal


class CouponService:
    """Service applicatif du registre des coupons."""

    def __init__(self, coupon_repository: AbstractCouponRepository):
        self.coupon_repository = coupon_repository

    async def validate(self, code: str, order_amount: Decimal) -> CouponQuote:
        """Vérifie qu'un coupon est applicable au montant et calcule sa remise."""
        normalized = code.strip().upper()
        coupon = await self.coupon_repository.get_by_code(normalized)
        if coupon is None or not coupon.is_active:
            logger.info(f"[CouponService] Coupon '{normalized}' introuvable ou inactif.")
            raise CouponNotFoundException(normalized)

        now = utcnow()
        if now < coupon.valid_from:
            raise CouponNotYetValidException(normalized)
        if now > coupon.valid_until:
            raise CouponExpiredException(normalized)
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise CouponUsageLimitReachedException(normalized)
        if order_amount < coupon.min_order_value:
            raise CouponMinNotMetException(normalized, coupon.min_order_value, order_amount)

        discount = calculate_discount(coupon, order_amount)
        logger.debug(f"[CouponService] Coupon '{normalized}' valide: remise {discount} sur {order_amount}.")
        return CouponQuote(coupon=coupon, discount=discount)

    async def increment_usage(self, code: str) -> None:
        """Consomme une utilisation. N'effectue pas de commit."""
        if not await self.coupon_repository.increment_usage(code):
            raise CouponUsageLimitReachedException(code.strip().upper())

    async def list_active(self, limit: int, offset: int) -> Tuple[List[CouponRead], int]:
        return await self.coupon_repository.list_active(utcnow(), limit=limit, offset=offset)
