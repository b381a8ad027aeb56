"""Exceptions spécifiques au domaine Coupon."""
from decimal import Decimal

from marketplace.core.exceptions import BusinessRuleViolation, NotFoundError


class CouponNotFoundException(NotFoundError):
    """Code inconnu ou coupon désactivé."""
    def __init__(self, code: str):
        super().__init__(f"Coupon '{code}' introuvable ou inactif.")
        self.code = code


class CouponNotYetValidException(BusinessRuleViolation):
    def __init__(self, code: str):
        super().__init__(f"Le coupon '{code}' n'est pas encore valide.")
        self.code = code


class CouponExpiredException(BusinessRuleViolation):
    def __init__(self, code: str):
        super().__init__(f"Le coupon '{code}' a expiré.")
        self.code = code


class CouponUsageLimitReachedException(BusinessRuleViolation):
    def __init__(self, code: str):
        super().__init__(f"Le coupon '{code}' a atteint sa limite d'utilisation.")
        self.code = code


class CouponMinNotMetException(BusinessRuleViolation):
    def __init__(self, code: str, min_order_value: Decimal, order_amount: Decimal):
        super().__init__(
            f"Montant minimum de {min_order_value:.2f} requis pour le coupon '{code}' "
            f"(montant actuel: {order_amount:.2f})."
        )
        self.code = code
        self.min_order_value = min_order_value
        self.order_amount = order_amount
