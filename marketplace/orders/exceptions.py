"""Exceptions spécifiques au domaine Order."""
from marketplace.core.exceptions import BusinessRuleViolation, ForbiddenError, NotFoundError


class OrderNotFoundException(NotFoundError):
    """Levée lorsqu'une commande spécifique n'est pas trouvée."""
    def __init__(self, order_id: int):
        super().__init__(f"Commande avec ID {order_id} non trouvée.")
        self.order_id = order_id


class OrderAccessDeniedException(ForbiddenError):
    """L'utilisateur n'est ni l'acheteur, ni un vendeur concerné, ni admin."""
    def __init__(self, order_id: int, action: str = "consulter"):
        super().__init__(f"Vous n'êtes pas autorisé à {action} la commande {order_id}.")
        self.order_id = order_id


class EmptyCartException(BusinessRuleViolation):
    def __init__(self):
        super().__init__("Le panier est vide.")


class ProductGoneException(NotFoundError):
    """Un produit du panier n'existe plus dans le catalogue."""
    def __init__(self, product_id: int):
        super().__init__(f"Le produit {product_id} n'existe plus.")
        self.product_id = product_id


class InsufficientStockException(BusinessRuleViolation):
    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(f"Stock insuffisant pour le produit {product_id}. Demandé: {requested}, Disponible: {available}.")
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidPriceException(BusinessRuleViolation):
    def __init__(self, product_id: int):
        super().__init__(f"Prix invalide pour le produit {product_id}.")
        self.product_id = product_id


class ShippingAddressNotFoundException(NotFoundError):
    def __init__(self, address_id: int):
        super().__init__(f"Adresse de livraison {address_id} introuvable.")
        self.address_id = address_id


class InvalidOrderStateException(BusinessRuleViolation):
    """Opération incompatible avec l'état courant de la commande."""
    pass


class InvalidSignatureException(BusinessRuleViolation):
    def __init__(self):
        super().__init__("Signature de paiement invalide.")
