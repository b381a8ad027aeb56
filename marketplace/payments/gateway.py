"""Interface des passerelles de paiement en ligne.

Le moteur de commandes ne dépend que de cette interface; l'implémentation
Razorpay et le faux adaptateur des tests sont interchangeables.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PaymentIntent:
    """Commande de paiement créée côté passerelle."""
    gateway_order_ref: str
    amount_minor: int
    currency: str
    receipt_id: str
    status: str = "created"


class AbstractPaymentGateway(ABC):

    @abstractmethod
    async def create_payment_intent(self, amount: Decimal, currency: str, receipt_id: str) -> PaymentIntent:
        """Crée une intention de paiement distante.

        Raises:
            PaymentGatewayException: passerelle injoignable, en erreur ou hors délai.
        """
        raise NotImplementedError

    @abstractmethod
    def verify_payment_signature(self, gateway_order_ref: str, gateway_payment_ref: str, signature: str) -> bool:
        raise NotImplementedError
