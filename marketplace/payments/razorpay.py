import logging
from decimal import Decimal

import httpx

from marketplace.core.utils import quantize_money
from marketplace.payments.exceptions import PaymentGatewayException
from marketplace.payments.gateway import AbstractPaymentGateway, PaymentIntent
from marketplace.payments.signature import verify_payment_signature

logger = logging.getLogger(__name__)


class RazorpayGateway(AbstractPaymentGateway):
    """Passerelle Razorpay via son API REST (`POST /orders`)."""

    def __init__(self, key_id: str, key_secret: str, api_url: str, timeout: float = 10.0):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def create_payment_intent(self, amount: Decimal, currency: str, receipt_id: str) -> PaymentIntent:
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayException("identifiants Razorpay non configurés.")

        # Razorpay attend le montant en plus petite unité monétaire (paise)
        amount_minor = int(quantize_money(amount) * 100)
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt_id}
        logger.info(f"[RazorpayGateway] Création commande de paiement {receipt_id} ({amount_minor} {currency})")

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.post(
                    f"{self.api_url}/orders",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                )
        except httpx.TimeoutException as e:
            logger.error(f"[RazorpayGateway] Délai dépassé pour {receipt_id}: {e}")
            raise PaymentGatewayException("délai de réponse dépassé.", original_exception=e)
        except httpx.HTTPError as e:
            logger.error(f"[RazorpayGateway] Erreur réseau pour {receipt_id}: {e}")
            raise PaymentGatewayException("passerelle injoignable.", original_exception=e)

        if response.status_code >= 400:
            logger.error(f"[RazorpayGateway] Réponse {response.status_code} pour {receipt_id}: {response.text}")
            raise PaymentGatewayException(f"réponse HTTP {response.status_code}.")

        data = response.json()
        gateway_order_ref = data.get("id")
        if not gateway_order_ref:
            raise PaymentGatewayException("réponse sans identifiant de commande.")

        return PaymentIntent(
            gateway_order_ref=gateway_order_ref,
            amount_minor=data.get("amount", amount_minor),
            currency=data.get("currency", currency),
            receipt_id=data.get("receipt", receipt_id),
            status=data.get("status", "created"),
        )

    def verify_payment_signature(self, gateway_order_ref: str, gateway_payment_ref: str, signature: str) -> bool:
        return verify_payment_signature(gateway_order_ref, gateway_payment_ref, signature, self.key_secret)
