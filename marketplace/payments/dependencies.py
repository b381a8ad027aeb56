from typing import Annotated

from fastapi import Depends

from marketplace.config import settings
from marketplace.payments.gateway import AbstractPaymentGateway
from marketplace.payments.razorpay import RazorpayGateway


def get_payment_gateway() -> AbstractPaymentGateway:
    """Fournit la passerelle de paiement configurée (Razorpay)."""
    return RazorpayGateway(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        api_url=settings.RAZORPAY_API_URL,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )


PaymentGatewayDep = Annotated[AbstractPaymentGateway, Depends(get_payment_gateway)]
