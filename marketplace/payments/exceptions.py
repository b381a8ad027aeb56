"""Exceptions spécifiques au domaine Paiement."""
from typing import Optional

from marketplace.core.exceptions import UpstreamFailure


class PaymentGatewayException(UpstreamFailure):
    """Levée lorsque la passerelle de paiement est injoignable ou répond en erreur."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        full_message = f"Erreur de la passerelle de paiement: {message}"
        super().__init__(full_message)
        self.original_exception = original_exception
