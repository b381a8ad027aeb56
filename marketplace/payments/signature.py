import hashlib
import hmac


def compute_payment_signature(gateway_order_ref: str, gateway_payment_ref: str, secret: str) -> str:
    """HMAC-SHA256 hexadécimal de `order_ref|payment_ref`, clé = secret de la passerelle."""
    message = f"{gateway_order_ref}|{gateway_payment_ref}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(gateway_order_ref: str, gateway_payment_ref: str, signature: str, secret: str) -> bool:
    if not secret or not signature:
        return False
    expected = compute_payment_signature(gateway_order_ref, gateway_payment_ref, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
