import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def generate_payment_signature(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    """
    HMAC-SHA256 signature the gateway attaches to a completed checkout.

    Args:
        gateway_order_id (str): gateway order id
        gateway_payment_id (str): gateway payment id
        secret (str): shared key secret

    Returns:
        str: hex digest of ``"{order_id}|{payment_id}"``

    Example:
        >>> generate_payment_signature("order_1", "pay_1", "secret")  # doctest: +SKIP
        '5f0c...'
    """
    message = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_payment_signature(gateway_order_id: str, gateway_payment_id: str, signature: str, secret: str) -> bool:
    """
    Recompute the signature and compare it in constant time.

    Returns:
        bool: True when the signature matches
    """
    if not secret:
        logger.error("Payment signature check attempted without a gateway secret")
        return False

    expected_signature = generate_payment_signature(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected_signature.encode("utf-8"), signature.encode("utf-8"))
