"""
Payment gateway client

The order core only asks the gateway for one thing: a payable order for an
amount in minor currency units. Signatures are computed locally.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import requests

from storefront.core.config import Settings
from storefront.core.exceptions import UpstreamFailureException

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    """Gateway interface"""

    @abstractmethod
    def create_payable_order(self, amount_minor_units: int, currency: str, receipt: str) -> Dict[str, Any]:
        """
        Create a payable order at the gateway.

        Args:
            amount_minor_units: amount in paisa/cents
            currency: ISO currency code
            receipt: our order id

        Returns:
            Dict[str, Any]: gateway order payload, carrying at least ``id``

        Raises:
            UpstreamFailureException: gateway unreachable or refused the request
        """
        raise NotImplementedError


class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API over HTTPS"""

    def __init__(self, key_id: str, key_secret: str, api_url: str, timeout: float = 10.0):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            api_url=settings.RAZORPAY_API_URL,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    def create_payable_order(self, amount_minor_units: int, currency: str, receipt: str) -> Dict[str, Any]:
        if not self.key_id or not self.key_secret:
            raise UpstreamFailureException("Payment gateway is not configured", code="GATEWAY_NOT_CONFIGURED")

        payload = {"amount": amount_minor_units, "currency": currency, "receipt": receipt}
        try:
            response = requests.post(
                f"{self.api_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Gateway request failed: receipt={receipt} error={e}")
            raise UpstreamFailureException("Payment gateway unreachable", code="GATEWAY_UNREACHABLE") from e

        if not response.ok:
            logger.error(f"Gateway rejected order: receipt={receipt} status={response.status_code}")
            raise UpstreamFailureException(
                "Payment gateway rejected the request",
                code="GATEWAY_ERROR",
                data={"gatewayStatus": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFailureException("Payment gateway returned an invalid response", code="GATEWAY_ERROR") from e

        if not isinstance(body, dict) or not body.get("id"):
            raise UpstreamFailureException("Payment gateway returned no order id", code="GATEWAY_ERROR")

        logger.info(f"Gateway order created: receipt={receipt} gateway_order={body['id']}")
        return body
