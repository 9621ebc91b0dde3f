# paystack_service.py
import logging
import httpx

from affectly.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"


class PaystackClient:
    """Thin httpx wrapper over the two Paystack transaction endpoints we use."""

    def __init__(self, secret_key, base_url=DEFAULT_BASE_URL, timeout=10.0, transport=None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Tests pass an httpx.MockTransport here
        self.transport = transport

    def _headers(self):
        if not self.secret_key:
            raise GatewayError("Paystack secret key not configured")
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        headers = self._headers()
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                resp = client.request(method, path, headers=headers, **kwargs)
                logger.debug(f"Paystack {method} {path}: {resp.status_code}")
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise GatewayError(f"Paystack timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise GatewayError(f"Paystack HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GatewayError(f"Paystack request failed: {e}") from e

        if not data.get("status"):
            raise GatewayError(data.get("message") or "Paystack rejected the request")
        return data.get("data") or {}

    def initialize_transaction(self, email, amount_minor_units, currency, callback_url, metadata=None):
        """Create a pending transaction; returns reference and authorization_url."""
        data = self._request("POST", "/transaction/initialize", json={
            "email": email,
            "amount": amount_minor_units,
            "currency": currency,
            "callback_url": callback_url,
            "metadata": metadata or {},
        })
        if not data.get("reference") or not data.get("authorization_url"):
            raise GatewayError("Paystack response missing reference")
        return {
            "reference": data["reference"],
            "authorization_url": data["authorization_url"],
            "access_code": data.get("access_code"),
        }

    def verify_transaction(self, reference):
        """Status and paying customer for one reference."""
        data = self._request("GET", f"/transaction/verify/{reference}")
        return {
            "status": data.get("status"),
            "customer_email": (data.get("customer") or {}).get("email"),
            "amount": data.get("amount"),
        }
