# app/services/paystack_client.py
import requests
from requests import RequestException

from app.domain.errors import PaymentGatewayError
from app.utils.retry import http_retry
from app.utils.settings import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY, GATEWAY_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class PaystackClient:
    """
    Klient bramki platnosci (API zgodne z Paystack).
    GET ponawiamy na kazdym bledzie sieci, POST tylko gdy request nie doszedl (ConnectionError).
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: int = GATEWAY_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or PAYSTACK_BASE_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else PAYSTACK_SECRET_KEY
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @http_retry()
    def _get(self, endpoint: str, params: dict | None = None) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        logger.info(f"PaystackClient GET {url}")
        return self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)

    @http_retry(exceptions=(requests.ConnectionError,))
    def _post(self, endpoint: str, payload: dict) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        logger.info(f"PaystackClient POST {url}")
        return self.session.post(url, json=payload, headers=self._headers(), timeout=self.timeout)

    def _request(self, method: str, endpoint: str, payload: dict | None = None) -> dict:
        try:
            if method == "GET":
                resp = self._get(endpoint, payload)
            else:
                resp = self._post(endpoint, payload or {})
        except RequestException as e:
            logger.error(f"Paystack API exception on {endpoint}: {e}")
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.ok or not body or not body.get("status"):
            message = (body or {}).get("message") or "Invalid response from payment gateway"
            logger.error(f"Paystack API error on {endpoint}: status={resp.status_code} message={message}")
            raise PaymentGatewayError(message)

        return body.get("data") or {}

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        currency: str,
        metadata: dict | None = None,
    ) -> dict:
        # amount w najmniejszej jednostce waluty
        return self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": amount,
                "reference": reference,
                "callback_url": callback_url,
                "currency": currency,
                "metadata": metadata or {},
            },
        )

    def verify_transaction(self, reference: str) -> dict:
        return self._request("GET", f"/transaction/verify/{reference}")

    def create_refund(self, transaction: str, amount: int) -> dict:
        return self._request("POST", "/refund", {"transaction": transaction, "amount": amount})
