import time

import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from rental_core.config.settings import Settings
from rental_core.core.circuit_breaker import CircuitBreakerConfig
from rental_core.core.exceptions import PaymentGatewayUnavailableException
from rental_core.monitoring.metrics import MetricsCollector


class ExternalClient:
    """Payment collaborator: confirms or denies a captured charge."""

    def __init__(self, settings: Settings):
        self._session = self._build_session()
        self._timeout = settings.http_timeout_sec
        self._external_base = settings.external_base

        self._cb_config = CircuitBreakerConfig(settings)
        self._payment_breaker = self._cb_config.get_payment_breaker()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.3,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET", "POST"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "rental-core/1.0"})
        return session

    def _url(self, path: str) -> str:
        return f"{self._external_base.rstrip('/')}/{path.lstrip('/')}"

    def _post(self, path: str, payload: dict) -> dict:
        response = self._session.post(
            self._url(path), json=payload, timeout=self._timeout
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    def verify_payment(self, payment_id: str, order_id: str, signature: str) -> bool:
        """
        Ask the collaborator whether a captured payment is genuine.

        Returns its explicit verdict. Transport errors, an open breaker or a
        reply without a boolean ``verified`` raise PaymentGatewayUnavailableException.
        """

        @self._payment_breaker
        def _verify_payment():
            data = self._post(
                "/verify-payment",
                {
                    "payment_id": payment_id,
                    "order_id": order_id,
                    "signature": signature,
                },
            )
            verified = data.get("verified")
            if not isinstance(verified, bool):
                raise ValueError(f"malformed verification reply: {data!r}")
            return verified

        started = time.perf_counter()
        try:
            verified = _verify_payment()
        except Exception as e:
            MetricsCollector.record_external_call(
                "verify-payment", "error", time.perf_counter() - started
            )
            logger.warning(
                f"Failed to verify payment {payment_id} for order {order_id}: {e}"
            )
            raise PaymentGatewayUnavailableException(payment_id, str(e)) from e

        MetricsCollector.record_external_call(
            "verify-payment", "ok", time.perf_counter() - started
        )
        logger.debug(f"Payment {payment_id} for order {order_id} verified={verified}")
        return verified

    def get_circuit_breaker_stats(self):
        return self._cb_config.get_breaker_stats()
