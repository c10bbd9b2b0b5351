"""HTTP client for the hosted-checkout payment provider.

Speaks the provider's form-encoded REST API: create, retrieve and expire
checkout sessions. Transport errors and 5xx responses are retried with
exponential backoff; session creation carries an Idempotency-Key so a retry
never opens a second session.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from learnhub.config import settings
from learnhub.services.exceptions import (
    NotFound,
    PaymentProviderError,
    PaymentProviderUnavailable,
)

logger = logging.getLogger(__name__)


class _ServerError(Exception):
    """5xx from the provider; retried like a transport error."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Provider returned {status_code}")
        self.status_code = status_code
        self.body = body


# Failures that should trigger retry
RETRYABLE_EXCEPTIONS = (httpx.TransportError, _ServerError)


def encode_form(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Flatten nested dicts/lists into bracketed form keys.

    ``{"line_items": [{"quantity": 1}]}`` -> ``[("line_items[0][quantity]", "1")]``
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, _form_value(item)))
        else:
            pairs.append((name, _form_value(value)))
    return pairs


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return f"HTTP {response.status_code}"


class PaymentProviderClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 0.5,
        retry_max_delay: float = 8.0,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize PaymentProviderClient.

        Args:
            api_url: Provider API base URL (defaults to PAYMENT_API_URL)
            secret_key: API secret key (defaults to PAYMENT_SECRET_KEY)
            transport: httpx transport override, used by tests
            max_retries: Attempts for retryable failures (defaults to PAYMENT_MAX_RETRIES)
            retry_delay: Base delay for exponential backoff, in seconds
            retry_max_delay: Maximum delay between attempts
            timeout: Request timeout in seconds (defaults to PAYMENT_HTTP_TIMEOUT)
        """
        self._api_url = (api_url or settings.PAYMENT_API_URL).rstrip("/")
        self._secret_key = secret_key if secret_key is not None else settings.PAYMENT_SECRET_KEY
        self.max_retries = max(1, max_retries or settings.PAYMENT_MAX_RETRIES)
        self.retry_delay = retry_delay
        self.retry_max_delay = retry_max_delay
        self._client = httpx.Client(
            base_url=self._api_url,
            timeout=timeout or settings.PAYMENT_HTTP_TIMEOUT,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _headers(self, idempotency_key: Optional[str]) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        attempt_count = 0

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_max_delay,
            ),
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            reraise=True,
        )
        def send() -> httpx.Response:
            nonlocal attempt_count
            attempt_count += 1
            if attempt_count > 1:
                logger.info(
                    "Retrying %s %s (attempt %d/%d)",
                    method,
                    path,
                    attempt_count,
                    self.max_retries,
                )
            response = self._client.request(
                method,
                path,
                data=dict(encode_form(data)) if data else None,
                headers=self._headers(idempotency_key),
            )
            if response.status_code >= 500:
                raise _ServerError(response.status_code, response.text)
            return response

        try:
            response = send()
        except RETRYABLE_EXCEPTIONS as e:
            logger.error("Payment provider unavailable: %s %s: %s", method, path, e)
            raise PaymentProviderUnavailable() from e

        if response.status_code == 404:
            raise NotFound("Checkout session not found")
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "Payment provider rejected %s %s: %s %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise PaymentProviderError(message)
        return response.json()

    def create_checkout_session(
        self, params: Dict[str, Any], idempotency_key: str
    ) -> Dict[str, Any]:
        return self._request(
            "POST", "/checkout/sessions", data=params, idempotency_key=idempotency_key
        )

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/checkout/sessions/{session_id}")

    def expire_session(self, session_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/checkout/sessions/{session_id}/expire")


@lru_cache
def get_payment_provider() -> PaymentProviderClient:
    """Process-wide provider client (FastAPI dependency)."""
    return PaymentProviderClient()
