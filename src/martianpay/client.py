"""MartianPay API client.

A small synchronous client over httpx for the resources whose events the
webhook receiver dispatches: payment intents, refunds, payouts, payrolls
and customers.

Every response uses a common envelope:

    {"code": 0, "error_code": "success", "msg": "", "data": {...}}

and only ``data`` is returned to the caller, validated into the matching
model.

Usage:
    from martianpay.client import MartianPayClient

    with MartianPayClient(api_key="sk_test_...") as client:
        intent = client.get_payment_intent("pi_123")
        refunds = client.list_refunds(payment_intent="pi_123")
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from martianpay.core.config import DEFAULT_API_URL
from martianpay.errors import APIConnectionError, APIError
from martianpay.models import (
    Customer,
    CustomerList,
    PaymentIntent,
    PaymentIntentList,
    Payout,
    PayoutList,
    PayrollDetail,
    PayrollList,
    Refund,
    RefundCreateResult,
    RefundList,
)

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# error_code values that mean the request succeeded
_OK_ERROR_CODES = ("", "ok", "success")


def _pagination(page: int, page_size: int) -> dict[str, int]:
    return {
        "page": max(page, 0),
        "page_size": min(max(page_size, 1), MAX_PAGE_SIZE),
    }


def _query(page: int, page_size: int, **filters: Any) -> dict[str, Any]:
    params: dict[str, Any] = _pagination(page, page_size)
    for key, value in filters.items():
        if value is None:
            continue
        # Booleans go over the wire the way the API parses them
        params[key] = str(value).lower() if isinstance(value, bool) else value
    return params


class MartianPayClient:
    """Client for the MartianPay HTTP API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Secret API key, sent as the HTTP Basic username.
            base_url: API endpoint.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        if not api_key:
            raise ValueError("API key must not be empty")
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(api_key, ""),
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def __repr__(self) -> str:
        return f"MartianPayClient(base_url={self.base_url!r})"

    def __enter__(self) -> MartianPayClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` member.

        Raises:
            APIConnectionError: If the API could not be reached.
            APIError: If the API answered with an error.
        """
        try:
            response = self._http.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise APIConnectionError(f"Request to {path} timed out") from e
        except httpx.RequestError as e:
            raise APIConnectionError(f"Error sending request to {path}: {e}") from e

        if not response.is_success:
            text = response.text
            message = f"HTTP {response.status_code} {response.reason_phrase}"
            if text:
                message = f"{message}: {text}"
            logger.warning(
                "API request failed",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise APIError(message, status_code=response.status_code)

        try:
            envelope = response.json()
        except ValueError as e:
            raise APIError(
                f"Error decoding response: {e}", status_code=response.status_code
            ) from e
        if not isinstance(envelope, dict):
            raise APIError("Error decoding response: not a JSON object", response.status_code)

        error_code = envelope.get("error_code") or ""
        msg = envelope.get("msg") or ""
        if error_code not in _OK_ERROR_CODES:
            raise APIError(
                f"API error [{error_code}]: {msg}",
                status_code=response.status_code,
                error_code=error_code,
            )
        if envelope.get("code", 0) != 0:
            raise APIError(f"API error: {msg}", status_code=response.status_code)

        return envelope.get("data")

    def _call(
        self,
        model: type[ModelT],
        method: str,
        path: str,
        **kwargs: Any,
    ) -> ModelT:
        data = self._request(method, path, **kwargs)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise APIError(f"Error unmarshaling data: {e}") from e

    # Payment intents

    def create_payment_intent(self, **params: Any) -> PaymentIntent:
        """Create a payment intent.

        Args:
            **params: Request fields such as ``amount``, ``currency``,
                ``customer``, ``description``, ``merchant_order_id`` and
                ``metadata``.
        """
        return self._call(PaymentIntent, "POST", "/v1/payment_intents", json=params)

    def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        return self._call(PaymentIntent, "GET", f"/v1/payment_intents/{payment_intent_id}")

    def update_payment_intent(self, payment_intent_id: str, **params: Any) -> PaymentIntent:
        """Confirm a payment intent with a payment method."""
        return self._call(
            PaymentIntent, "POST", f"/v1/payment_intents/{payment_intent_id}", json=params
        )

    def list_payment_intents(
        self,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        customer: str | None = None,
        customer_email: str | None = None,
        merchant_order_id: str | None = None,
        permanent_deposit: bool | None = None,
        permanent_deposit_asset_id: str | None = None,
    ) -> PaymentIntentList:
        params = _query(
            page,
            page_size,
            customer=customer,
            customer_email=customer_email,
            merchant_order_id=merchant_order_id,
            permanent_deposit=permanent_deposit,
            permanent_deposit_asset_id=permanent_deposit_asset_id,
        )
        return self._call(PaymentIntentList, "GET", "/v1/payment_intents", params=params)

    def cancel_payment_intent(self, payment_intent_id: str, reason: str = "") -> PaymentIntent:
        return self._call(
            PaymentIntent,
            "POST",
            f"/v1/payment_intents/{payment_intent_id}/cancel",
            json={"reason": reason},
        )

    # Refunds

    def create_refund(self, payment_intent: str, **params: Any) -> RefundCreateResult:
        """Refund all or part of a payment intent.

        Args:
            payment_intent: ID of the payment intent to refund.
            **params: ``amount``, ``reason``, ``description``, ``metadata``.
        """
        body = {"payment_intent": payment_intent, **params}
        return self._call(RefundCreateResult, "POST", "/v1/refunds", json=body)

    def get_refund(self, refund_id: str) -> Refund:
        return self._call(Refund, "GET", f"/v1/refunds/{refund_id}")

    def list_refunds(
        self,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        payment_intent: str | None = None,
    ) -> RefundList:
        params = _query(page, page_size, payment_intent=payment_intent)
        return self._call(RefundList, "GET", "/v1/refunds", params=params)

    # Payouts

    def get_payout(self, payout_id: str) -> Payout:
        return self._call(Payout, "GET", f"/v1/payouts/{payout_id}")

    def list_payouts(
        self,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        status: str | None = None,
        customer_id: str | None = None,
    ) -> PayoutList:
        params = _query(page, page_size, status=status, customer_id=customer_id)
        return self._call(PayoutList, "GET", "/v1/payouts", params=params)

    def cancel_payout(self, payout_id: str) -> Payout:
        return self._call(Payout, "POST", f"/v1/payouts/{payout_id}/cancel")

    # Payrolls

    def get_payroll(self, payroll_id: str) -> PayrollDetail:
        """Fetch a payroll batch together with its items."""
        return self._call(PayrollDetail, "GET", f"/v1/payrolls/{payroll_id}")

    def list_payrolls(
        self,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        external_id: str | None = None,
        status: str | None = None,
    ) -> PayrollList:
        params = _query(page, page_size, external_id=external_id, status=status)
        return self._call(PayrollList, "GET", "/v1/payrolls", params=params)

    # Customers

    def create_customer(self, **params: Any) -> Customer:
        """Create a customer from ``name``, ``email``, ``description``, ``metadata``, ``phone``."""
        return self._call(Customer, "POST", "/v1/customers", json=params)

    def get_customer(self, customer_id: str) -> Customer:
        return self._call(Customer, "GET", f"/v1/customers/{customer_id}")

    def update_customer(self, customer_id: str, **params: Any) -> Customer:
        return self._call(Customer, "POST", f"/v1/customers/{customer_id}", json=params)

    def list_customers(
        self,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        email: str | None = None,
    ) -> CustomerList:
        params = _query(page, page_size, email=email)
        return self._call(CustomerList, "GET", "/v1/customers", params=params)

    def delete_customer(self, customer_id: str) -> None:
        self._request("DELETE", f"/v1/customers/{customer_id}")
