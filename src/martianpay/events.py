"""Webhook event envelope and decoder.

A MartianPay event wraps the resource that changed in ``data.object``. The
decoder keeps that inner object in two forms: a plain mapping for
schema-agnostic consumers, and the exact bytes it occupied in the request
body so typed consumers can project it without a decode/encode round trip.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from martianpay.errors import DecodeError

EVENT_OBJECT = "event"


class EventType(str, Enum):
    """Event types published by MartianPay."""

    # Payment intents
    PAYMENT_INTENT_CREATED = "payment_intent.created"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_PROCESSING = "payment_intent.processing"
    PAYMENT_INTENT_PARTIALLY_PAID = "payment_intent.partially_paid"
    PAYMENT_INTENT_CANCELED = "payment_intent.canceled"

    # Refunds
    REFUND_CREATED = "refund.created"
    REFUND_SUCCEEDED = "refund.succeeded"
    REFUND_UPDATED = "refund.updated"
    REFUND_FAILED = "refund.failed"

    # Payouts
    PAYOUT_CREATED = "payout.created"
    PAYOUT_SUCCEEDED = "payout.succeeded"
    PAYOUT_UPDATED = "payout.updated"
    PAYOUT_FAILED = "payout.failed"

    # Payroll batches
    PAYROLL_CREATED = "payroll.created"
    PAYROLL_APPROVED = "payroll.approved"
    PAYROLL_REJECTED = "payroll.rejected"
    PAYROLL_CANCELED = "payroll.canceled"
    PAYROLL_EXECUTING = "payroll.executing"
    PAYROLL_COMPLETED = "payroll.completed"
    PAYROLL_FAILED = "payroll.failed"

    # Individual payroll payments
    PAYROLL_ITEM_PROCESSING = "payroll_item.processing"
    PAYROLL_ITEM_SUCCEEDED = "payroll_item.succeeded"
    PAYROLL_ITEM_FAILED = "payroll_item.failed"
    PAYROLL_ITEM_ADDRESS_VERIFICATION_SENT = "payroll_item.address_verification_sent"
    PAYROLL_ITEM_ADDRESS_VERIFIED = "payroll_item.address_verified"

    # Subscriptions
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_DELETED = "subscription.deleted"
    SUBSCRIPTION_PAUSED = "subscription.paused"
    SUBSCRIPTION_RESUMED = "subscription.resumed"
    SUBSCRIPTION_TRIAL_WILL_END = "subscription.trial_will_end"

    # Invoices
    INVOICE_CREATED = "invoice.created"
    INVOICE_FINALIZED = "invoice.finalized"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    INVOICE_PAYMENT_ACTION_REQUIRED = "invoice.payment_action_required"
    INVOICE_UPCOMING = "invoice.upcoming"
    INVOICE_UPDATED = "invoice.updated"
    INVOICE_VOIDED = "invoice.voided"


class EventData(BaseModel):
    """Payload of an event: the changed resource in two representations."""

    model_config = ConfigDict(frozen=True)

    object: dict[str, Any]
    previous_attributes: dict[str, Any] | None = None
    raw: bytes = Field(repr=False)


class Event(BaseModel):
    """A webhook event sent to subscribed endpoints."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    object: str = EVENT_OBJECT
    api_version: str = ""
    created: int = Field(default=0, ge=0)
    type: str = Field(min_length=1)
    livemode: bool = False
    pending_webhooks: int = 0
    data: EventData

    @field_validator("object")
    @classmethod
    def _check_object(cls, value: str) -> str:
        if value != EVENT_OBJECT:
            raise ValueError(f"expected object 'event', got {value!r}")
        return value

    @property
    def event_type(self) -> EventType | None:
        """The known ``EventType`` for this event, or None for new types."""
        try:
            return EventType(self.type)
        except ValueError:
            return None

    @property
    def is_update(self) -> bool:
        return self.type.endswith(".updated")


_decoder = json.JSONDecoder()
_WHITESPACE = re.compile(r"[ \t\n\r]*")


def _skip_ws(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def _scan_members(text: str, idx: int) -> tuple[dict[str, tuple[Any, int, int]], int]:
    """Walk a JSON object, returning each member's value and source span.

    Returns:
        Tuple of ({key: (value, start, end)}, index after the closing brace).

    Raises:
        ValueError: If the text at ``idx`` is not a well-formed object.
    """
    idx = _skip_ws(text, idx)
    if text[idx : idx + 1] != "{":
        raise ValueError("expected a JSON object")
    members: dict[str, tuple[Any, int, int]] = {}

    idx = _skip_ws(text, idx + 1)
    if text[idx : idx + 1] == "}":
        return members, idx + 1

    while True:
        if text[idx : idx + 1] != '"':
            raise ValueError(f"expected a member name at offset {idx}")
        key, idx = _decoder.raw_decode(text, idx)
        idx = _skip_ws(text, idx)
        if text[idx : idx + 1] != ":":
            raise ValueError(f"expected ':' at offset {idx}")
        start = _skip_ws(text, idx + 1)
        value, end = _decoder.raw_decode(text, start)
        members[key] = (value, start, end)

        idx = _skip_ws(text, end)
        delimiter = text[idx : idx + 1]
        if delimiter == ",":
            idx = _skip_ws(text, idx + 1)
        elif delimiter == "}":
            return members, idx + 1
        else:
            raise ValueError(f"expected ',' or '}}' at offset {idx}")


def decode_event(payload: bytes) -> Event:
    """Decode a verified webhook body into an ``Event``.

    Args:
        payload: The raw request body.

    Returns:
        Immutable Event whose ``data.raw`` holds the exact bytes of
        ``data.object`` as they appeared in ``payload``.

    Raises:
        DecodeError: If the body is not a valid event envelope.
    """
    try:
        text = payload.decode("utf-8")
        members, end = _scan_members(text, 0)
        if text[_skip_ws(text, end) :]:
            raise ValueError("extra data after the event object")
        if "data" not in members or not isinstance(members["data"][0], dict):
            raise DecodeError("webhook event has no data object")
        data_members, _ = _scan_members(text, members["data"][1])
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        # Nesting deeper than the interpreter's recursion limit is malformed too
        raise DecodeError(f"failed to parse webhook body json: {e}") from e

    envelope = {key: value for key, (value, _, _) in members.items()}

    inner = data_members.get("object")
    if inner is None or not isinstance(inner[0], dict):
        raise DecodeError("webhook event data has no object")
    inner_value, inner_start, inner_end = inner

    previous = data_members.get("previous_attributes", (None, 0, 0))[0]

    try:
        return Event.model_validate(
            {
                **envelope,
                "data": {
                    "object": inner_value,
                    "previous_attributes": previous,
                    "raw": text[inner_start:inner_end].encode("utf-8"),
                },
            }
        )
    except ValidationError as e:
        raise DecodeError(f"invalid webhook event: {e}") from e
