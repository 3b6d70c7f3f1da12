"""MartianPay - API client and signed webhook receiver."""

from martianpay.client import MartianPayClient
from martianpay.errors import APIConnectionError, APIError, WebhookError
from martianpay.events import Event, EventData, EventType, decode_event
from martianpay.webhooks import (
    EventDispatcher,
    WebhookVerifier,
    construct_event,
    create_dispatcher,
    sign_payload,
    validate_payload,
)

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "MartianPayClient",
    "WebhookVerifier",
    "EventDispatcher",
    "create_dispatcher",
    "validate_payload",
    "construct_event",
    "sign_payload",
    "Event",
    "EventData",
    "EventType",
    "decode_event",
    "WebhookError",
    "APIError",
    "APIConnectionError",
]
