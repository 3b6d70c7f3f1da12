"""MartianPay Webhook Module.

Verifies signed webhook requests and routes the decoded events to typed
handlers.

Pipeline:
- Parse the ``Martian-Pay-Signature`` header (``t=...,v1=...``)
- Recompute HMAC-SHA256 over ``"<t>." + body`` and compare in constant time
- Reject timestamps older than the tolerance window
- Decode the event, keeping the raw bytes of ``data.object``
- Dispatch to the handler with the longest matching type prefix

Usage:
    from martianpay.webhooks import WebhookVerifier, create_dispatcher

    verifier = WebhookVerifier(secret="whsec_...")
    dispatcher = create_dispatcher()

    event = verifier.construct_event(body, headers["Martian-Pay-Signature"])
    dispatcher.dispatch(event)
"""

from martianpay.webhooks.dispatcher import (
    DOMAIN_PROJECTIONS,
    DispatchResult,
    EventDispatcher,
    Handler,
    Route,
    create_dispatcher,
    projector,
)
from martianpay.errors import (
    DecodeError,
    HandlerError,
    InvalidHeaderError,
    NotSignedError,
    NoValidSignatureError,
    TooOldError,
    VerificationStatus,
    WebhookError,
)
from martianpay.webhooks.signature import (
    SIGNATURE_HEADER,
    SignedHeader,
    compute_signature,
    format_signature_header,
    parse_signature_header,
    sign_event,
    sign_payload,
)
from martianpay.webhooks.verifier import (
    DEFAULT_TOLERANCE,
    VerificationResult,
    WebhookVerifier,
    construct_event,
    validate_payload,
)

__all__ = [
    # Verification
    "WebhookVerifier",
    "VerificationResult",
    "VerificationStatus",
    "DEFAULT_TOLERANCE",
    "validate_payload",
    "construct_event",
    # Signature codec
    "SIGNATURE_HEADER",
    "SignedHeader",
    "compute_signature",
    "format_signature_header",
    "parse_signature_header",
    "sign_payload",
    "sign_event",
    # Dispatch
    "EventDispatcher",
    "DispatchResult",
    "Route",
    "Handler",
    "DOMAIN_PROJECTIONS",
    "create_dispatcher",
    "projector",
    # Errors
    "WebhookError",
    "NotSignedError",
    "InvalidHeaderError",
    "NoValidSignatureError",
    "TooOldError",
    "DecodeError",
    "HandlerError",
]
