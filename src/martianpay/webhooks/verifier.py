"""MartianPay Webhook Signature Verification.

Verifies the ``Martian-Pay-Signature`` header of incoming webhook requests
with constant-time comparison and a bounded tolerance window.

Security Features:
- HMAC-SHA256 over ``"<timestamp>." + raw body``
- Constant-time comparison to prevent timing attacks
- Timestamp validation to prevent replay attacks
- Multiple ``v1`` signatures accepted during secret rotation

Usage:
    from martianpay.webhooks import WebhookVerifier

    verifier = WebhookVerifier(secret="whsec_...")

    event = verifier.construct_event(
        payload=request_body,
        header=request.headers["Martian-Pay-Signature"],
    )
"""

from __future__ import annotations

import hmac
import time
from collections.abc import Callable
from dataclasses import dataclass

from martianpay.errors import (
    NoValidSignatureError,
    TooOldError,
    VerificationStatus,
    WebhookError,
)
from martianpay.events import Event, decode_event
from martianpay.webhooks.signature import (
    SignedHeader,
    compute_signature,
    parse_signature_header,
)

DEFAULT_TOLERANCE = 300
"""Signatures older than this many seconds are rejected."""


@dataclass
class VerificationResult:
    """Result of webhook signature verification."""

    valid: bool
    """Whether the signature is valid."""

    status: VerificationStatus
    """Detailed verification status."""

    error: str | None = None
    """Error message if verification failed."""

    timestamp: int | None = None
    """Signed timestamp if the header could be parsed."""

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid


def validate_payload(
    payload: bytes,
    header: str | None,
    secret: str | bytes,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> SignedHeader:
    """Verify a webhook payload against its signature header.

    Args:
        payload: The raw request body bytes.
        header: The ``Martian-Pay-Signature`` header value.
        secret: The endpoint signing secret.
        tolerance: Maximum age of the signed timestamp in seconds.
        now: Current Unix time (default: ``time.time()``).

    Returns:
        The parsed header on success.

    Raises:
        NotSignedError, InvalidHeaderError: If the header is absent or malformed.
        TooOldError: If the timestamp is older than ``tolerance``.
        NoValidSignatureError: If no offered signature matches.
    """
    signed = parse_signature_header(header)
    expected = compute_signature(signed.timestamp, payload, secret)

    if now is None:
        now = time.time()
    if now - signed.timestamp > tolerance:
        raise TooOldError()

    # Several signatures are sent while a signing secret is being rolled
    for signature in signed.signatures:
        if hmac.compare_digest(expected, signature):
            return signed

    raise NoValidSignatureError()


def construct_event(
    payload: bytes,
    header: str | None,
    secret: str | bytes,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> Event:
    """Verify a webhook request and decode its event.

    Raises:
        WebhookError: Any verification or decoding failure.
    """
    validate_payload(payload, header, secret, tolerance=tolerance, now=now)
    return decode_event(payload)


class WebhookVerifier:
    """Verifier bound to one endpoint secret.

    Holds no per-request state, so one instance can be shared by every
    worker handling requests for the endpoint.
    """

    def __init__(
        self,
        secret: str | bytes,
        tolerance: float = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the webhook verifier.

        Args:
            secret: The shared secret for HMAC computation.
            tolerance: Maximum age of timestamp in seconds (default 5 min).
            clock: Source of the current Unix time.
        """
        if not secret:
            raise ValueError("webhook secret must not be empty")
        if tolerance <= 0:
            raise ValueError("tolerance must be a positive number of seconds")
        self._secret = secret
        self.tolerance = tolerance
        self._clock = clock

    def __repr__(self) -> str:
        return f"WebhookVerifier(tolerance={self.tolerance})"

    def validate(self, payload: bytes, header: str | None) -> SignedHeader:
        """Verify a payload, raising a ``WebhookError`` on failure."""
        return validate_payload(
            payload,
            header,
            self._secret,
            tolerance=self.tolerance,
            now=self._clock(),
        )

    def verify(self, payload: bytes, header: str | None) -> VerificationResult:
        """Verify a payload without raising.

        Args:
            payload: The raw request body bytes.
            header: The signature header value.

        Returns:
            VerificationResult with status and details.
        """
        try:
            signed = self.validate(payload, header)
        except WebhookError as e:
            return VerificationResult(valid=False, status=e.status, error=e.message)

        return VerificationResult(
            valid=True,
            status=VerificationStatus.VALID,
            timestamp=signed.timestamp,
        )

    def construct_event(self, payload: bytes, header: str | None) -> Event:
        """Verify a payload and decode it into an ``Event``."""
        self.validate(payload, header)
        return decode_event(payload)
