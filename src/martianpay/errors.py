"""MartianPay SDK errors.

Every failure in the webhook ingestion pipeline raises a subclass of
``WebhookError``. Each carries a ``VerificationStatus`` for programmatic
handling and the HTTP status the receiver should answer with.

API client failures raise ``APIError``.
"""

from __future__ import annotations

from enum import Enum


class VerificationStatus(Enum):
    """Status of webhook signature verification."""

    VALID = "valid"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_FORMAT = "invalid_format"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED_TIMESTAMP = "expired_timestamp"
    INVALID_PAYLOAD = "invalid_payload"
    HANDLER_FAILED = "handler_failed"


class WebhookError(Exception):
    """Base class for webhook ingestion failures."""

    status: VerificationStatus = VerificationStatus.INVALID_SIGNATURE
    http_status: int = 400
    default_message = "webhook verification failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotSignedError(WebhookError):
    """The signature header is absent or empty."""

    status = VerificationStatus.MISSING_SIGNATURE
    http_status = 401
    default_message = "webhook has no Martian-Pay-Signature header"


class InvalidHeaderError(WebhookError):
    """The signature header is malformed."""

    status = VerificationStatus.INVALID_FORMAT
    http_status = 400
    default_message = "webhook has invalid Martian-Pay-Signature header"


class NoValidSignatureError(WebhookError):
    """None of the offered signatures match the expected digest."""

    status = VerificationStatus.INVALID_SIGNATURE
    http_status = 401
    default_message = "webhook had no valid signature"


class TooOldError(WebhookError):
    """The signed timestamp is older than the tolerance window."""

    status = VerificationStatus.EXPIRED_TIMESTAMP
    http_status = 401
    default_message = "timestamp wasn't within tolerance"


class DecodeError(WebhookError):
    """The payload is not a valid event envelope."""

    status = VerificationStatus.INVALID_PAYLOAD
    http_status = 400
    default_message = "failed to parse webhook body json"


class HandlerError(WebhookError):
    """A downstream handler failed while processing a verified event."""

    status = VerificationStatus.HANDLER_FAILED
    http_status = 500
    default_message = "webhook handler failed"

    def __init__(self, message: str | None = None, prefix: str | None = None) -> None:
        super().__init__(message)
        self.prefix = prefix


class APIError(Exception):
    """The MartianPay API rejected a request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class APIConnectionError(APIError):
    """The MartianPay API could not be reached."""
