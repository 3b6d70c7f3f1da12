"""MartianPay webhook signature codec.

Produces and parses the ``Martian-Pay-Signature`` header and computes the
HMAC-SHA256 digests it carries.

Header format:
    t=<unix_seconds>,v1=<hex digest>[,v1=<hex digest>...]

The digest is computed over ``"<t>." + payload`` where payload is the raw
request body. Several ``v1`` entries may be present while the signing secret
is being rolled; any one of them matching is enough.

Usage:
    from martianpay.webhooks.signature import parse_signature_header, sign_payload

    header = sign_payload(body, secret="whsec_...", timestamp=1700000000)
    parsed = parse_signature_header(header)
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from martianpay.errors import (
    InvalidHeaderError,
    NoValidSignatureError,
    NotSignedError,
)

SIGNATURE_HEADER = "Martian-Pay-Signature"
SIGNING_VERSION = "v1"
TIMESTAMP_KEY = "t"

_INT64_MAX = 2**63 - 1
_DIGITS = re.compile(r"[0-9]{1,19}")


@dataclass(frozen=True)
class SignedHeader:
    """Parsed contents of a signature header."""

    timestamp: int
    """Unix timestamp the publisher signed with."""

    signatures: tuple[bytes, ...]
    """Decoded ``v1`` digests, in header order."""


def _secret_bytes(secret: str | bytes) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


def signing_input(timestamp: int, payload: bytes) -> bytes:
    """Return the exact bytes fed to HMAC for ``timestamp`` and ``payload``."""
    return f"{timestamp}.".encode("ascii") + payload


def compute_signature(timestamp: int, payload: bytes, secret: str | bytes) -> bytes:
    """Compute the raw HMAC-SHA256 digest for a payload.

    Args:
        timestamp: Unix timestamp carried in the header's ``t`` field.
        payload: The raw request body bytes.
        secret: Endpoint signing secret, used verbatim as the HMAC key.

    Returns:
        32-byte digest.
    """
    return hmac.new(
        _secret_bytes(secret),
        signing_input(timestamp, payload),
        hashlib.sha256,
    ).digest()


def parse_signature_header(header_value: str | None) -> SignedHeader:
    """Parse a ``Martian-Pay-Signature`` header.

    Args:
        header_value: The raw header value.

    Returns:
        SignedHeader with the timestamp and every decodable ``v1`` digest.

    Raises:
        NotSignedError: If the header is missing or empty.
        InvalidHeaderError: If a pair is malformed or ``t`` is missing,
            repeated or not a non-negative int64.
        NoValidSignatureError: If no ``v1`` entry could be decoded.
    """
    if not header_value:
        raise NotSignedError()

    timestamp: int | None = None
    signatures: list[bytes] = []

    for pair in header_value.split(","):
        parts = pair.split("=")
        if len(parts) != 2:
            raise InvalidHeaderError()
        key, value = parts[0].strip(), parts[1].strip()

        if key == TIMESTAMP_KEY:
            if timestamp is not None:
                raise InvalidHeaderError("webhook signature header has more than one timestamp")
            if not _DIGITS.fullmatch(value) or int(value) > _INT64_MAX:
                raise InvalidHeaderError("webhook signature header has an invalid timestamp")
            timestamp = int(value)
        elif key == SIGNING_VERSION:
            try:
                signatures.append(binascii.unhexlify(value))
            except (binascii.Error, ValueError):
                # Undecodable entries are skipped, not fatal
                continue
        # Unknown keys (v0, future schemes) are ignored

    if timestamp is None:
        raise InvalidHeaderError("webhook signature header has no timestamp")
    if not signatures:
        raise NoValidSignatureError()

    return SignedHeader(timestamp=timestamp, signatures=tuple(signatures))


def format_signature_header(timestamp: int, *signatures: bytes) -> str:
    """Format a header value from a timestamp and one or more digests."""
    if not signatures:
        raise ValueError("at least one signature is required")
    parts = [f"{TIMESTAMP_KEY}={timestamp}"]
    parts.extend(f"{SIGNING_VERSION}={sig.hex()}" for sig in signatures)
    return ",".join(parts)


def sign_payload(
    payload: bytes,
    secret: str | bytes,
    timestamp: int | None = None,
) -> str:
    """Sign a payload and return the complete header value.

    Args:
        payload: The raw body to sign.
        secret: Signing secret.
        timestamp: Unix timestamp to sign with (default: now).

    Returns:
        Header value of the form ``t=<N>,v1=<hex>``.
    """
    if timestamp is None:
        timestamp = int(time.time())
    return format_signature_header(timestamp, compute_signature(timestamp, payload, secret))


def sign_event(event: Mapping[str, Any], secret: str | bytes) -> tuple[bytes, str]:
    """Serialize an event mapping and sign it with its ``created`` timestamp.

    Returns:
        Tuple of (payload bytes, header value).
    """
    payload = json.dumps(event, separators=(",", ":")).encode("utf-8")
    return payload, sign_payload(payload, secret, timestamp=int(event.get("created", 0)))
