"""HMAC request signing and verification.

Both directions use the same scheme::

    signature = hex(HMAC_SHA256(secret, body_bytes + timestamp))

where ``timestamp`` is the epoch-seconds string sent in ``X-Timestamp``.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Mapping, Optional, Union

from sheet_importer.errors import AuthHeaderError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"
TIMESTAMP_HEADER = "X-Timestamp"
DEFAULT_TOLERANCE_SECONDS = 300

SENSITIVE_FIELDS = {"password", "token", "key", "secret", "private_key"}

Body = Union[bytes, str]


def _as_bytes(body: Body) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def serialize_payload(payload: Mapping[str, Any]) -> bytes:
    """Compact JSON encoding used for every signed outbound body."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(body: Body, timestamp: str, secret: str) -> str:
    mac = hmac.new(secret.encode("utf-8"), _as_bytes(body) + timestamp.encode("utf-8"), hashlib.sha256)
    return mac.hexdigest()


def sign(body: Body, secret: str, now: Optional[float] = None) -> dict[str, str]:
    """Return the signature headers for ``body``."""
    timestamp = str(int(now if now is not None else time.time()))
    return {
        SIGNATURE_HEADER: compute_signature(body, timestamp, secret),
        TIMESTAMP_HEADER: timestamp,
    }


def verify_signature(
    body: Body,
    signature: Optional[str],
    timestamp: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """Check a signed request. Raises AuthHeaderError when it does not verify."""
    if not secret:
        raise AuthHeaderError("Signing secret is not configured")
    if not signature or not timestamp:
        logger.warning(
            "[AUTH] Missing signature headers (signature=%s, timestamp=%s)",
            bool(signature),
            bool(timestamp),
        )
        raise AuthHeaderError("Missing authentication headers")

    try:
        request_time = int(timestamp)
    except ValueError:
        raise AuthHeaderError("Invalid request timestamp")

    current_time = int(now if now is not None else time.time())
    skew = abs(current_time - request_time)
    if skew > tolerance:
        logger.warning("[AUTH] Request timestamp outside window (skew=%ds)", skew)
        raise AuthHeaderError("Request timestamp too old")

    expected = compute_signature(body, timestamp, secret)
    # compare_digest only accepts ASCII str; header values may carry any latin-1 byte
    if not hmac.compare_digest(signature.strip().lower().encode("utf-8"), expected.encode("ascii")):
        logger.warning("[AUTH] Signature verification failed")
        raise AuthHeaderError("Invalid signature")


def sanitize_for_logging(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with sensitive top-level values redacted."""
    return {k: ("[REDACTED]" if k.lower() in SENSITIVE_FIELDS and v else v) for k, v in data.items()}
