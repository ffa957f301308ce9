"""Signed and expiring URL validation.

A signature is the MD5 hex digest of ``"{salt}/{image_key}?{query}"`` where
``query`` is the raw query string with the ``s=<signature>`` pair removed.
"""

from __future__ import annotations

import hashlib
import math
import secrets
import time

from pixgate.errors import Expired, InvalidParams, SignatureInvalid

SIGNATURE_PARAM = "s"
EXPIRES_PARAM = "expires"


def strip_signature(raw_query: str, signature: str) -> str:
    """Remove the signature pair, whether it comes first or later in the query."""
    pair = f"{SIGNATURE_PARAM}={signature}"
    return "&".join(part for part in raw_query.lstrip("?").split("&") if part != pair)


def compute_signature(secret_salt: str, image_key: str, raw_query: str) -> str:
    payload = f"{secret_salt}/{image_key}?{raw_query}"
    return hashlib.md5(payload.encode()).hexdigest()  # noqa: S324


def sign_query(secret_salt: str, image_key: str, raw_query: str) -> str:
    """Append the signature for ``raw_query`` to it."""
    query = raw_query.lstrip("?")
    signature = compute_signature(secret_salt, image_key, query)
    return f"{query}&{SIGNATURE_PARAM}={signature}" if query else f"{SIGNATURE_PARAM}={signature}"


def validate_signature(raw_query: str, image_key: str, secret_salt: str, provided_signature: str) -> None:
    """Raise ``SignatureInvalid`` unless ``provided_signature`` matches exactly."""
    expected = compute_signature(secret_salt, image_key, strip_signature(raw_query, provided_signature))
    if not secrets.compare_digest(expected.encode(), provided_signature.encode()):
        raise SignatureInvalid("signature invalid")


def validate_expiration(expires: float, now: float | None = None) -> None:
    """Raise ``Expired`` once the current epoch time reaches ``expires``."""
    current = time.time() if now is None else now
    if current >= expires:
        raise Expired("image url is expired")


def parse_expires(value: str) -> float:
    try:
        expires = float(value)
    except ValueError:
        raise InvalidParams(f"invalid expires value: {value!r}") from None
    if math.isnan(expires):
        raise InvalidParams(f"invalid expires value: {value!r}")
    return expires


def validate_signed_request(
    raw_query: str,
    image_key: str,
    secret_salt: str,
    signature: str | None,
    expires: float | None,
) -> None:
    """Run whichever of the signature and expiration checks were supplied."""
    if signature is not None:
        validate_signature(raw_query, image_key, secret_salt, signature)
    if expires is not None:
        validate_expiration(expires)
