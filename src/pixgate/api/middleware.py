"""Middleware: signed URL verification and request logging."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from fastapi import Request

from pixgate.errors import SignatureInvalid
from pixgate.signing import (
    EXPIRES_PARAM,
    SIGNATURE_PARAM,
    parse_expires,
    validate_expiration,
    validate_signed_request,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.responses import Response

    from pixgate.config import Settings

logger = logging.getLogger(__name__)


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


async def verify_signed_url(request: Request) -> None:
    """Check the ``s`` signature and ``expires`` parameters of an image request.

    ``expires`` needs no secret and is always checked when present. The
    signature is only checked when a secret salt is configured
    (PIXGATE_SECRET_SALT); with PIXGATE_REQUIRE_SIGNATURE=true a missing ``s``
    is rejected.
    """
    settings = _get_settings_from_request(request)
    signature = request.query_params.get(SIGNATURE_PARAM)
    raw_expires = request.query_params.get(EXPIRES_PARAM)

    if settings.secret_salt is None:
        if raw_expires is not None:
            validate_expiration(parse_expires(raw_expires))
        return

    if signature is None and settings.require_signature:
        raise SignatureInvalid("signature required")

    validate_signed_request(
        raw_query=request.url.query,
        image_key=request.path_params["image_key"],
        secret_salt=settings.secret_salt.get_secret_value(),
        signature=signature,
        expires=parse_expires(raw_expires) if raw_expires is not None else None,
    )


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Log method, path, status, and duration of every request."""
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response
