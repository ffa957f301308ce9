"""Error taxonomy for the image gateway.

Every error carries the HTTP status the API layer renders it with.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all errors surfaced by the gateway."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidParams(GatewayError):
    """A query parameter could not be parsed."""

    status_code = 400


class StorageReadError(GatewayError):
    """Reading an object from the store failed (including plain absence)."""


class StreamDecodeError(StorageReadError):
    """The object body could not be streamed after a successful request."""


class StorageWriteError(GatewayError):
    """Writing an object to the store failed."""


class TransformFailed(GatewayError):
    """The image library could not decode, transform, or encode the image."""


class SignatureInvalid(GatewayError):
    """The request signature does not match."""


class Expired(GatewayError):
    """The signed URL is past its expiration time."""


class Overloaded(GatewayError):
    """No transform slot became free within the queue timeout."""

    status_code = 503
