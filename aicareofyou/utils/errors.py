"""Exceptions shared by the proxy handlers and the data API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ServiceError(Exception):
    """Raised when a request cannot be completed.

    ``details`` is a short, stable description of the operation that failed
    (``"Voice generation failed"``) and is returned next to ``error`` in the
    JSON body.
    """

    message: str
    status_code: int = 400
    details: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - dataclass convenience
        return self.message


class ConfigurationError(ServiceError):
    """A vendor key or backend setting is missing for the current handler."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, 500, details)


class VendorError(ServiceError):
    """An upstream AI vendor rejected the request or returned garbage."""


class StorageError(ServiceError):
    """The persistence backend reported an error."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[str] = None) -> None:
        super().__init__(message, status_code, details)


class NotFoundError(ServiceError):
    def __init__(self, message: str = 'Not found.') -> None:
        super().__init__(message, 404, None)


class InvalidRequestError(ServiceError):
    """The request body itself is malformed; always answered with 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 400, None)
