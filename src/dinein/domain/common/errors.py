from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base for every failure the core reports to its callers.

    ``details`` carries the entity id and current state so an adapter can
    render a useful message without parsing the text.
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = {
            key: value for key, value in details.items() if value is not None
        }


class NotFoundError(DomainError):
    pass


class InvalidStateError(DomainError):
    pass


class EmptyCartError(InvalidStateError):
    pass


class ConflictError(DomainError):
    pass


class CapacityExceededError(DomainError):
    pass


class ValidationError(DomainError, ValueError):
    pass


class OrderingError(DomainError):
    pass
