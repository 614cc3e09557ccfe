"""
Error taxonomy for the fulfillment engine.

Every error carries a stable ``code`` which the API layer maps to a
client-facing status (see ``fulfillment.api.middleware.ErrorHandler``).
"""
from __future__ import annotations

from decimal import Decimal
from uuid import UUID


class DomainError(Exception):
    """Base class for all fulfillment errors."""
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(DomainError):
    """Referenced entity is absent."""
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class Conflict(DomainError):
    """Duplicate unique key or an already existing invoice for an order."""
    code = "CONFLICT"


class InvalidState(DomainError):
    """Operation not permitted in the current lifecycle status."""
    code = "INVALID_STATE"


class InsufficientStock(DomainError):
    """Requested quantity exceeds available stock."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: UUID, requested: int, available: int, product_name: str = ""):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = product_name or str(product_id)
        super().__init__(
            f"Insufficient stock for product {label}. "
            f"Available: {available}, requested: {requested}"
        )


class ValidationError(DomainError, ValueError):
    """Malformed input that slipped past the transport validation."""
    code = "VALIDATION_ERROR"


class NumberGenerationExhausted(DomainError):
    """No free business number was found within the retry budget."""
    code = "EXHAUSTED"

    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(f"Could not generate a unique {prefix} number after {attempts} attempts")


def ensure_positive(value: Decimal | int, field: str) -> None:
    if value <= 0:
        raise ValidationError(f"{field} must be positive")


def ensure_non_negative(value: Decimal | int, field: str) -> None:
    if value < 0:
        raise ValidationError(f"{field} must be non-negative")
