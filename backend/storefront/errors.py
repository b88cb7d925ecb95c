# Overview: Domain error taxonomy raised by services and mapped to HTTP responses by routes.

from __future__ import annotations


class StoreError(Exception):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(StoreError):
    """400-level input problem."""


class NotFoundError(StoreError):
    """Missing shop, item, order or user."""
    status_code = 404


class InvalidQuantityError(StoreError):
    """Quantity must be a positive integer."""


class InsufficientStockError(StoreError):
    """Requested quantity exceeds what is available."""
    status_code = 409


class NoItemsSelectedError(StoreError):
    """Empty cart or a POS sale with no valid lines."""


class UnauthorizedError(StoreError):
    """No resolvable current-user context where one is required."""
    status_code = 401


class ConflictError(StoreError):
    """409-level business rule conflict (e.g., duplicate email)."""
    status_code = 409


def require_positive_quantity(quantity) -> int:
    """Coerce and validate a unit quantity; rejects bools, floats and <= 0."""
    if isinstance(quantity, bool):
        raise InvalidQuantityError("Quantity must be a whole number")
    if isinstance(quantity, str):
        stripped = quantity.strip()
        if not stripped.lstrip("-").isdigit():
            raise InvalidQuantityError("Quantity must be a whole number")
        quantity = int(stripped)
    if not isinstance(quantity, int):
        raise InvalidQuantityError("Quantity must be a whole number")
    if quantity <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero.")
    return quantity
