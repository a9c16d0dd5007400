# storefront/errors.py
from typing import Any, Optional


class StorefrontError(Exception):
    """Base error; carries the HTTP status the API layer answers with."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidArgument(StorefrontError):
    status_code = 400


class Unauthorized(StorefrontError):
    status_code = 401


class Forbidden(StorefrontError):
    status_code = 403


class NotFound(StorefrontError):
    status_code = 404


class Conflict(StorefrontError):
    status_code = 409


class InsufficientStock(StorefrontError):
    status_code = 400

    def __init__(self, product_id: str, name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {name}. Available: {available}, requested: {requested}",
            details={"productId": product_id, "available": available, "requested": requested},
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class EmptyCart(StorefrontError):
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class Internal(StorefrontError):
    status_code = 500
