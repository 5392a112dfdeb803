# Overview: Domain error hierarchy shared by services, routes and CLI.

"""
SalesDesk error kinds.

Services raise these; the API layer turns them into typed JSON results
({"error", "code", "details"}) with the HTTP status carried by the class.
"""


class SalesDeskError(Exception):
    """Base class for every domain error."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(SalesDeskError):
    """Malformed input: empty item list, non-positive quantity, missing field."""

    code = "validation_error"
    status_code = 400


class NotFoundError(SalesDeskError):
    """Referenced sale, installment or product does not exist."""

    code = "not_found"
    status_code = 404


class InsufficientStockError(SalesDeskError):
    """Guarded stock decrement would drive on-hand below zero."""

    code = "insufficient_stock"
    status_code = 409

    def __init__(self, stock_code: str, requested: int, on_hand: int):
        super().__init__(
            f"Insufficient stock for {stock_code}: requested {requested}, on hand {on_hand}",
            details={
                "stock_code": stock_code,
                "requested_quantity": requested,
                "on_hand": on_hand,
            },
        )
        self.stock_code = stock_code
        self.requested = requested
        self.on_hand = on_hand


class AlreadyPaidError(SalesDeskError):
    """Attempt to pay an installment twice."""

    code = "already_paid"
    status_code = 409


class PersistenceError(SalesDeskError):
    """Storage failure; the surrounding transaction was rolled back."""

    code = "persistence_error"
    status_code = 500
