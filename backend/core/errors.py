"""
Error taxonomy for stock operations.

Every failure raised by the stores or the transfer engine is a subclass of
`StockError`, so callers can catch the whole family at once or pick the kind
they care about:

- `InvalidQuantity`    caller error, never retried
- `ProductNotFound`    caller error, never retried
- `ClientNotFound`     caller error, never retried
- `InsufficientStock`  business rule, caller must ask for less or restock first
- `TransactionFailure` infrastructure error; nothing was applied, so the whole
                       transfer may be retried from scratch by the caller
"""
from typing import Optional
from uuid import UUID


class StockError(Exception):
    """Base exception for all stock errors."""

    #: Stable identifier for programmatic handling (e.g. API error bodies).
    code: str = "stock_error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "An unspecified stock error occurred."
        super().__init__(message)


class InvalidQuantity(StockError):
    code: str = "invalid_quantity"

    def __init__(self, quantity) -> None:
        self.quantity = quantity
        super().__init__(f"quantity must be a positive integer, got {quantity!r}")


class ProductNotFound(StockError):
    code: str = "product_not_found"

    def __init__(self, product_id: UUID) -> None:
        self.product_id = product_id
        super().__init__(f"Product with id {product_id} not found")


class ClientNotFound(StockError):
    code: str = "client_not_found"

    def __init__(self, client_id: UUID) -> None:
        self.client_id = client_id
        super().__init__(f"Client with id {client_id} not found")


class InsufficientStock(StockError):
    """Raised when the locked product quantity is lower than the request."""

    code: str = "insufficient_stock"

    def __init__(self, product_id: UUID, available: int, requested: int) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough quantity for product {product_id}. "
            f"Available={available} requested={requested}"
        )


class TransactionFailure(StockError):
    """
    The transaction could not be started, completed or committed.

    Typical causes are lock wait timeouts, lost connections and serialization
    failures. The original exception is kept as ``__cause__``.
    """

    code: str = "transaction_failure"
