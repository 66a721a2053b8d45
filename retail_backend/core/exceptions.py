"""
Typed errors raised by the order processing and inventory services.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so callers catch by type instead of parsing messages.

    RetailError
    +-- ValidationError
    |   +-- InsufficientStockError
    +-- NotFoundError
    +-- SequenceExhaustionError
    +-- PartialApplicationError
    +-- ConflictError
"""


class RetailError(Exception):
    code = "RETAIL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RetailError):
    """Request rejected before any write happened."""

    code = "VALIDATION_ERROR"
    status_code = 422


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Product {product_id} has {available} in stock, cannot remove {requested}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NotFoundError(RetailError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, key):
        super().__init__(f"{entity} '{key}' not found")
        self.entity = entity
        self.key = key


class SequenceExhaustionError(RetailError):
    """The counter could not be incremented; no number was issued."""

    code = "SEQUENCE_UNAVAILABLE"
    status_code = 503

    def __init__(self, series: str, reason: str = ""):
        message = f"Could not allocate next value for series '{series}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.series = series


class PartialApplicationError(RetailError):
    """
    Stock was moved but the owning order was not stored, and the
    compensating movements did not all go through either.

    ``unreconciled`` lists the movements still applied, as dicts with
    ``product_id`` and ``delta``, for an operator to reverse by hand.
    """

    code = "PARTIAL_APPLICATION"
    status_code = 500

    def __init__(self, reference: str, unreconciled: list[dict], cause: str = ""):
        super().__init__(
            f"Stock changed for '{reference}' but the write did not complete; "
            f"{len(unreconciled)} movement(s) need reconciliation"
            + (f" ({cause})" if cause else "")
        )
        self.reference = reference
        self.unreconciled = unreconciled


class ConflictError(RetailError):
    code = "CONFLICT"
    status_code = 409
