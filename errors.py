"""Exceptions raised by the AdminHub services and mapped to HTTP responses in main.py."""


class AdminHubError(Exception):
    """Base exception for all AdminHub errors."""

    status_code = 500


class ValidationError(AdminHubError):
    """Raised when a required field is missing or a value is invalid."""

    status_code = 400


class NotFoundError(AdminHubError):
    """Raised when a referenced document does not exist."""

    status_code = 404

    def __init__(self, kind: str, ref: str | None = None):
        self.kind = kind
        self.ref = ref
        msg = f"{kind} not found"
        if ref:
            msg = f"{kind} with ID {ref} not found"
        super().__init__(msg)


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product", product_id)


class ConflictError(AdminHubError):
    """Raised on duplicate SKU, slug or email."""

    status_code = 409


class InsufficientStockError(AdminHubError):
    """Raised when a requested quantity exceeds the available stock."""

    status_code = 400

    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough stock for {product_name} (requested {requested}, available {available})"
        )


class UnauthorizedError(AdminHubError):
    status_code = 401

    def __init__(self, msg: str = "Unauthorized"):
        super().__init__(msg)


class ForbiddenError(AdminHubError):
    """Raised when the caller is authenticated but does not own the resource."""

    status_code = 403

    def __init__(self, msg: str = "Forbidden"):
        super().__init__(msg)


class DependencyError(AdminHubError):
    """Raised when a delete is blocked by documents that still reference the target."""

    status_code = 400


class UpstreamError(AdminHubError):
    """Raised when the media store fails."""

    status_code = 502


class DatabaseUnavailableError(AdminHubError):
    status_code = 500

    def __init__(self):
        super().__init__("Database not configured")
