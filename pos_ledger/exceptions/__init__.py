"""Custom exceptions for the POS ledger."""


class LedgerError(Exception):
    """Base exception for all operational ledger errors."""
    kind = 'error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['kind'] = self.kind
        rv['status'] = 'error'
        return rv


class ValidationError(LedgerError):
    """Raised for invalid amounts, states or inputs."""
    kind = 'invalid'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(LedgerError):
    """Exception raised when a resource is not found."""
    kind = 'not_found'

    def __init__(self, resource="Resource", payload=None):
        super().__init__(f"{resource} not found", 404, payload)


class ConflictError(LedgerError):
    """Raised when data collides with existing records (e.g. invoice number)."""
    kind = 'conflict'

    def __init__(self, message="Resource already exists", payload=None):
        super().__init__(message, 409, payload)


class InsufficientStockError(ValidationError):
    """Raised when an operation fails due to lack of stock."""

    def __init__(self, product_name, required, available):
        message = (
            f"Insufficient stock for product: {product_name}. "
            f"Available: {available}, Required: {required}"
        )
        super().__init__(message, status_code=409, payload={
            'product': product_name,
            'required': required,
            'available': available,
        })


class LockTimeoutError(ConflictError):
    """Raised when a ledger lock cannot be acquired within the timeout."""

    def __init__(self, key, timeout):
        super().__init__(f"Timed out after {timeout}s waiting for lock {key}", payload={'lock': str(key)})
