"""Custom exceptions for the storefront application."""

class StorefrontError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(StorefrontError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class WebhookVerificationError(StorefrontError):
    """Raised when a webhook body cannot be authenticated or decoded."""
    def __init__(self, message="Invalid webhook payload"):
        super().__init__(message, 400)

class PaymentProviderError(StorefrontError):
    """Raised when a read against the payment provider fails."""
    def __init__(self, message="Payment provider request failed", payload=None):
        super().__init__(message, 502, payload)

class OrderPersistenceError(StorefrontError):
    """Raised when an order or one of its rows cannot be written."""
    def __init__(self, message, checkout_session_id=None):
        super().__init__(message, 500, {'checkout_session_id': checkout_session_id})
        self.checkout_session_id = checkout_session_id
