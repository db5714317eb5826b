"""Custom exceptions for the invoicing application."""

class InvoicingError(Exception):
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

class BusinessLogicError(InvoicingError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised when required input is missing or malformed on save."""
    def __init__(self, message, field=None):
        payload = {'field': field} if field else None
        super().__init__(message, 400, payload)
        self.field = field

class NotFoundError(InvoicingError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class ConstraintViolationError(BusinessLogicError):
    """Raised when a delete is blocked by records still referencing the target."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class NotConvertibleError(BusinessLogicError):
    """Raised when a quote cannot be turned into an invoice."""
    def __init__(self, quote_number, reason):
        message = f"Quote {quote_number} cannot be converted: {reason}"
        super().__init__(message, 409, {'quote_number': quote_number})
        self.reason = reason

class InvalidTransitionError(BusinessLogicError):
    """Raised when a status change is not an allowed edge for the document kind."""
    def __init__(self, kind, current, requested):
        current_value = getattr(current, 'value', current)
        requested_value = getattr(requested, 'value', requested)
        message = f"Cannot change {kind} status from '{current_value}' to '{requested_value}'"
        super().__init__(message, 409, {'from': current_value, 'to': requested_value})
        self.current = current
        self.requested = requested

class PartialFailureError(InvoicingError):
    """Raised when a multi-step write could not be completed and was rolled back."""
    def __init__(self, message="The operation could not be completed", payload=None):
        super().__init__(message, 500, payload)

class NumberingConflictError(PartialFailureError):
    """Raised when a document number could not be reserved after several attempts."""
    def __init__(self, kind, attempts):
        super().__init__(
            f"Could not reserve a {kind} number after {attempts} attempts",
            {'kind': kind, 'attempts': attempts}
        )
