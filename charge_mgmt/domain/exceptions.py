"""Domain-specific exceptions"""

from typing import Any, Optional


class DomainException(Exception):
    """Base exception for domain layer

    Every subclass carries a stable machine-readable ``kind`` and the HTTP status
    the API layer answers with. ``message`` is shown to users verbatim.
    """

    kind = "Internal"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(DomainException):
    """Malformed, missing or out-of-range input"""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(DomainException):
    """Unknown rule, settlement, user or test suite"""

    kind = "NotFound"
    status_code = 404

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class InvalidTransitionError(DomainException):
    """Requested lifecycle action has no edge from the current status"""

    kind = "InvalidTransition"
    status_code = 409

    def __init__(self, entity: str, current_status: str, action: str):
        self.entity = entity
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} {entity} in status {current_status}")


class UnknownCustomerError(DomainException):
    """Customer code does not resolve to reference data"""

    kind = "UnknownCustomer"
    status_code = 422

    def __init__(self, customer_code: str):
        self.customer_code = customer_code
        super().__init__(f"Unknown customer: {customer_code}")


class InvalidAmountError(DomainException):
    """Transaction amount is negative"""

    kind = "InvalidAmount"
    status_code = 422


class BatchTimeoutError(DomainException):
    """Batch or test run exceeded its deadline; carries the partial result"""

    kind = "Timeout"
    status_code = 504

    def __init__(self, message: str, partial: Optional[Any] = None):
        self.partial = partial
        super().__init__(message)


class ChargeApiError(DomainException):
    """Failure reported by the charge API, rebuilt client-side from the error envelope"""

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None, data: Optional[Any] = None):
        self.kind = kind
        self.status_code = status_code
        self.data = data
        super().__init__(message)
