from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base of the error taxonomy.
    Every subclass knows its HTTP status and a stable machine-readable code,
    so services can raise freely and the API layer translates in one place.
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    """Referenced entity is absent."""

    status_code = 404
    code = "not_found"


class BusinessRuleViolation(AppError):
    status_code = 409
    code = "business_rule_violation"


class InsufficientStockError(BusinessRuleViolation):
    """Requested quantity exceeds what is on the shelf right now."""

    status_code = 400
    code = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Only {available} units available.",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class NotApprovedError(BusinessRuleViolation):
    status_code = 400
    code = "product_not_approved"


class NotBulkEligibleError(BusinessRuleViolation):
    status_code = 400
    code = "not_bulk_eligible"


class OrderTypeNotAllowedError(BusinessRuleViolation):
    status_code = 400
    code = "order_type_not_allowed"


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthenticated"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class InternalError(AppError):
    """Unexpected failure. Raised explicitly only where we know state is suspect."""

    pass
