"""
Commerce Console Exception Hierarchy

Structured exception classes for the taxonomy and refund subsystems.
All exceptions include code, message, and details for audit trail and debugging.

Exception Hierarchy:
    CommerceBaseError
    ├── TaxonomyError
    │   ├── TaxonomyIntegrityError
    │   │   ├── AmbiguousParentError
    │   │   ├── ParentNotFoundError
    │   │   └── MaxDepthExceededError
    │   ├── DuplicateCategoryUrlError
    │   └── TaxonomyNotFoundError (also NotFoundError)
    ├── RefundError
    │   ├── RefundValidationError
    │   └── InvalidRefundTransitionError
    └── NotFoundError
        ├── OrderNotFoundError
        └── RefundNotFoundError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class CommerceBaseError(Exception):
    """
    Base exception for all Commerce Console custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "COMMERCE_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(CommerceBaseError):
    """Requested record is absent from the supplied set."""
    default_code = "NOT_FOUND"
    default_severity = "P3"


class OrderNotFoundError(NotFoundError):
    default_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: Any, **kwargs):
        details = kwargs.pop("details", {})
        details["order_id"] = order_id
        super().__init__(f"Order {order_id} not found", details=details, **kwargs)


class RefundNotFoundError(NotFoundError):
    default_code = "REFUND_NOT_FOUND"

    def __init__(self, refund_id: Any, **kwargs):
        details = kwargs.pop("details", {})
        details["refund_id"] = refund_id
        super().__init__(f"Refund {refund_id} not found", details=details, **kwargs)


# =============================================================================
# TAXONOMY ERRORS
# =============================================================================

class TaxonomyError(CommerceBaseError):
    """Base exception for category hierarchy errors."""
    default_code = "TAXONOMY_ERROR"


class TaxonomyIntegrityError(TaxonomyError):
    """Hierarchy fields are malformed (non-monotonic or all EMPTY)."""
    default_code = "TAXONOMY_INTEGRITY"
    default_severity = "P1"

    def __init__(
        self,
        message: str,
        hierarchy: Optional[tuple] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if hierarchy is not None:
            details["hierarchy"] = list(hierarchy)
        super().__init__(message, details=details, **kwargs)


class AmbiguousParentError(TaxonomyIntegrityError):
    """More than one row matches a node's parent key."""
    default_code = "TAXONOMY_AMBIGUOUS_PARENT"


class ParentNotFoundError(TaxonomyIntegrityError):
    """No row matches a non-top-level node's parent key."""
    default_code = "TAXONOMY_PARENT_MISSING"


class MaxDepthExceededError(TaxonomyIntegrityError):
    """Parent already occupies all five hierarchy levels."""
    default_code = "TAXONOMY_MAX_DEPTH"
    default_severity = "P2"


class DuplicateCategoryUrlError(TaxonomyError):
    """Another category already uses the derived web URL."""
    default_code = "TAXONOMY_DUPLICATE_URL"

    def __init__(self, web_url: str, **kwargs):
        details = kwargs.pop("details", {})
        details["web_url"] = web_url
        super().__init__(
            f"A category with the URL '{web_url}' already exists",
            details=details,
            **kwargs
        )


class TaxonomyNotFoundError(TaxonomyError, NotFoundError):
    default_code = "TAXONOMY_NOT_FOUND"
    default_severity = "P3"


# =============================================================================
# REFUND ERRORS
# =============================================================================

class RefundError(CommerceBaseError):
    """Base exception for refund processing errors."""
    default_code = "REFUND_ERROR"
    default_severity = "P1"


class RefundValidationError(RefundError):
    """Refund request does not reconcile with the order's financial state."""
    default_code = "REFUND_VALIDATION_FAILED"
    default_severity = "P3"

    def __init__(self, message: str, decision: Any = None, **kwargs):
        details = kwargs.pop("details", {})
        if decision is not None:
            details["remaining"] = str(decision.remaining)
        self.decision = decision
        super().__init__(message, details=details, **kwargs)


class InvalidRefundTransitionError(RefundError):
    """Status change not permitted from the refund's current status."""
    default_code = "REFUND_INVALID_TRANSITION"
    default_severity = "P2"

    def __init__(self, current: str, requested: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"current": current, "requested": requested})
        super().__init__(
            f"Cannot transition refund from {current} to {requested}",
            details=details,
            **kwargs
        )
