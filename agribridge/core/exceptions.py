"""
Agribridge Exception Hierarchy

All exceptions carry a code, a message and details so the API layer can
surface them as user-facing notifications and logs keep the context.

Exception Hierarchy:
    AgribridgeError
    ├── ValidationRejection
    │   ├── AuthenticationRequiredError
    │   ├── EmptyCartError
    │   ├── ReviewValidationError
    │   ├── CheckoutValidationError
    │   └── PaymentChannelUnavailableError
    ├── DataStoreError
    └── CheckoutError
        ├── OrderCreationError
        ├── OrderItemsError
        └── ProductUnavailableError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class AgribridgeError(Exception):
    """
    Base exception for all Agribridge errors.

    Attributes:
        message: Human-readable error description (safe to show to users)
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
    """

    default_code: str = "AGRIBRIDGE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# VALIDATION REJECTIONS (handled locally, no state change)
# =============================================================================

class ValidationRejection(AgribridgeError):
    """Request rejected before any state was touched."""
    default_code = "VALIDATION_REJECTED"
    status_code = 400


class AuthenticationRequiredError(ValidationRejection):
    """Operation needs an established identity; caller should redirect to login."""
    default_code = "AUTHENTICATION_REQUIRED"
    status_code = 401


class EmptyCartError(ValidationRejection):
    """Checkout attempted with nothing in the cart."""
    default_code = "CART_EMPTY"


class ReviewValidationError(ValidationRejection):
    """Review or reply payload is incomplete."""
    default_code = "REVIEW_INVALID"

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["field"] = field
        super().__init__(message, details=details, **kwargs)


class CheckoutValidationError(ValidationRejection):
    """Customer information required for payment is missing."""
    default_code = "CHECKOUT_INVALID"


class PaymentChannelUnavailableError(ValidationRejection):
    """Requested payment channel is not offered for the customer's country."""
    default_code = "PAYMENT_CHANNEL_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        country: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "channel": channel,
            "country": country,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# REMOTE DATA STORE ERRORS
# =============================================================================

class DataStoreError(AgribridgeError):
    """Remote collaborator (Supabase) request failed."""
    default_code = "DATA_STORE_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        remote_code: Optional[str] = None,
        http_status: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "resource": resource,
            "remote_code": remote_code,
            "http_status": http_status,
        })
        super().__init__(message, details=details, **kwargs)

    @property
    def remote_code(self) -> Optional[str]:
        return self.details.get("remote_code")


# =============================================================================
# CHECKOUT ERRORS
# =============================================================================

class CheckoutError(AgribridgeError):
    """Base exception for checkout failures."""
    default_code = "CHECKOUT_ERROR"
    status_code = 502


class OrderCreationError(CheckoutError):
    """Order row could not be created."""
    default_code = "ORDER_CREATE_FAILED"


class OrderItemsError(CheckoutError):
    """Order items failed to insert; the order row was rolled back."""
    default_code = "ORDER_ITEMS_FAILED"

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        rolled_back: bool = False,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "order_id": order_id,
            "rolled_back": rolled_back,
        })
        super().__init__(message, details=details, **kwargs)


class ProductUnavailableError(CheckoutError):
    """
    One or more products in the cart no longer exist.

    order_id and rolled_back are only reported when an order row had been
    created (and then deleted) before the failure was detected.
    """
    default_code = "PRODUCT_UNAVAILABLE"
    status_code = 409

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        rolled_back: Optional[bool] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if order_id is not None:
            details.update({
                "order_id": order_id,
                "rolled_back": rolled_back,
            })
        super().__init__(message, details=details, **kwargs)
