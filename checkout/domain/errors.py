# checkout/domain/errors.py
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    EXTERNAL = "external"
    SECURITY = "security"


class Reason(str, Enum):
    """Stable reason strings returned to API clients."""

    INVALID_INPUT = "InvalidInput"
    NO_ITEMS_SELECTED = "NoItemsSelected"
    NEGATIVE_AMOUNT = "NegativeAmount"
    UNSUPPORTED_PAYMENT_METHOD = "UnsupportedPaymentMethod"

    ADDRESS_NOT_FOUND = "AddressNotFound"
    VARIANT_NOT_FOUND = "VariantNotFound"
    CART_ITEM_NOT_FOUND = "CartItemNotFound"
    NOT_FOUND = "NotFound"
    TRANSACTION_NOT_FOUND = "TransactionNotFound"

    CART_FULL = "CartFull"
    PRODUCT_UNAVAILABLE = "ProductUnavailable"
    PENDING_ORDER_EXISTS = "PendingOrderExists"
    INSUFFICIENT_STOCK = "InsufficientStock"
    INVALID_CODE = "InvalidCode"
    MAX_USES_REACHED = "MaxUsesReached"
    BELOW_MINIMUM = "BelowMinimum"
    NOT_APPLICABLE = "NotApplicable"
    NOT_CANCELLABLE = "NotCancellable"
    ORDER_NOT_PAYABLE = "OrderNotPayable"
    TOO_MANY_ATTEMPTS = "TooManyAttempts"
    ATTEMPT_WINDOW_EXPIRED = "AttemptWindowExpired"
    ALREADY_PROCESSED = "AlreadyProcessed"

    TRANSIENT_CONFLICT = "TransientConflict"
    GATEWAY_ERROR = "GatewayError"
    SIGNATURE_MISMATCH = "SignatureMismatch"


_KINDS = {
    Reason.INVALID_INPUT: ErrorKind.VALIDATION,
    Reason.NO_ITEMS_SELECTED: ErrorKind.VALIDATION,
    Reason.NEGATIVE_AMOUNT: ErrorKind.VALIDATION,
    Reason.UNSUPPORTED_PAYMENT_METHOD: ErrorKind.VALIDATION,
    Reason.ADDRESS_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.VARIANT_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.CART_ITEM_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.TRANSACTION_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.TRANSIENT_CONFLICT: ErrorKind.TRANSIENT,
    Reason.GATEWAY_ERROR: ErrorKind.EXTERNAL,
    Reason.SIGNATURE_MISMATCH: ErrorKind.SECURITY,
}


@dataclass(frozen=True)
class Rejection:
    """Expected business outcome that is not a success."""

    reason: Reason
    detail: str = ""

    @property
    def kind(self) -> ErrorKind:
        return _KINDS.get(self.reason, ErrorKind.CONFLICT)

    def to_dict(self) -> dict:
        return {"error": self.reason.value, "detail": self.detail}


class RejectionError(Exception):
    """Raised inside a unit of work so the transaction rolls back."""

    def __init__(self, reason: Reason, detail: str = ""):
        super().__init__(detail or reason.value)
        self.rejection = Rejection(reason, detail)


class TransientConflict(Exception):
    """Deadlock, lock wait timeout or serialization failure."""


class GatewayError(Exception):
    """Payment provider unreachable or answered with something unusable."""
