# checkout/domain/statuses.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


class PaymentMethod(str, Enum):
    COD = "COD"
    VNPAY = "VNPay"
    PAYPAL = "PayPal"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
