# app/domain/statuses.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PaymentMethod(str, Enum):
    PAYSTACK = "paystack"
    BANK_TRANSFER = "bank_transfer"


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset(
    s for s, targets in ORDER_TRANSITIONS.items() if OrderStatus.CANCELLED in targets
)

ORDER_PAYMENT_TRANSITIONS: dict[OrderPaymentStatus, frozenset[OrderPaymentStatus]] = {
    OrderPaymentStatus.PENDING: frozenset({OrderPaymentStatus.PAID, OrderPaymentStatus.FAILED}),
    OrderPaymentStatus.FAILED: frozenset({OrderPaymentStatus.PAID}),
    OrderPaymentStatus.PAID: frozenset(
        {OrderPaymentStatus.REFUNDED, OrderPaymentStatus.PARTIALLY_REFUNDED}
    ),
    OrderPaymentStatus.PARTIALLY_REFUNDED: frozenset(
        {OrderPaymentStatus.REFUNDED, OrderPaymentStatus.PARTIALLY_REFUNDED}
    ),
    OrderPaymentStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def allowed_transitions(current: OrderStatus) -> list[OrderStatus]:
    return sorted(ORDER_TRANSITIONS.get(current, frozenset()), key=lambda s: s.value)


def can_transition_payment(current: OrderPaymentStatus, target: OrderPaymentStatus) -> bool:
    return target in ORDER_PAYMENT_TRANSITIONS.get(current, frozenset())


def payment_sources(target: OrderPaymentStatus) -> list[OrderPaymentStatus]:
    """Stany platnosci zamowienia, z ktorych wolno przejsc do target."""
    return sorted(
        (s for s, targets in ORDER_PAYMENT_TRANSITIONS.items() if target in targets),
        key=lambda s: s.value,
    )
