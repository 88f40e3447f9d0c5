# app/domain/errors.py
"""
Wyjatki domenowe.
Routery tlumacza je na kody HTTP, serwisy rzucaja je przed otwarciem transakcji
albo wewnatrz niej (wtedy zawsze po rollbacku).
"""


class ValidationError(ValueError):
    """Niepoprawne dane wejsciowe."""


class NotFound(LookupError):
    pass


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)

    @property
    def message(self) -> str:
        return str(self.args[0])


class ProductUnavailable(DomainError):
    """Product is no longer available."""

    def __init__(self, product_id: int, name: str | None = None):
        self.product_id = product_id
        self.name = name
        super().__init__(f"Product '{name or product_id}' is no longer available.")


class OutOfStock(DomainError):
    """Insufficient stock."""

    def __init__(self, product_id: int, name: str | None = None, available: int | None = None):
        self.product_id = product_id
        self.name = name
        self.available = available
        if available is None:
            msg = f"Insufficient stock for '{name or product_id}'."
        else:
            msg = f"Insufficient stock for '{name or product_id}'. Only {available} available."
        super().__init__(msg)


class CartNotCheckoutable(DomainError):
    """Some items in your cart are no longer available."""

    def __init__(self, errors: list[DomainError]):
        self.errors = errors
        super().__init__()


class CartConflict(DomainError):
    """Cart was modified by another operation, try again."""

    status_code = 409


class CouponInvalid(DomainError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class OrderNotCancellable(DomainError):
    """This order cannot be cancelled."""


class InvalidTransition(DomainError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from '{current.value}' to '{target.value}'.")


class AlreadyPaid(DomainError):
    """This order has already been paid."""


class OrderNotPayable(DomainError):
    """This order cannot be paid."""


class RefundNotAllowed(DomainError):
    """Refund is not possible for this payment."""


class CheckoutFailed(DomainError):
    """Failed to process checkout. Please try again."""

    status_code = 500

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__()


class PaymentGatewayError(DomainError):
    """Payment gateway request failed."""

    status_code = 502


class SignatureMismatch(DomainError):
    """Invalid webhook signature."""


class PaymentInProgress(DomainError):
    """Payment is being processed, try again."""

    status_code = 409
