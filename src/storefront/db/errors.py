class StoreError(Exception):
    """Base class for every error raised by the storefront core."""


class NotFoundError(StoreError):
    """A caller-supplied id had to exist but did not.

    Storage lookups never raise this; they return None and the service layer
    decides whether to escalate.
    """


class ConflictError(StoreError):
    """Duplicate username or email."""


class ValidationError(StoreError):
    """Malformed input rejected before reaching storage."""


class EmptyCartError(StoreError):
    def __init__(self, message: str = "Your cart is empty.") -> None:
        super().__init__(message)


class InvalidCartStateError(StoreError):
    def __init__(self, product_id: int) -> None:
        super().__init__("An item in your cart is no longer available.")
        self.product_id = product_id


class UnauthenticatedError(StoreError):
    def __init__(self, message: str = "You need to be logged in.") -> None:
        super().__init__(message)


class ForbiddenError(StoreError):
    def __init__(self, message: str = "Admin access required.") -> None:
        super().__init__(message)


class NotificationFailure(StoreError):
    """Wraps whatever a notification sink raised; logged, never propagated."""
