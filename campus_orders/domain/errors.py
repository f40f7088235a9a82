# campus_orders/domain/errors.py


class OrderingError(Exception):
    """Base class for every failure the ordering core reports to callers."""


class ValidationError(OrderingError, ValueError):
    pass


class InvalidSelection(ValidationError):
    pass


class QuantityError(ValidationError):
    pass


class NotFound(OrderingError, LookupError):
    pass


class InvalidTransition(OrderingError):
    pass


class AlreadyResolved(InvalidTransition):
    pass


class Conflict(OrderingError):
    """
    Lost a compare-and-swap race on the order row.
    Callers should re-read the order instead of retrying blindly.
    """


class NotEligible(OrderingError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CatalogUnavailable(OrderingError):
    pass
