"""Exception types raised by the prize pool."""


class PrizePoolError(Exception):
    """Base class for prize pool failures."""


class InvalidInputError(PrizePoolError, ValueError):
    """Raised when a draw request is rejected before touching the store."""


class StoreUnavailableError(PrizePoolError):
    """Raised when the backing store fails during a transaction.

    The in-flight transaction has been rolled back by the time this is
    raised; the original driver error is chained as ``__cause__``.
    """


__all__ = ["PrizePoolError", "InvalidInputError", "StoreUnavailableError"]
