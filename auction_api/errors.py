"""
Error taxonomy for auction operations.

Every error is a recoverable outcome for the caller. The HTTP layer renders
them as ``{"error": <class name>, "detail": <message>}`` with ``status_code``.
"""


class AuctionError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(AuctionError):
    """Missing or malformed input that passed schema parsing."""


class NotFoundError(AuctionError):
    status_code = 404


class ConflictError(AuctionError):
    """Illegal state transition."""

    status_code = 409


class NoActiveLotError(ConflictError):
    pass


class SettlementConflictError(ConflictError):
    pass


class RosterConstraintError(AuctionError):
    status_code = 409


class InvalidBidError(AuctionError):
    status_code = 422


class BudgetExceededError(AuctionError):
    status_code = 422


class ImmutableStateError(AuctionError):
    status_code = 423


class StorageUnavailableError(AuctionError):
    """The database could not be reached. Safe to retry."""

    status_code = 503
