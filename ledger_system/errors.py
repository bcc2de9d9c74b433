# ledger_system/errors.py
"""
Domain errors surfaced to admin, merchant and verifikator surfaces.
"""


class LedgerError(Exception):
    """Base class for recoverable ledger failures."""

    code = "ledger_error"

    def __init__(self, message: str = None, **details):
        self.message = message or self.__class__.__name__
        self.details = details
        super().__init__(self.message)

    def toDict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message, **self.details}


class InsufficientQuota(LedgerError):
    code = "insufficient_quota"


class NoMatchingTier(LedgerError):
    code = "no_matching_tier"


class InsufficientBalance(LedgerError):
    code = "insufficient_balance"


class BelowMinimum(LedgerError):
    code = "below_minimum"


class InvalidStateTransition(LedgerError):
    code = "invalid_state_transition"


class DuplicateBilling(LedgerError):
    code = "duplicate_billing"


class RecordNotFound(LedgerError):
    code = "not_found"
