"""
Ledger error taxonomy

Every failure the ledger reports to a caller is a LedgerError. The ``kind``
attribute is the machine-readable name rendered into the API error envelope
and ``status_code`` is the HTTP status it maps to.
"""


class LedgerError(Exception):
    """Base class for all ledger errors"""
    kind = "ledger_error"
    status_code = 400
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(LedgerError):
    """Malformed id, body or argument"""
    kind = "validation_error"


class NotFoundError(LedgerError):
    """Unknown account id or account number"""
    kind = "not_found"


class AuthenticationError(LedgerError):
    """Wrong account number or password at login"""
    kind = "authentication_failed"


class InvalidTokenError(LedgerError):
    """Missing, expired, tampered or malformed token"""
    kind = "invalid_token"
    status_code = 403


class ForbiddenError(LedgerError):
    """Authenticated caller acting on an account it does not own"""
    kind = "forbidden"
    status_code = 403


class InsufficientFundsError(LedgerError):
    """Sender balance does not cover the transfer"""
    kind = "insufficient_funds"


class PersistenceError(LedgerError):
    """Storage unavailable, timed out or constraint violated"""
    kind = "persistence_error"


class DuplicateAccountNumberError(PersistenceError):
    """Generated account number already taken"""
    kind = "duplicate_account_number"
