from fastapi import status


class LedgerError(Exception):
    """Base class for every error the ledger reports to its callers.

    ``kind`` is stable and safe to show to clients; ``message`` is the
    human readable text.
    """

    kind = "LedgerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Ledger operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(LedgerError):
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class NotFound(LedgerError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Unauthorized(LedgerError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User not authorized"


class EncryptionConfigError(LedgerError):
    kind = "EncryptionConfigError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = (
        "Server encryption configuration error. "
        "The encryption key must be exactly 32 characters."
    )


class ConsistencyWarning(UserWarning):
    """A derived total would have gone negative and was clamped."""


def account_not_found() -> NotFound:
    return NotFound("Bank account not found")


def transaction_not_found() -> NotFound:
    return NotFound("Transaction not found")


def budget_not_found() -> NotFound:
    return NotFound("Budget not found")
