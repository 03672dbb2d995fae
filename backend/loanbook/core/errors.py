"""Domain errors raised by the services layer.

Each error carries a snake_case ``code`` that ends up as the ``detail`` of the
HTTP response, plus the status the API should answer with. Services raise these
and never ``HTTPException``; ``loanbook.main`` renders them.
"""


class LedgerError(Exception):
    status_code = 400
    code = "ledger_error"

    def __init__(self, code: str | None = None, message: str | None = None):
        if code is not None:
            self.code = code
        self.message = message or self.code.replace("_", " ")
        super().__init__(self.message)


class ValidationError(LedgerError):
    status_code = 400
    code = "invalid_input"


class NotFound(LedgerError):
    status_code = 404
    code = "not_found"


class AlreadyDeleted(NotFound):
    status_code = 409
    code = "already_deleted"


class NotInBin(NotFound):
    status_code = 409
    code = "not_in_bin"


class ConflictError(LedgerError):
    """Another transaction updated the same loan first; retry the whole call."""

    status_code = 409
    code = "concurrent_update"


class BalanceIntegrityError(LedgerError):
    """Stored balances broke a ledger invariant. Always a defect, never retried."""

    status_code = 500
    code = "balance_integrity"
