"""
Errors raised by the statement ledger.

Each error carries the HTTP status the API layer answers with, so the
routers never have to translate ledger failures one by one.
"""


class LedgerError(Exception):
    status_code = 500
    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AccountNotFound(LedgerError):
    status_code = 404
    code = "account_not_found"

    def __init__(self, account_id: str):
        super().__init__(f"Account '{account_id}' not found")
        self.account_id = account_id


class InvalidPeriod(LedgerError):
    status_code = 400
    code = "invalid_period"


class StoreUnavailable(LedgerError):
    status_code = 503
    code = "store_unavailable"


class InconsistentLedger(LedgerError):
    status_code = 500
    code = "inconsistent_ledger"


class StatementTimeout(LedgerError):
    status_code = 504
    code = "statement_timeout"
