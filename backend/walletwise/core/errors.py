"""Failures raised by the balance ledger and its stores.

Only ``PartialApplicationError`` means state changed: the transaction row
was written but the matching balance increment was not confirmed. The
reconciliation job is what repairs it.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    code = "ledger_error"


class ValidationError(LedgerError):
    code = "validation_error"


class NotFoundError(LedgerError):
    code = "not_found"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ConflictError(LedgerError):
    """The transaction changed between read and write; nothing was applied."""

    code = "tx_conflict"


class StoreUnavailableError(LedgerError):
    code = "store_unavailable"


class CommitUnconfirmedError(LedgerError):
    """A write was sent but its COMMIT was not acknowledged; it may have landed."""

    code = "commit_unconfirmed"

    def __init__(self, message: str, entity_id: int | None = None):
        super().__init__(message)
        self.entity_id = entity_id


class PartialApplicationError(LedgerError):
    code = "balance_pending_reconciliation"

    def __init__(self, user_id: int, transaction_id: int, delta: Decimal, cause: BaseException | None = None):
        super().__init__(
            f"transaction {transaction_id} written but balance delta {delta} for user {user_id} not confirmed"
        )
        self.user_id = user_id
        self.transaction_id = transaction_id
        self.delta = delta
        self.cause = cause
