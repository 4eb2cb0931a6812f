# Overview: Error taxonomy shared by the ledger services and API routes.

"""
Every failure a ledger operation can report to a caller.

Each error carries a machine-readable ``kind`` and the HTTP status the API
answers with. Routes serialize them as {"error": kind, "message": reason}.

- InsufficientStock is an expected business outcome (log at INFO).
- InvariantViolation means ledger and log disagree; it halts the engine.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all typed ledger failures."""

    kind = "ledger_error"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(LedgerError):
    """Unknown item, transaction, or record id."""

    kind = "not_found"
    http_status = 404


class InsufficientStock(LedgerError):
    """The change would drive an item's quantity below zero."""

    kind = "insufficient_stock"
    http_status = 409

    def __init__(self, message: str, *, item_id: str | None = None, available=None, requested=None):
        super().__init__(message)
        self.item_id = item_id
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.item_id is not None:
            body["item_id"] = self.item_id
        if self.available is not None:
            body["available"] = self.available
        if self.requested is not None:
            body["requested"] = self.requested
        return body


class DuplicateId(LedgerError):
    """An id collision on create."""

    kind = "duplicate_id"
    http_status = 409


class ValidationError(LedgerError, ValueError):
    """400-level input problem (malformed amount, dimensions, fields)."""

    kind = "validation_error"
    http_status = 400


class TransientFailure(LedgerError):
    """Storage hiccup; safe to retry with the same idempotency key."""

    kind = "transient_failure"
    http_status = 503


class InvariantViolation(LedgerError):
    """Ledger/log mismatch detected. Fatal for the engine instance."""

    kind = "invariant_violation"
    http_status = 500
