"""
Error taxonomy shared by the services and the HTTP layer.

Coercion, querying and aggregation never raise; only input validation and
persistence produce errors. The API maps each class to a status code.
"""
from __future__ import annotations


class LedgerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Required input missing or malformed; raised before any store write."""

    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, kind: str, ident: object):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class StoreError(LedgerError):
    """The backing store rejected a write; nothing was applied."""

    status_code = 503
