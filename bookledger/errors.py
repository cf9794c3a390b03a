from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    INVALID_ARGUMENT = "invalid_argument"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    EXHAUSTED = "exhausted"
    ALREADY_BORROWED = "already_borrowed"
    NOT_BORROWED = "not_borrowed"


class LedgerError(Exception):
    """Base class for every rejected ledger operation.

    Carries the error kind and whatever context identifies the failing call
    (book id, title, identity). The ledger never mutates state before raising.
    """

    kind: ErrorKind

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class Unauthorized(LedgerError):
    kind = ErrorKind.UNAUTHORIZED


class InvalidArgument(LedgerError):
    kind = ErrorKind.INVALID_ARGUMENT


class AlreadyExists(LedgerError):
    kind = ErrorKind.ALREADY_EXISTS


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND


class Exhausted(LedgerError):
    kind = ErrorKind.EXHAUSTED


class AlreadyBorrowed(LedgerError):
    kind = ErrorKind.ALREADY_BORROWED


class NotBorrowed(LedgerError):
    kind = ErrorKind.NOT_BORROWED


_ERRORS_BY_KIND = {cls.kind: cls for cls in (
    Unauthorized, InvalidArgument, AlreadyExists, NotFound,
    Exhausted, AlreadyBorrowed, NotBorrowed,
)}


def error_from_kind(kind: str, message: str) -> LedgerError:
    """Rebuild a typed error from its wire form (see ``LedgerError.to_dict``)."""
    return _ERRORS_BY_KIND[ErrorKind(kind)](message)


class LedgerUnavailable(Exception):
    """The remote ledger could not be reached or answered unexpectedly."""
