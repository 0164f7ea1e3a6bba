"""Typed failures raised by the membership and vouch engine.

Every error carries a ``kind`` and an HTTP-flavoured ``status_code`` so the
API layer can surface it unchanged. Errors are raised inside the transaction
that would otherwise have mutated state, so nothing partial is persisted.
"""

from __future__ import annotations


class TrustError(Exception):
    """Base exception for engine failures."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NotFoundError(TrustError):
    """Referenced community, membership, offer or vouch does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(TrustError):
    """A uniqueness rule would be violated."""

    kind = "conflict"
    status_code = 409


class ForbiddenError(TrustError):
    """The caller lacks the required approved role."""

    kind = "forbidden"
    status_code = 403


class BadRequestError(TrustError):
    """The target exists but the requested transition is not allowed."""

    kind = "bad_request"
    status_code = 400
