"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the Planboard API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Taxonomy (one subclass per failure family, all carry a registered code):
  InvalidRequestError  (422) — bad input rejected before any mutation
  StateConflictError   (409) — the row's derived role does not match the operation,
                               or a project still has lines
  NotFoundError        (404) — referenced line / project / client / article / consultant missing
  ConsistencyError     (500) — a group invariant does not hold; pre-existing data defect

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - A ConsistencyError is never auto-repaired. Repair is the explicit
    report-remainder operation.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class InvalidRequestError(AppError):
    """Input is well-formed but not acceptable for the current state (422)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 422, field=field)


class StateConflictError(AppError):
    """The target row does not play the role the operation requires (409)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 409)


class NotFoundError(AppError):

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 404)


class ConsistencyError(AppError):
    """
    A group invariant is violated. Carries the group id so the defect can be
    located; the client only ever sees the code and message.
    """

    def __init__(self, code: str, message: str, group_id: str | None = None) -> None:
        super().__init__(code, message, 500)
        self.group_id = group_id

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.group_id is not None:
            payload["error"]["group_id"] = self.group_id
        return payload


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD               = "MISSING_FIELD"
    INVALID_FIELD               = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION    = "INVALID_AMOUNT_PRECISION"
    INVALID_QUANTITY_PRECISION  = "INVALID_QUANTITY_PRECISION"
    INVALID_DATE_RANGE          = "INVALID_DATE_RANGE"
    METHOD_NOT_ALLOWED          = "METHOD_NOT_ALLOWED"

    # ── Business Rule Violations (422) ────────────────────────────────────
    EMPTY_DAY_SELECTION         = "EMPTY_DAY_SELECTION"
    SELECTION_EXCEEDS_REMAINDER = "SELECTION_EXCEEDS_REMAINDER"
    REMAINDER_EXHAUSTED         = "REMAINDER_EXHAUSTED"
    NOTHING_TO_SPLIT            = "NOTHING_TO_SPLIT"
    REALIZED_EXCEEDS_PLANNED    = "REALIZED_EXCEEDS_PLANNED"
    CONTACT_CLIENT_MISMATCH     = "CONTACT_CLIENT_MISMATCH"

    # ── State Conflicts (409) ──────────────────────────────────────────────
    NOT_A_REMAINDER             = "NOT_A_REMAINDER"
    NOT_AN_ALLOCATION           = "NOT_AN_ALLOCATION"
    ALREADY_A_REMAINDER         = "ALREADY_A_REMAINDER"
    REMAINDER_ALREADY_EXISTS    = "REMAINDER_ALREADY_EXISTS"
    INVALID_PRORATION_BASE      = "INVALID_PRORATION_BASE"
    PROJECT_HAS_LINES           = "PROJECT_HAS_LINES"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    LINE_NOT_FOUND              = "LINE_NOT_FOUND"
    LINE_GROUP_NOT_FOUND        = "LINE_GROUP_NOT_FOUND"
    PROJECT_NOT_FOUND           = "PROJECT_NOT_FOUND"
    CLIENT_NOT_FOUND            = "CLIENT_NOT_FOUND"
    CLIENT_CONTACT_NOT_FOUND    = "CLIENT_CONTACT_NOT_FOUND"
    ARTICLE_NOT_FOUND           = "ARTICLE_NOT_FOUND"
    CONSULTANT_NOT_FOUND        = "CONSULTANT_NOT_FOUND"
    ROUTE_NOT_FOUND             = "ROUTE_NOT_FOUND"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    # Tokens are issued by the external identity provider; this service only
    # verifies them. There is no 403: authorization policy is out of scope.
    TOKEN_MISSING               = "TOKEN_MISSING"
    TOKEN_INVALID               = "TOKEN_INVALID"
    TOKEN_EXPIRED               = "TOKEN_EXPIRED"

    # ── Consistency / System Errors (500) ─────────────────────────────────
    REMAINDER_MISSING           = "REMAINDER_MISSING"
    INVARIANT_VIOLATED          = "INVARIANT_VIOLATED"
    INTERNAL_ERROR              = "INTERNAL_ERROR"
