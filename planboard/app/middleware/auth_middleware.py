"""
middleware/auth_middleware.py — JWT authentication decorator.

Access tokens are issued by the external identity provider; this service
never logs anyone in. The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Verifies the JWT signature with the shared secret (JWT_SECRET_KEY)
  3. Checks expiry, and the audience when JWT_AUDIENCE is configured
  4. Attaches the `sub` claim to flask.g.user_id for the request
  5. Raises the appropriate 401 AppError if any step fails

Authorization policy (who may plan what) is out of scope: an authenticated
caller may call every endpoint. Services never see JWTs or headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, bad signature, bad audience, no sub
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from planboard.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @project_lines_bp.route("/project-lines/<int:line_id>")
        @require_auth
        def get_project_line(line_id):
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the JWT verification sequence and sets flask.g.user_id.

    Separated from the decorator wrapper so tests can call it inside a
    request context without a real view function.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    audience = current_app.config.get("JWT_AUDIENCE")
    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Obtain a new one from the identity provider.",
            401,
        )
    except jwt.InvalidTokenError:
        # Covers: bad signature, malformed token, wrong audience, etc.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    sub = payload.get("sub")
    if sub is None or str(sub).strip() == "":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is missing the required 'sub' claim.",
            401,
        )

    # Identity-provider subjects are opaque strings (UUIDs, emails...).
    g.user_id = str(sub)
