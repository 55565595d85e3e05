"""
Authentication dependencies for FastAPI.

Two ways to present the access token:
1. Cookie session (web): httpOnly cookie holding the access token
2. Bearer token (API clients): Authorization header

The token subject is the member id; a token for a member the directory does
not know is rejected like any other bad token.
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException
from pydantic import BaseModel

from matchlink import repo
from matchlink.auth.security import decode_access_token
from matchlink.config import ADMIN_TOKEN, DEV_MODE
from matchlink.database import SessionLocal

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "matchlink_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str) -> HTTPException:
    if DEV_MODE:
        detail: Any = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=401, detail=detail)


def _log_auth_failure(reason: str, trace_id: str, auth_source: str | None = None, member_id: str | None = None) -> None:
    logger.warning("[auth] failure reason=%s source=%s member=%s trace_id=%s", reason, auth_source, member_id, trace_id)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _validate_token_and_get_member(token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, auth_source)
        raise _unauthorized("unauthorized", reason, trace_id)

    member_id = str(payload.get("sub") or "")
    if not member_id:
        _log_auth_failure("token_missing_subject", trace_id, auth_source)
        raise _unauthorized("unauthorized", "token_missing_subject", trace_id)

    with SessionLocal() as db:
        member = repo.get_member(db, member_id)
    if not member:
        _log_auth_failure("member_not_found", trace_id, auth_source, member_id)
        raise _unauthorized("unauthorized", "member_not_found", trace_id)

    logger.debug("[auth] ok member=%s source=%s", member_id, auth_source)
    return {"id": str(member["id"]), "display_name": member.get("display_name")}


def get_current_member(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Resolve the calling member from the session cookie, then the bearer header."""
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token_and_get_member(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, "bearer")
            raise _unauthorized(e.detail, e.reason, e.trace_id)
        return _validate_token_and_get_member(token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, "none")
    raise _unauthorized("Authentication required", "missing_token", trace_id)


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def require_operator(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)
