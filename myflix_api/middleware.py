"""Request tracking middleware and bearer-token authentication."""

import uuid
from datetime import UTC, datetime
from typing import Protocol

from fastapi import Header, Request
from jose import JWTError
from loguru import logger

from .exceptions import AuthenticationError, AuthorizationError
from .models import Principal
from .security import decode_token


async def add_request_id(request: Request, call_next):
    """Add request ID to context for tracking.

    Args:
        request: Incoming FastAPI request.
        call_next: Next middleware or handler in chain.

    Returns:
        Response with X-Request-ID header.

    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "Request completed",
            status_code=response.status_code,
        )

        return response


class Authenticator(Protocol):
    """Turns a bearer credential into a Principal."""

    async def verify(self, credential: str) -> Principal:
        """Return the authenticated identity or raise ``AuthenticationError``."""
        ...


class JWTAuthenticator:
    """Verifies signed JWTs issued by the login endpoint.

    Stateless: signature and expiry are the whole check, nothing is looked up.
    """

    async def verify(self, credential: str) -> Principal:
        try:
            claims = decode_token(credential)
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {e}") from e

        username = claims.get("sub")
        if not isinstance(username, str) or not username:
            raise AuthenticationError("Token has no subject")

        expires_at = claims.get("exp")
        return Principal(
            username=username,
            expires_at=datetime.fromtimestamp(expires_at, UTC) if expires_at else None,
        )


async def get_current_principal(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Principal:
    """Authenticate the request before its handler runs.

    Args:
        request: Incoming request; the Principal is attached to ``request.state``.
        authorization: Authorization header value (Bearer token).

    Returns:
        Principal resolved from a valid token.

    Raises:
        AuthenticationError: If the credential is missing, malformed, invalid or expired.
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.debug("Rejected request without bearer credential", path=request.url.path)
        raise AuthenticationError("Missing bearer credential")

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise AuthenticationError("Missing bearer credential")

    authenticator: Authenticator = request.app.state.authenticator
    principal = await authenticator.verify(token)
    request.state.principal = principal
    return principal


def authorize(principal: Principal, username: str) -> None:
    """Only the account owner may change an account."""
    if principal.username != username:
        raise AuthorizationError(f"{principal.username} may not modify {username}")
