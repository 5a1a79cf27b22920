"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Clients authenticate with "Authorization: Bearer <access token>". Refresh
tokens are never accepted here: they are signed with a different key and
only the /auth/refresh route reads them.

get_current_user_id() raises HTTP 401 if the request is not authenticated.
It does not hit the database; routes that need the full record ask
AuthService.get_user().

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthService
from auth.tokens import TokenIssuer


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def get_current_user_id(request: Request) -> int:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user_id: int = Depends(get_current_user_id)): ...
    """
    token = _bearer_token(request)
    user_id = get_token_issuer(request).verify_access_token(token) if token else None
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user_id
