"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST  /api/v1/auth/signup                     -- create a local account
  POST  /api/v1/auth/login                      -- email/password login; returns a token pair
  POST  /api/v1/auth/refresh                    -- rotate the refresh token (RTR)
  POST  /api/v1/auth/logout                     -- drop the refresh session (requires auth)
  GET   /api/v1/auth/me                         -- current identity (requires auth)
  PATCH /api/v1/auth/password                   -- change password (requires auth)
  GET   /api/v1/auth/providers                  -- enabled OAuth providers (public)
  GET   /api/v1/auth/oauth/{provider}           -- redirect to the provider
  GET   /api/v1/auth/oauth/{provider}/callback  -- code exchange; returns a token pair

Errors raised by AuthService (UnauthorizedError, BadRequestError,
InternalError) are mapped to responses by the AuthError handler in
api/main.py, so handlers here just let them propagate.

Security:
  AuthService.validate_local_user() equalizes timing -- never inline the lookup.
  Cache-Control: no-store on every response that carries tokens.
  Refresh: the refresh JWT's signature only identifies the user. The token
      must also match the hash stored for that user, so a rotated-away or
      logged-out token is rejected even though it has not expired.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    OAuthProviderInfo,
    PasswordUpdateRequest,
    RefreshRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
)
from auth.dependencies import get_auth_service, get_current_user_id, get_token_issuer
from auth.errors import UnauthorizedError
from auth.models import LoginResult, PasswordChange
from auth.oauth import get_enabled_providers, get_oauth_user_info
from auth.service import AuthService
from auth.tokens import TokenIssuer

logger = logging.getLogger("cinebase.api.auth")

router = APIRouter()


def _login_response(result: LoginResult) -> JSONResponse:
    resp = JSONResponse(
        content=LoginResponse(
            id=result.id,
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        ).model_dump()
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _require_enabled_provider(request: Request, provider: str) -> None:
    enabled = {p["name"] for p in get_enabled_providers(request.app.state.settings)}
    if provider not in enabled:
        raise HTTPException(
            status_code=404,
            detail={"code": "unknown_provider", "message": f"OAuth provider {provider!r} is not enabled."},
        )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
async def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> SignupResponse:
    ref = await service.register_local_user(body.email, body.password, body.name)
    return SignupResponse(id=ref.id)


@router.post("/auth/login", response_model=LoginResponse)
async def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with email and password; return an access/refresh pair.

    The same 401 is returned for unknown email, OAuth-only account and wrong
    password, so the response does not reveal which accounts exist.
    """
    ref = await service.validate_local_user(body.email, body.password)
    return _login_response(await service.login(ref.id))


@router.post("/auth/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> JSONResponse:
    """Trade the current refresh token for a new pair. The old one stops working."""
    user_id = issuer.verify_refresh_token(body.refresh_token)
    if user_id is None:
        raise UnauthorizedError("Invalid refresh token.")
    ref = await service.validate_refresh_token(user_id, body.refresh_token)
    pair = await service.refresh_token(ref.id)
    resp = JSONResponse(
        content=TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token).model_dump()
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty when no OAuth env vars are set."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(request.app.state.settings)]


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/auth/oauth/{provider}")
async def oauth_redirect(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page.

    Only enabled provider names are accepted, so a spoofed name cannot point
    the redirect somewhere else.
    """
    _require_enabled_provider(request, provider)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/oauth/{provider}/callback", name="oauth_callback")
async def oauth_callback(
    request: Request,
    provider: str,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Finish the authorization code flow and start a session.

    Flow:
      1. Exchange the code for a token (authlib checks the session state).
      2. Extract a verified email -- ValueError means reject.
      3. Resolve or create the identity by email.
      4. Issue and store a token pair exactly like a password login.
    """
    _require_enabled_provider(request, provider)
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        raise UnauthorizedError("OAuth authentication failed.") from exc

    try:
        profile = await get_oauth_user_info(client, provider, token)
    except ValueError as exc:
        logger.warning("OAuth login rejected: unverified or missing email from %r", provider)
        raise UnauthorizedError("OAuth authentication failed.") from exc

    ref = await service.validate_oauth_user(profile)
    return _login_response(await service.login(ref.id))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout")
async def logout(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """End the refresh session. Access tokens already issued run until they expire."""
    await service.logout(user_id)
    return JSONResponse(content={"message": "Logged out."})


@router.get("/auth/me", response_model=MeResponse)
async def me(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    user = await service.get_user(user_id)
    return MeResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        oauth_provider=user.oauth_provider,
        has_password=user.hashed_password is not None,
    )


@router.patch("/auth/password", status_code=204)
async def update_password(
    body: PasswordUpdateRequest,
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    await service.update_password(
        user_id,
        PasswordChange(
            current_password=body.current_password,
            new_password=body.new_password,
            new_password_confirm=body.new_password_confirm,
        ),
    )
    return Response(status_code=204)
