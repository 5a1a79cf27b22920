"""
auth/service.py -- Login, logout, refresh rotation, password and OAuth flows.

AuthService is the only owner of the refresh-session lifecycle:

  no session --login--> active --refresh_token--> rotated --logout/TTL--> no session

Rotation (RTR): the route layer first calls validate_refresh_token() to prove
the caller holds the latest refresh token, then refresh_token() to mint a new
pair. The new pair's refresh token is hashed over the old one in the store,
so the old raw token can never be replayed. refresh_token() itself performs
no credential check -- it is the "issue" half of rotation.

Concurrency: every operation is a coroutine. Store and UserStore calls are
suspension points; bcrypt/Argon2 work and the synchronous SQLAlchemy store run
in worker threads so the event loop keeps serving other requests. There are
no locks. Two rotations racing for the same user are last-writer-wins: the
losing token simply stops validating.

All collaborators and the refresh-session TTL are injected. Nothing here reads
the environment.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import BadRequestError, UnauthorizedError
from auth.hashing import SecretHasher
from auth.models import LoginResult, OAuthProfile, PasswordChange, TokenPair, User, UserRef
from auth.session_store import RefreshTokenStore
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("cinebase.auth.service")


class AuthService:
    def __init__(
        self,
        user_store: UserStore,
        hasher: SecretHasher,
        issuer: TokenIssuer,
        refresh_store: RefreshTokenStore,
        refresh_ttl_seconds: int,
    ) -> None:
        self._users = user_store
        self._hasher = hasher
        self._issuer = issuer
        self._refresh_store = refresh_store
        self._refresh_ttl_seconds = refresh_ttl_seconds

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def login(self, user_id: int) -> LoginResult:
        """Start a session. Replaces any refresh session the user already had."""
        pair = await self._issue_and_store(user_id)
        logger.info("Session started for user %d", user_id)
        return LoginResult(id=user_id, access_token=pair.access_token, refresh_token=pair.refresh_token)

    async def logout(self, user_id: int) -> None:
        await self._refresh_store.delete(user_id)
        logger.info("Session ended for user %d", user_id)

    async def refresh_token(self, user_id: int) -> TokenPair:
        """Issue a new pair and store its hash. Call validate_refresh_token() first."""
        pair = await self._issue_and_store(user_id)
        logger.info("Refresh token rotated for user %d", user_id)
        return pair

    async def validate_refresh_token(self, user_id: int, refresh_token: str) -> UserRef:
        """Check a raw refresh token against the stored hash for user_id.

        Absent (never issued, logged out, expired) and mismatched (rotated
        away, forged) both raise UnauthorizedError with the same message.
        """
        hashed = await self.get_hashed_refresh_token(user_id)
        if not hashed:
            logger.info("Refresh rejected for user %d: no active session", user_id)
            raise UnauthorizedError("Invalid refresh token.")
        valid = await asyncio.to_thread(self._hasher.verify_refresh_secret, hashed, refresh_token)
        if not valid:
            logger.warning("Refresh rejected for user %d: token does not match the active session", user_id)
            raise UnauthorizedError("Invalid refresh token.")
        return UserRef(id=user_id)

    async def generate_tokens(self, user_id: int) -> TokenPair:
        """Issue a pair without touching the store."""
        return await self._issuer.issue(user_id)

    async def get_hashed_refresh_token(self, user_id: int) -> str | None:
        return await self._refresh_store.get(user_id)

    async def update_hashed_refresh_token(self, user_id: int, hashed_refresh_token: str) -> None:
        """Overwrite the user's slot with an already-hashed value and reset its TTL."""
        await self._refresh_store.put(user_id, hashed_refresh_token, self._refresh_ttl_seconds)

    async def _issue_and_store(self, user_id: int) -> TokenPair:
        pair = await self.generate_tokens(user_id)
        hashed = await asyncio.to_thread(self._hasher.hash_refresh_secret, pair.refresh_token)
        await self.update_hashed_refresh_token(user_id, hashed)
        return pair

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    async def validate_local_user(self, email: str, password: str) -> UserRef:
        """Authenticate an email/password login.

        Unknown email and OAuth-only account still cost one bcrypt check,
        and the message is the same for every failure so it does not reveal
        which accounts exist.
        """
        user = await asyncio.to_thread(self._users.find_by_email, email)
        if user is None or not user.hashed_password:
            await asyncio.to_thread(self._hasher.dummy_password_check, password)
            logger.info("Local login rejected: unknown email or OAuth-only account")
            raise UnauthorizedError("Invalid email or password.")
        if not await asyncio.to_thread(self._hasher.verify_password, password, user.hashed_password):
            logger.info("Local login rejected for user %d: wrong password", user.id)
            raise UnauthorizedError("Invalid email or password.")
        return UserRef(id=user.id)

    async def validate_oauth_user(self, profile: OAuthProfile) -> UserRef:
        """Resolve (or create) the identity for an email the provider vouched for.

        No password is checked on this path. A new identity is created without
        a password hash, which keeps it out of the password flows.
        """
        user = await asyncio.to_thread(self._users.find_by_email, profile.email)
        if user is not None:
            return UserRef(id=user.id)
        new_user = User(
            email=profile.email,
            name=profile.name,
            oauth_provider=profile.provider,
            oauth_subject=profile.subject,
        )
        try:
            created = await asyncio.to_thread(self._users.create, new_user)
        except IntegrityError:
            # A concurrent callback for the same email won the insert.
            existing = await asyncio.to_thread(self._users.find_by_email, profile.email)
            if existing is None:
                raise
            return UserRef(id=existing.id)
        logger.info("Created OAuth account %d via %s", created.id, profile.provider or "oauth")
        return UserRef(id=created.id)

    async def register_local_user(self, email: str, password: str, name: str | None = None) -> UserRef:
        hashed = await asyncio.to_thread(self._hasher.hash_password, password)
        try:
            created = await asyncio.to_thread(
                self._users.create, User(email=email, hashed_password=hashed, name=name)
            )
        except IntegrityError as exc:
            raise BadRequestError("An account with that email already exists.") from exc
        logger.info("Registered local account %d", created.id)
        return UserRef(id=created.id)

    async def get_user(self, user_id: int) -> User:
        user = await asyncio.to_thread(self._users.find_by_id, user_id)
        if user is None:
            raise UnauthorizedError("User does not exist.")
        return user

    async def update_password(self, user_id: int, change: PasswordChange) -> None:
        """Change a local account's password.

        Checks run in a fixed order and nothing is written unless all pass:
        account exists, account has a password, current password matches,
        new password and confirmation agree. The new password is bcrypt-hashed
        before it is saved so validate_local_user() keeps working afterwards.
        """
        user = await asyncio.to_thread(self._users.find_by_id, user_id)
        if user is None:
            raise UnauthorizedError("User does not exist.")
        if not user.hashed_password:
            raise UnauthorizedError("This account has no password; sign in with your OAuth provider.")
        if not await asyncio.to_thread(self._hasher.verify_password, change.current_password, user.hashed_password):
            logger.info("Password change rejected for user %d: wrong current password", user_id)
            raise UnauthorizedError("Current password is incorrect.")
        if change.new_password != change.new_password_confirm:
            raise BadRequestError("New password and confirmation do not match.")

        user.hashed_password = await asyncio.to_thread(self._hasher.hash_password, change.new_password)
        await asyncio.to_thread(self._users.save, user)
        logger.info("Password changed for user %d", user_id)
