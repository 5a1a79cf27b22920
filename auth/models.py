"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the service
do the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An identity as persisted by UserStore.

    hashed_password is None for OAuth-only users (they have no local password
    and cannot use the password login or password change flows).
    AuthService never constructs or deletes an existing User; it only reads
    it and may ask the store to save a new password hash.
    """

    email: str
    id: int | None = None
    hashed_password: str | None = None  # None = OAuth-only user
    name: str | None = None
    oauth_provider: str | None = None  # "google", "github"
    oauth_subject: str | None = None  # provider's stable user ID
    created_at: str | None = None


@dataclass(frozen=True)
class UserRef:
    """Minimal reference to an authenticated identity."""

    id: int


@dataclass(frozen=True)
class TokenPair:
    """A freshly issued access/refresh pair. Returned once, never persisted."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    id: int
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class OAuthProfile:
    """Identity attributes vouched for by an upstream OAuth provider.

    The email is trusted as-is: get_oauth_user_info() refuses unverified
    addresses before a profile is ever built.
    """

    email: str
    name: str | None = None
    provider: str | None = None
    subject: str | None = None


@dataclass(frozen=True)
class PasswordChange:
    current_password: str
    new_password: str
    new_password_confirm: str
