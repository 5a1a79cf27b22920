"""
auth/hashing.py -- One-way hashing for the two secrets the auth layer keeps.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). Bcrypt's cost factor
       makes brute-forcing low-entropy secrets expensive and it manages its own
       salt. checkpw() compares in constant time.

  Refresh tokens: Argon2id via argon2-cffi. Only a hash of the latest refresh
       token is stored, so a leaked store does not hand out live sessions.
       Argon2 is memory-hard, which is what we want for a proof that sits in
       a shared cache.

  The two families are exposed as separately named methods and are NOT
  interchangeable. A bcrypt hash fed to verify_refresh_secret() (or an Argon2
  hash fed to verify_password()) simply fails verification.

  Verification never raises: malformed hashes, the wrong hash family and
  oversized bcrypt inputs all come back as False.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt
from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("cinebase.auth.hashing")


class SecretHasher:
    """Hash and verify login passwords (bcrypt) and refresh-token proofs (Argon2id).

    Usage:
        hasher = SecretHasher.from_settings(get_settings())
        stored = hasher.hash_password("hunter2hunter2")
        hasher.verify_password("hunter2hunter2", stored)   # True
    """

    def __init__(
        self,
        bcrypt_rounds: int = 12,
        argon2_time_cost: int = 3,
        argon2_memory_cost: int = 65536,
        argon2_parallelism: int = 4,
    ) -> None:
        self._bcrypt_rounds = bcrypt_rounds
        self._argon2 = PasswordHasher(
            time_cost=argon2_time_cost,
            memory_cost=argon2_memory_cost,
            parallelism=argon2_parallelism,
            type=Type.ID,
        )
        # Timing equalization dummy hash. Computed once so the first
        # failed login is not measurably slower than later ones.
        self._dummy_hash = self.hash_password("cinebase_timing_dummy")

    @classmethod
    def from_settings(cls, settings: Settings) -> SecretHasher:
        return cls(
            bcrypt_rounds=settings.bcrypt_rounds,
            argon2_time_cost=settings.argon2_time_cost,
            argon2_memory_cost=settings.argon2_memory_cost,
            argon2_parallelism=settings.argon2_parallelism,
        )

    # ------------------------------------------------------------------
    # Passwords (bcrypt)
    # ------------------------------------------------------------------

    def hash_password(self, raw: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        bcrypt only looks at the first 72 bytes and newer releases reject
        longer input outright. The API layer caps password length in bytes,
        which keeps inputs below that threshold.
        """
        return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt(rounds=self._bcrypt_rounds)).decode("utf-8")

    def verify_password(self, raw: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
        except Exception:
            return False

    def dummy_password_check(self, raw: str) -> None:
        """Spend one bcrypt verification on a fixed hash.

        Call this on every login path that fails before reaching a real
        verify_password() so response time does not reveal whether an email
        exists or belongs to an OAuth-only account.
        """
        self.verify_password(raw, self._dummy_hash)

    # ------------------------------------------------------------------
    # Refresh-token proofs (Argon2id)
    # ------------------------------------------------------------------

    def hash_refresh_secret(self, raw: str) -> str:
        return self._argon2.hash(raw)

    def verify_refresh_secret(self, hashed: str, raw: str) -> bool:
        """Return True if raw matches the Argon2 hash. Argument order follows argon2-cffi."""
        try:
            return self._argon2.verify(hashed, raw)
        except (VerificationError, InvalidHashError):
            return False
        except (TypeError, ValueError):
            # Non-str input or a hash that is not even ASCII.
            logger.debug("Malformed refresh-token hash rejected")
            return False
