from __future__ import annotations

from passlib.context import CryptContext

from src.shared.logging import get_logger

logger = get_logger(__name__)


class PasswordHasher:
    """Argon2id password hashing via passlib."""

    def __init__(self, **argon2_options: int) -> None:
        options = {
            "argon2__memory_cost": 65536,
            "argon2__time_cost": 3,
            "argon2__parallelism": 4,
        }
        options.update({f"argon2__{k}": v for k, v in argon2_options.items()})
        self._context = CryptContext(schemes=["argon2"], deprecated="auto", **options)

    def hash(self, plain_password: str) -> str:
        """
        Hash a plain text password.

        Raises:
            ValueError: If password is empty
        """
        if not plain_password:
            raise ValueError("Password cannot be empty")
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """True if ``plain_password`` matches; empty inputs or unknown hash formats never match."""
        if not plain_password or not hashed_password:
            return False
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError:
            logger.warning("password_hash_unrecognized")
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verify; used when the account does not exist."""
        self._context.dummy_verify()
