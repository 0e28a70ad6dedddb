"""Password hashing capability backed by Argon2id."""

from argon2 import PasswordHasher as Argon2PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError


class PasswordHasher:
    """Hashes and verifies user passwords.

    Encoded hashes carry their own algorithm, parameters and salt, for
    example $argon2id$v=19$m=65536,t=3,p=4$salt$hash.
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
    ) -> None:
        """Initialize password hasher.

        Args:
            time_cost: Argon2 iterations.
            memory_cost: Argon2 memory in KiB.
            parallelism: Argon2 lanes.
        """
        self._hasher = Argon2PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        return self._hasher.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against an encoded hash.

        Returns:
            True if the password matches, False otherwise.
        """
        try:
            return self._hasher.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False


# Global hasher instance
_default_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get default password hasher instance."""
    global _default_hasher

    if _default_hasher is None:
        _default_hasher = PasswordHasher()

    return _default_hasher
