"""Password hashing service."""

import bcrypt

from servitech.config import get_settings


class PasswordHasher:
    """Salted bcrypt hashing for user passwords and reset secrets."""

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds or get_settings().BCRYPT_ROUNDS

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Constant-time check of ``plaintext`` against a stored hash."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed hash or over-long input
            return False


_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _hasher
    if _hasher is None:
        _hasher = PasswordHasher()
    return _hasher
