"""Password hashing with bcrypt."""

import bcrypt

DEFAULT_ROUNDS = 12


class SecretHasher:
    """One-way, salted password hashing with a fixed bcrypt work factor.

    The raw secret is never logged or stored. ``verify`` returns ``False`` for
    a malformed digest instead of raising, so callers cannot tell a corrupted
    record apart from a wrong password.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        """Hash a plaintext secret."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, digest: str) -> bool:
        """Check a plaintext secret against a stored digest."""
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        """True when the digest was produced with a different work factor."""
        # bcrypt format: $2b$<rounds>$<salt+hash>
        parts = digest.split("$")
        if len(parts) < 4:
            return True
        try:
            return int(parts[2]) != self.rounds
        except ValueError:
            return True
