"""Random one-time secrets and their storage digests."""

import hashlib
import hmac
import secrets

SECRET_BYTES = 32  # 256 bits -> 64 hex characters


class TokenCodec:
    """Generates high-entropy secrets and the SHA-256 digests stored in their place."""

    def generate_secret(self) -> tuple[str, str]:
        """Return ``(raw_secret, digest)``. Only the digest may be persisted."""
        raw_secret = secrets.token_hex(SECRET_BYTES)
        return raw_secret, self.digest(raw_secret)

    def digest(self, raw_secret: str) -> str:
        return hashlib.sha256(raw_secret.encode("utf-8")).hexdigest()

    def matches(self, raw_secret: str, digest: str) -> bool:
        return hmac.compare_digest(self.digest(raw_secret), digest)
