"""Secret generation, hashing and comparison for sessions."""

import hashlib
import hmac
import secrets

from emaillogin.errors import CryptoError
from emaillogin.utils import base64url

DEFAULT_HASH_ALGORITHM = "sha256"
SESSION_ID_BYTES = 32
SECRET_BYTES = 32


def generate_session_id() -> str:
    """Return a fresh session id: 256 random bits, base64url without padding."""
    try:
        return base64url(secrets.token_bytes(SESSION_ID_BYTES))
    except Exception as e:
        raise CryptoError(f"Failed to generate session id: {e}") from e


def generate_secret() -> bytes:
    try:
        return secrets.token_bytes(SECRET_BYTES)
    except Exception as e:
        raise CryptoError(f"Failed to generate secret: {e}") from e


def hash_secret(secret: bytes, algorithm: str) -> bytes:
    """Digest a secret with a hashlib algorithm.

    Raises:
        CryptoError: If the algorithm is unknown or hashing fails
    """
    try:
        return hashlib.new(algorithm, secret).digest()
    except (ValueError, TypeError) as e:
        raise CryptoError(f"Cannot hash secret with '{algorithm}': {e}") from e


def digests_match(presented: bytes, stored: bytes) -> bool:
    """Compare two digests in time independent of their content."""
    return hmac.compare_digest(presented, stored)
