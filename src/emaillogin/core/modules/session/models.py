"""Session and claim models."""

import base64

from pydantic import BaseModel, Field

from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.session.crypto import (
    DEFAULT_HASH_ALGORITHM,
    digests_match,
    generate_secret,
    generate_session_id,
    hash_secret,
)

SESSION_SCHEMA_VERSION = 1
EMAIL_CLAIM = "email"


class Claim(BaseModel):
    """Assertion that the session holder controls an external identifier.

    proved_at is 0 until the claim is proved; once proved it never reverts.
    """

    type: str
    id: str
    proved_at: int = 0

    @property
    def proved(self) -> bool:
        return self.proved_at > 0


class Session(BaseModel):
    """Bearer credential unit: an id plus a hashed secret, with expiry and claims.

    The raw secret is never stored; only its digest and the hash algorithm are.
    """

    id: str
    secret_hash_algorithm: str = ""
    secret_digest: str = ""  # base64 digest of the secret
    created_at: int = 0
    last_auth_at: int = 0
    expire_at: int = 0
    renew_at: int = 0  # 0 disables renewal
    claims: list[Claim] = Field(default_factory=list)
    version: int = SESSION_SCHEMA_VERSION
    # Linked account, loaded by the registry. Never persisted with the session.
    account: Account | None = Field(default=None, exclude=True)

    def set_secret(self) -> bytes:
        """Generate a new secret, store its digest, and return the raw secret.

        Each call invalidates the previous secret.

        Raises:
            CryptoError: If randomness or hashing fails
        """
        secret = generate_secret()
        digest = hash_secret(secret, DEFAULT_HASH_ALGORITHM)
        self.secret_hash_algorithm = DEFAULT_HASH_ALGORITHM
        self.secret_digest = base64.b64encode(digest).decode("ascii")
        return secret

    def verify_secret(self, presented: bytes) -> bool:
        """Check a presented secret against the stored digest in constant time."""
        if not self.secret_digest:
            return False
        presented_digest = hash_secret(presented, self.secret_hash_algorithm)
        return digests_match(presented_digest, base64.b64decode(self.secret_digest))

    def is_expired(self, now: int) -> bool:
        return self.expire_at <= now

    def should_renew(self, now: int) -> bool:
        return self.renew_at > 0 and now >= self.renew_at

    def find_claim(self, claim_type: str, claim_id: str) -> Claim | None:
        return next((c for c in self.claims if c.type == claim_type and c.id == claim_id), None)

    def find_claim_of_type(self, claim_type: str) -> Claim | None:
        """Return the first claim of a type, for single-valued namespaces like email."""
        return next((c for c in self.claims if c.type == claim_type), None)

    def add_claim(self, claim_type: str, claim_id: str) -> Claim:
        """Return the existing (type, id) claim, or append a new unproved one."""
        claim = self.find_claim(claim_type, claim_id)
        if claim is None:
            claim = Claim(type=claim_type, id=claim_id)
            self.claims.append(claim)
        return claim

    def prove_claim(self, claim: Claim, now: int) -> None:
        # A proved claim keeps its first proof time.
        if not claim.proved:
            claim.proved_at = now

    def email_verified(self) -> bool:
        return any(c.type == EMAIL_CLAIM and c.proved for c in self.claims)

    def primary_email(self) -> str | None:
        """Id of the first proved email claim."""
        return next((c.id for c in self.claims if c.type == EMAIL_CLAIM and c.proved), None)

    def is_linked(self) -> bool:
        return self.account is not None and self.account.has_session(self.id)


def new_session(now: int, lifespan_ms: int, renewal_period_ms: int = 0) -> Session:
    """Create a session with a fresh id and no secret yet.

    Raises:
        CryptoError: If the id cannot be generated
    """
    return Session(
        id=generate_session_id(),
        created_at=now,
        expire_at=now + lifespan_ms,
        renew_at=now + renewal_period_ms if renewal_period_ms > 0 else 0,
    )
