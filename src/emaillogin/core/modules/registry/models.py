from typing import Any

from pydantic import BaseModel

from emaillogin.core.modules.session.models import Session


class AuthResult(BaseModel):
    """Outcome of presenting a session secret.

    new_secret is set when the secret was rotated; the caller must hand it
    to the client, the old secret no longer authenticates.
    """

    authenticated: bool
    session: Session | None = None
    new_secret: bytes | None = None


class AccountView(BaseModel):
    """Account with its sessions loaded."""

    type: str
    id: str
    sessions: list[Session]
    data: Any = None
