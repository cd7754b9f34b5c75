from pydantic import BaseModel, Field

from emaillogin.core.modules.session.models import Session


class LoginResult(BaseModel):
    token: str = Field(..., description="Bearer token for the new session")
    session: Session


class TokenAuthResult(BaseModel):
    """Outcome of authenticating a bearer token.

    When the secret was rotated, token is the replacement the client must store.
    """

    authenticated: bool
    session: Session | None = None
    token: str | None = None
    renewed: bool = False


class ConfirmResult(BaseModel):
    """Outcome of following a proof link.

    token is the bearer token of the session that now holds the proved claim.
    """

    confirmed: bool
    token: str | None = None
    session: Session | None = None
