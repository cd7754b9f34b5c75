from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from emaillogin.core.modules.session.models import Session


class Account(BaseModel):
    """All sessions that have proved the same external identifier.

    Keyed by (type, id), e.g. ("email", "a@b.com").
    """

    type: str
    id: str
    session_ids: list[str] = Field(default_factory=list)
    data: Any = None  # Opaque JSON-serializable application data

    @property
    def key(self) -> str:
        return f"{self.type}:{self.id}"

    def has_session(self, session_id: str) -> bool:
        return session_id in self.session_ids

    def add_session(self, session: "Session") -> None:
        """Append the session id. Callers check membership first."""
        self.session_ids.append(session.id)

    def remove_session(self, session_id: str) -> None:
        """Remove the first occurrence of the id; absent ids are ignored."""
        if session_id in self.session_ids:
            self.session_ids.remove(session_id)
