from typing import Any

from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.session.models import Session
from emaillogin.core.modules.storage.port import Storage
from emaillogin.errors import ConflictError, NotFoundError


class MemoryStorage(Storage):
    """Process-local store. Records are kept serialized so callers never share instances."""

    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, Any]] = {}
        self._accounts: dict[str, dict[str, Any]] = {}

    async def create_session(self, session: Session) -> None:
        if session.id in self._sessions:
            raise ConflictError(f"Session '{session.id}' already exists")
        self._sessions[session.id] = session.model_dump(mode="json")

    async def read_session(self, session_id: str) -> Session:
        doc = self._sessions.get(session_id)
        if doc is None:
            raise NotFoundError(f"Session '{session_id}' not found")
        return Session.model_validate(doc)

    async def update_session(self, session: Session) -> None:
        self._sessions[session.id] = session.model_dump(mode="json")

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def create_account(self, account: Account) -> None:
        if account.key in self._accounts:
            raise ConflictError(f"Account '{account.key}' already exists")
        self._accounts[account.key] = account.model_dump(mode="json")

    async def read_account(self, account_type: str, account_id: str) -> Account:
        doc = self._accounts.get(f"{account_type}:{account_id}")
        if doc is None:
            raise NotFoundError(f"Account '{account_type}:{account_id}' not found")
        return Account.model_validate(doc)

    async def update_account(self, account: Account) -> None:
        self._accounts[account.key] = account.model_dump(mode="json")

    async def delete_account(self, account_type: str, account_id: str) -> None:
        self._accounts.pop(f"{account_type}:{account_id}", None)

    async def delete_expired_sessions(self, now: int) -> int:
        expired = [sid for sid, doc in self._sessions.items() if Session.model_validate(doc).is_expired(now)]
        for session_id in expired:
            del self._sessions[session_id]
        return len(expired)
