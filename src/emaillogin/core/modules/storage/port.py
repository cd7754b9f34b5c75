"""Persistence contract used by the registry."""

from abc import ABC, abstractmethod

from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.session.models import Session


class Storage(ABC):
    """Session and account store.

    Reads raise NotFoundError for absent records; any other backend failure
    is raised as StorageError. Deleting an absent record is not an error.
    """

    async def setup(self) -> None:
        """Prepare the backend (directories, indexes). Run once at startup."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def create_session(self, session: Session) -> None: ...

    @abstractmethod
    async def read_session(self, session_id: str) -> Session: ...

    @abstractmethod
    async def update_session(self, session: Session) -> None:
        """Save the session, creating it if absent."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> None: ...

    @abstractmethod
    async def create_account(self, account: Account) -> None:
        """Insert a new account. Raises ConflictError if (type, id) exists."""

    @abstractmethod
    async def read_account(self, account_type: str, account_id: str) -> Account: ...

    @abstractmethod
    async def update_account(self, account: Account) -> None:
        """Save the account, creating it if absent."""

    @abstractmethod
    async def delete_account(self, account_type: str, account_id: str) -> None: ...

    @abstractmethod
    async def delete_expired_sessions(self, now: int) -> int:
        """Delete every session with expire_at <= now and return how many were deleted."""
