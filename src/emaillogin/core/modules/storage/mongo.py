"""MongoDB storage backed by the async pymongo client."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.session.models import Session
from emaillogin.core.modules.storage.port import Storage
from emaillogin.errors import ConflictError, NotFoundError, StorageError


@asynccontextmanager
async def _storage_errors(action: str) -> AsyncGenerator[None]:
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError(f"Cannot {action}: record already exists") from e
    except PyMongoError as e:
        raise StorageError(f"Cannot {action}: {e}") from e


def session_to_mongo(session: Session) -> dict[str, Any]:
    """Convert the session to a document with the id stored as _id."""
    data = session.model_dump()
    data["_id"] = data.pop("id")
    return data


def session_from_mongo(doc: dict[str, Any]) -> Session:
    data = dict(doc)
    data["id"] = data.pop("_id")
    return Session.model_validate(data)


def account_to_mongo(account: Account) -> dict[str, Any]:
    """Accounts are keyed by "type:id" so one collection holds every identifier namespace."""
    return {"_id": account.key, **account.model_dump()}


def account_from_mongo(doc: dict[str, Any]) -> Account:
    data = {k: v for k, v in doc.items() if k != "_id"}
    return Account.model_validate(data)


class MongoStorage(Storage):
    """Sessions and accounts in the "sessions" and "accounts" collections."""

    def __init__(self, database_url: str) -> None:
        self._client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(database_url)
        database = self._client.get_database(urlparse(database_url).path[1:] or "emaillogin")
        self._sessions = database.get_collection("sessions")
        self._accounts = database.get_collection("accounts")

    async def setup(self) -> None:
        """Create indexes on startup."""
        async with _storage_errors("create indexes"):
            # Index for the expired-session sweep
            await self._sessions.create_index([("expire_at", 1)])

    async def close(self) -> None:
        await self._client.aclose()

    async def create_session(self, session: Session) -> None:
        async with _storage_errors("create session"):
            await self._sessions.insert_one(session_to_mongo(session))

    async def read_session(self, session_id: str) -> Session:
        async with _storage_errors("read session"):
            doc = await self._sessions.find_one({"_id": session_id})
        if doc is None:
            raise NotFoundError(f"Session '{session_id}' not found")
        return session_from_mongo(doc)

    async def update_session(self, session: Session) -> None:
        async with _storage_errors("update session"):
            await self._sessions.replace_one({"_id": session.id}, session_to_mongo(session), upsert=True)

    async def delete_session(self, session_id: str) -> None:
        async with _storage_errors("delete session"):
            await self._sessions.delete_one({"_id": session_id})

    async def create_account(self, account: Account) -> None:
        async with _storage_errors("create account"):
            await self._accounts.insert_one(account_to_mongo(account))

    async def read_account(self, account_type: str, account_id: str) -> Account:
        async with _storage_errors("read account"):
            doc = await self._accounts.find_one({"_id": f"{account_type}:{account_id}"})
        if doc is None:
            raise NotFoundError(f"Account '{account_type}:{account_id}' not found")
        return account_from_mongo(doc)

    async def update_account(self, account: Account) -> None:
        async with _storage_errors("update account"):
            await self._accounts.replace_one({"_id": account.key}, account_to_mongo(account), upsert=True)

    async def delete_account(self, account_type: str, account_id: str) -> None:
        async with _storage_errors("delete account"):
            await self._accounts.delete_one({"_id": f"{account_type}:{account_id}"})

    async def delete_expired_sessions(self, now: int) -> int:
        async with _storage_errors("delete expired sessions"):
            result = await self._sessions.delete_many({"expire_at": {"$lte": now}})
        return result.deleted_count
