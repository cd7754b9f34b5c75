"""File-system storage: one JSON document per record."""

import asyncio
import json
import os
import re
from pathlib import Path
from typing import TypeVar

import structlog

from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.session.models import Session
from emaillogin.core.modules.storage.port import Storage
from emaillogin.errors import ConflictError, NotFoundError, StorageError, ValidationError
from emaillogin.utils import base64url

logger = structlog.get_logger(__name__)

T = TypeVar("T", Session, Account)

SESSION_DIR = "session"
SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
ACCOUNT_TYPE_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


class FileStorage(Storage):
    """Stores sessions under <root>/session/<id> and accounts under <root>/<type>/<base64url(id)>."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    async def setup(self) -> None:
        await asyncio.to_thread(self._mkdirs)

    async def create_session(self, session: Session) -> None:
        await asyncio.to_thread(self._write, self._session_path(session.id), session.model_dump_json(), exclusive=True)

    async def read_session(self, session_id: str) -> Session:
        if not SESSION_ID_RE.fullmatch(session_id):
            raise NotFoundError(f"Session '{session_id}' not found")
        raw = await asyncio.to_thread(self._read, self._session_path(session_id))
        if raw is None:
            raise NotFoundError(f"Session '{session_id}' not found")
        return self._decode(Session, raw)

    async def update_session(self, session: Session) -> None:
        await asyncio.to_thread(self._write, self._session_path(session.id), session.model_dump_json())

    async def delete_session(self, session_id: str) -> None:
        if not SESSION_ID_RE.fullmatch(session_id):
            return
        await asyncio.to_thread(self._unlink, self._session_path(session_id))

    async def create_account(self, account: Account) -> None:
        await asyncio.to_thread(
            self._write, self._account_path(account.type, account.id), account.model_dump_json(), exclusive=True
        )

    async def read_account(self, account_type: str, account_id: str) -> Account:
        raw = await asyncio.to_thread(self._read, self._account_path(account_type, account_id))
        if raw is None:
            raise NotFoundError(f"Account '{account_type}:{account_id}' not found")
        return self._decode(Account, raw)

    async def update_account(self, account: Account) -> None:
        await asyncio.to_thread(self._write, self._account_path(account.type, account.id), account.model_dump_json())

    async def delete_account(self, account_type: str, account_id: str) -> None:
        await asyncio.to_thread(self._unlink, self._account_path(account_type, account_id))

    async def delete_expired_sessions(self, now: int) -> int:
        return await asyncio.to_thread(self._delete_expired, now)

    def _session_path(self, session_id: str) -> Path:
        return self._root / SESSION_DIR / session_id

    def _account_path(self, account_type: str, account_id: str) -> Path:
        if not ACCOUNT_TYPE_RE.fullmatch(account_type) or account_type == SESSION_DIR:
            raise ValidationError(f"Invalid account type '{account_type}'")
        return self._root / account_type / base64url(account_id)

    def _mkdirs(self) -> None:
        try:
            (self._root / SESSION_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self._root}: {e}") from e

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def _write(self, path: Path, content: str, exclusive: bool = False) -> None:
        """Write through a temporary file so readers never see a partial record."""
        if exclusive and path.exists():
            raise ConflictError(f"Record '{path.name}' already exists")
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e

    def _delete_expired(self, now: int) -> int:
        session_dir = self._root / SESSION_DIR
        if not session_dir.exists():
            return 0
        deleted = 0
        for path in session_dir.iterdir():
            if path.name.startswith("."):
                continue
            raw = self._read(path)
            if raw is None:
                continue
            try:
                session = Session.model_validate_json(raw)
            except ValueError:
                logger.warning("session_file_unreadable", path=str(path))
                continue
            if session.is_expired(now):
                self._unlink(path)
                deleted += 1
        return deleted

    @staticmethod
    def _decode(model: type[T], raw: str) -> T:
        try:
            return model.model_validate_json(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt {model.__name__.lower()} record: {e}") from e
