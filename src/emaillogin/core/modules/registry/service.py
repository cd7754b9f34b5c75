import asyncio
from typing import Any

import structlog

from emaillogin.core.core import Service
from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.registry.models import AuthResult
from emaillogin.core.modules.session.models import EMAIL_CLAIM, Session, new_session
from emaillogin.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class RegistryService(Service):
    """Owns every persisted change to sessions and accounts.

    A claim goes UNPROVED -> PROVED -> LINKED (proved and listed in its
    account). Nothing moves backwards; deleting the session is the only way
    out of LINKED.
    """

    async def login(self) -> tuple[bytes, Session]:
        """Create and persist a session without claims. Returns (secret, session)."""
        config = self.core.config
        session = new_session(self.core.now(), config.session_lifespan_ms, config.renewal_period_ms)
        secret = session.set_secret()
        await self.storage.create_session(session)
        logger.info("session_created", session_id=session.id)
        return secret, session

    async def proof(self, identifier: str) -> tuple[bytes, Session]:
        """Create a short-lived session carrying one unproved email claim.

        Its secret only authenticates this proof session, never the login
        session of the person who asked for it.
        """
        if not identifier:
            raise ValidationError("Identifier is required")
        session = new_session(self.core.now(), self.core.config.proof_lifespan_ms)
        secret = session.set_secret()
        session.add_claim(EMAIL_CLAIM, identifier)
        await self.storage.create_session(session)
        logger.info("proof_session_created", session_id=session.id)
        return secret, session

    async def load(self, session_id: str) -> Session:
        """Read a session and attach its account when the account lists it.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = await self.storage.read_session(session_id)
        email = session.primary_email()
        if email is not None:
            try:
                account = await self.storage.read_account(EMAIL_CLAIM, email)
            except NotFoundError:
                account = None
            # A proved claim missing from the account is not linked yet.
            if account is not None and account.has_session(session.id):
                session.account = account
        return session

    async def load_account(self, identifier: str, account_type: str = EMAIL_CLAIM) -> Account:
        return await self.storage.read_account(account_type, identifier)

    async def save(self, session: Session) -> None:
        """Persist the session, then its attached account if any."""
        await self.storage.update_session(session)
        if session.account is not None:
            await self.storage.update_account(session.account)

    async def add_claim(self, session_id: str, claim_type: str, claim_id: str) -> Session:
        """Record an unproved claim on an existing session."""
        session = await self.load(session_id)
        session.add_claim(claim_type, claim_id)
        await self.save(session)
        return session

    async def confirm_claim_proved(self, session_id: str, claim_type: str, claim_id: str) -> Session:
        """Mark the claim proved on the session and link the session to the claim's account.

        Only call this once the proof session for the identifier has authenticated.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = await self.load(session_id)
        now = self.core.now()
        claim = session.add_claim(claim_type, claim_id)
        session.prove_claim(claim, now)
        session.last_auth_at = now
        await self._link_account(session, claim_type, claim_id)
        logger.info("claim_proved", session_id=session.id, claim_type=claim_type)
        return await self.load(session.id)

    async def auth(self, session_id: str, presented_secret: bytes) -> AuthResult:
        """Verify a presented secret against the stored digest.

        Unknown, expired and mismatching credentials all give the same
        unauthenticated result. Expired sessions are deleted on the way.
        Storage and crypto failures are raised, never reported as a failed
        authentication.
        """
        try:
            session = await self.load(session_id)
        except NotFoundError:
            return AuthResult(authenticated=False)

        matches = session.verify_secret(presented_secret)
        now = self.core.now()
        if session.is_expired(now):
            await self._remove_session(session)
            logger.info("session_expired", session_id=session.id)
            return AuthResult(authenticated=False)
        if not matches:
            logger.debug("session_auth_failed", session_id=session.id)
            return AuthResult(authenticated=False)

        session.last_auth_at = now
        new_secret = None
        renewal_period_ms = self.core.config.renewal_period_ms
        if renewal_period_ms > 0 and session.should_renew(now):
            new_secret = session.set_secret()
            session.renew_at = now + renewal_period_ms
            logger.info("session_renewed", session_id=session.id)
        await self.save(session)
        return AuthResult(authenticated=True, session=session, new_secret=new_secret)

    async def logout(self, session_id: str) -> None:
        """Delete the session and unlink it from its account. Unknown ids are ignored."""
        try:
            session = await self.load(session_id)
        except NotFoundError:
            return
        await self._remove_session(session)
        logger.info("session_deleted", session_id=session_id)

    async def rm_account(self, identifier: str, account_type: str = EMAIL_CLAIM) -> int:
        """Delete every session of the account, then the account itself.

        Returns the number of sessions deleted; an unknown account deletes nothing.
        If any session deletion fails, the account is kept and the first error is raised.
        """
        try:
            account = await self.storage.read_account(account_type, identifier)
        except NotFoundError:
            return 0

        results = await asyncio.gather(
            *(self.storage.delete_session(session_id) for session_id in account.session_ids),
            return_exceptions=True,
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            logger.error("account_removal_failed", account_type=account_type, failed_sessions=len(errors))
            raise errors[0]

        await self.storage.delete_account(account_type, identifier)
        logger.info("account_deleted", account_type=account_type, session_count=len(account.session_ids))
        return len(account.session_ids)

    async def set_account_data(self, identifier: str, data: Any, account_type: str = EMAIL_CLAIM) -> Account:
        """Replace the application data stored on an account.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = await self.storage.read_account(account_type, identifier)
        account.data = data
        await self.storage.update_account(account)
        return account

    async def rm_expired_sessions(self) -> int:
        """Delete every session whose expiry has passed."""
        deleted = await self.storage.delete_expired_sessions(self.core.now())
        logger.info("expired_sessions_deleted", count=deleted)
        return deleted

    async def _link_account(self, session: Session, claim_type: str, claim_id: str) -> Account:
        """Add the session to the (type, id) account, creating the account if needed.

        The session is written before the account. Linking twice leaves a
        single entry.
        """
        try:
            account = await self.storage.read_account(claim_type, claim_id)
        except NotFoundError:
            account = Account(type=claim_type, id=claim_id)
            account.add_session(session)
            session.account = account
            await self.storage.update_session(session)
            try:
                await self.storage.create_account(account)
            except ConflictError:
                # Created concurrently; fall through and join it.
                account = await self.storage.read_account(claim_type, claim_id)
            else:
                logger.info("account_created", account_type=claim_type, session_id=session.id)
                return account

        if not account.has_session(session.id):
            account.add_session(session)
        session.account = account
        await self.save(session)
        logger.info("account_linked", account_type=claim_type, session_id=session.id)
        return account

    async def _remove_session(self, session: Session) -> None:
        # Unlink first so the account never lists a deleted session.
        if session.account is not None:
            session.account.remove_session(session.id)
            await self.storage.update_account(session.account)
        await self.storage.delete_session(session.id)
