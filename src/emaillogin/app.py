import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from emaillogin.config import Config
from emaillogin.core.core import Core
from emaillogin.core.modules.account.models import Account
from emaillogin.core.modules.mail.models import ProofMailContext
from emaillogin.core.modules.mail.renderer import render_proof_mail
from emaillogin.core.modules.mail.transport import MailTransport
from emaillogin.core.modules.registry.models import AccountView
from emaillogin.core.modules.session.models import EMAIL_CLAIM, Session
from emaillogin.core.modules.storage.port import Storage
from emaillogin.core.modules.token.codec import TOKEN_VERSION, BearerToken, decode_token, encode_token
from emaillogin.core.modules.token.models import ConfirmResult, LoginResult, TokenAuthResult
from emaillogin.errors import NotFoundError, ValidationError
from emaillogin.utils import Clock

logger = structlog.get_logger(__name__)


class App:
    """Facade for the login flows, working with bearer tokens rather than raw secrets."""

    def __init__(
        self,
        config: Config,
        storage: Storage | None = None,
        clock: Clock | None = None,
        mail_transport: MailTransport | None = None,
    ) -> None:
        self._core = Core(config, storage=storage, clock=clock, mail_transport=mail_transport)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def login(self) -> LoginResult:
        """Create a device session."""
        secret, session = await self._core.services.registry.login()
        return LoginResult(token=encode_token(session.id, secret), session=session)

    async def prove_email(
        self,
        email: str,
        subject_template: str | None = None,
        text_template: str | None = None,
        html_template: str | None = None,
        name: str | None = None,
        root_url: str | None = None,
    ) -> str:
        """Mail a one-time login link for the address and return its token.

        Templates are Liquid strings receiving name, email, token and root_url.

        Raises:
            ValidationError: If the address has no usable domain
            RateLimitedError: If too many proof mails are queued for the domain
        """
        delay_ms = self._core.services.rate_limit.reserve_send(email)
        secret, proof_session = await self._core.services.registry.proof(email)
        email_token = encode_token(proof_session.id, secret)
        context = ProofMailContext(
            name=name or self._core.config.site_name,
            email=email,
            token=email_token,
            root_url=root_url or self._core.config.root_url,
        )
        mail = render_proof_mail(context, subject_template, text_template, html_template)
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        try:
            await self._core.services.mail.send(mail)
        except Exception:
            # An undelivered token must not stay usable.
            await self._core.services.registry.logout(proof_session.id)
            raise
        logger.info("proof_mail_sent", session_id=proof_session.id)
        return email_token

    async def confirm_email(self, email_token: str, token: str | None = None) -> ConfirmResult:
        """Prove the address behind a proof link and link it to the device's session.

        The proof session is burned once it authenticates. Without a valid
        device token, a new session is created to receive the proof.
        """
        proof = self._decode(email_token)
        if proof is None:
            return ConfirmResult(confirmed=False)
        result = await self._core.services.registry.auth(proof.session_id, proof.secret)
        if not result.authenticated or result.session is None:
            return ConfirmResult(confirmed=False)

        claim = result.session.find_claim_of_type(EMAIL_CLAIM)
        await self._core.services.registry.logout(proof.session_id)
        if claim is None:
            return ConfirmResult(confirmed=False)

        device = await self.authenticate(token) if token is not None else None
        if device is not None and device.authenticated and device.session is not None:
            device_token, session_id = device.token, device.session.id
        else:
            login = await self.login()
            device_token, session_id = login.token, login.session.id
            logger.info("proof_confirmed_without_device", session_id=session_id)

        session = await self._core.services.registry.confirm_claim_proved(session_id, EMAIL_CLAIM, claim.id)
        return ConfirmResult(confirmed=True, token=device_token, session=session)

    async def authenticate(self, token: str) -> TokenAuthResult:
        """Check a bearer token. Malformed, unknown, expired and wrong tokens all fail the same way."""
        bearer = self._decode(token)
        if bearer is None:
            return TokenAuthResult(authenticated=False)
        result = await self._core.services.registry.auth(bearer.session_id, bearer.secret)
        if not result.authenticated:
            return TokenAuthResult(authenticated=False)
        if result.new_secret is not None:
            return TokenAuthResult(
                authenticated=True,
                session=result.session,
                token=encode_token(bearer.session_id, result.new_secret),
                renewed=True,
            )
        return TokenAuthResult(authenticated=True, session=result.session, token=token)

    async def logout(self, token: str) -> bool:
        """Delete the session behind a valid bearer token. Returns whether a session was deleted."""
        result = await self.authenticate(token)
        if not result.authenticated or result.session is None:
            return False
        await self._core.services.registry.logout(result.session.id)
        return True

    async def delete_session(self, session_id: str) -> None:
        await self._core.services.registry.logout(session_id)

    async def delete_account(self, email: str) -> int:
        """Delete the account and all of its sessions. Returns the number of sessions deleted."""
        return await self._core.services.registry.rm_account(email)

    async def get_session(self, session_id: str) -> Session:
        """Get a session with its linked account. Raises NotFoundError if absent."""
        return await self._core.services.registry.load(session_id)

    async def get_account(self, email: str) -> AccountView:
        """Get an account with its sessions loaded, skipping sessions deleted meanwhile."""
        account = await self._core.services.registry.load_account(email)
        sessions = []
        for session_id in account.session_ids:
            try:
                sessions.append(await self._core.services.registry.load(session_id))
            except NotFoundError:
                continue
        return AccountView(type=account.type, id=account.id, sessions=sessions, data=account.data)

    async def set_account_data(self, email: str, data: Any) -> Account:
        """Replace the application data stored on an account."""
        return await self._core.services.registry.set_account_data(email, data)

    async def rm_expired_sessions(self) -> int:
        return await self._core.services.registry.rm_expired_sessions()

    # === Private helpers ===
    def _decode(self, token: str) -> BearerToken | None:
        """Decode a bearer token, treating malformed or unsupported tokens as absent."""
        try:
            bearer = decode_token(token)
        except ValidationError:
            return None
        if bearer.version != TOKEN_VERSION:
            return None
        return bearer
