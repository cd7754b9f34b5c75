"""Tests for the App facade: token-level login flows."""

import pytest

from emaillogin.app import App
from emaillogin.core.modules.mail.models import Mail
from emaillogin.core.modules.mail.transport import MailTransport
from emaillogin.core.modules.session.models import EMAIL_CLAIM
from emaillogin.core.modules.storage.fs import FileStorage
from emaillogin.core.modules.token.codec import decode_token, encode_token
from emaillogin.errors import NotFoundError, RateLimitedError, ValidationError
from emaillogin.main import rm_expired_sessions

pytestmark = pytest.mark.anyio

EMAIL = "user@example.com"


class FailingTransport(MailTransport):
    """Records the mail it was given, then fails to deliver it."""

    def __init__(self) -> None:
        self.attempted: list[Mail] = []

    async def send(self, mail: Mail) -> None:
        self.attempted.append(mail)
        raise ConnectionError("relay unreachable")


def token_from_mail(mail: Mail) -> str:
    return mail.text.split("login?token=")[1].split()[0]


async def sign_in(app: App, email: str = EMAIL) -> str:
    """Run the whole flow from a fresh device and return its token."""
    login = await app.login()
    email_token = await app.prove_email(email)
    result = await app.confirm_email(email_token, login.token)
    assert result.confirmed
    return result.token


class TestLogin:
    """Tests for App.login and App.authenticate."""

    async def test_login_token_authenticates(self, app):
        login = await app.login()
        result = await app.authenticate(login.token)
        assert result.authenticated
        assert result.session.id == login.session.id
        assert result.token == login.token
        assert not result.renewed

    @pytest.mark.parametrize("token", ["", "garbage", "1.abc", "x.abc.AAAA", "1.abc.A*A", "1..AAAA"])
    async def test_malformed_tokens_fail(self, app, token):
        """Test that malformed tokens are failed authentications, not errors."""
        assert not (await app.authenticate(token)).authenticated

    async def test_unsupported_version_fails(self, app):
        """Test that tokens of another version are rejected."""
        login = await app.login()
        bearer = decode_token(login.token)
        assert not (await app.authenticate(encode_token(bearer.session_id, bearer.secret, version=2))).authenticated

    async def test_wrong_secret_fails(self, app):
        login = await app.login()
        bearer = decode_token(login.token)
        assert not (await app.authenticate(encode_token(bearer.session_id, b"\x00" * 32))).authenticated

    async def test_renewal_returns_new_token(self, config, storage, clock, transport):
        """Test that a due renewal hands back a new token and retires the old one."""
        renewing = config.model_copy(update={"renewal_period_ms": 1000})
        app = App(renewing, storage=storage, clock=clock, mail_transport=transport)
        login = await app.login()
        clock.advance(1000)

        result = await app.authenticate(login.token)
        assert result.authenticated
        assert result.renewed
        assert result.token != login.token
        assert not (await app.authenticate(login.token)).authenticated
        assert (await app.authenticate(result.token)).authenticated


class TestProveEmail:
    """Tests for App.prove_email."""

    async def test_mail_carries_proof_token(self, app, transport):
        """Test that the mailed link holds the returned proof token."""
        email_token = await app.prove_email(EMAIL)
        assert len(transport.sent) == 1
        mail = transport.sent[0]
        assert mail.to == EMAIL
        assert mail.subject == "[example] Identity verification"
        assert token_from_mail(mail) == email_token
        assert "https://example.com/login?token=" in mail.text

    async def test_custom_templates_and_site(self, app, transport):
        await app.prove_email(
            EMAIL,
            subject_template="Welcome to {{name}}",
            text_template="{{root_url}}verify/{{token}}",
            name="Notes",
            root_url="https://notes.test/",
        )
        mail = transport.sent[0]
        assert mail.subject == "Welcome to Notes"
        assert mail.text.startswith("https://notes.test/verify/1.")

    @pytest.mark.parametrize("email", ["", "nodomain", "user@", "@example.com"])
    async def test_invalid_address_rejected(self, app, transport, email):
        """Test that unusable addresses are rejected before any mail goes out."""
        with pytest.raises(ValidationError):
            await app.prove_email(email)
        assert transport.sent == []

    async def test_rate_limited_domain(self, config, storage, clock, transport):
        """Test that a domain over its send ceiling is refused without creating a proof session."""
        strict = config.model_copy(update={"send_spacing_ms": 1000, "send_delay_ceiling_ms": 0})
        app = App(strict, storage=storage, clock=clock, mail_transport=transport)
        await app.prove_email(EMAIL)
        sessions_before = dict(storage._sessions)

        with pytest.raises(RateLimitedError) as exc_info:
            await app.prove_email("other@example.com")
        assert exc_info.value.delay_ms == 1000
        assert len(transport.sent) == 1
        assert storage._sessions == sessions_before

        # Other domains are independent.
        await app.prove_email("user@example.org")
        assert len(transport.sent) == 2

    async def test_undelivered_proof_is_burned(self, config, storage, clock):
        """Test that a proof token whose mail failed cannot be confirmed."""
        failing = FailingTransport()
        app = App(config, storage=storage, clock=clock, mail_transport=failing)
        with pytest.raises(ConnectionError):
            await app.prove_email(EMAIL)
        email_token = token_from_mail(failing.attempted[0])
        assert not (await app.confirm_email(email_token)).confirmed


class TestConfirmEmail:
    """Tests for App.confirm_email."""

    async def test_normal_flow(self, app):
        """Test that the device session ends up proved and linked."""
        login = await app.login()
        email_token = await app.prove_email(EMAIL)
        result = await app.confirm_email(email_token, login.token)

        assert result.confirmed
        assert result.token == login.token
        assert result.session.id == login.session.id
        assert result.session.email_verified()
        assert result.session.is_linked()

        authenticated = await app.authenticate(login.token)
        assert authenticated.session.primary_email() == EMAIL
        assert authenticated.session.account.session_ids == [login.session.id]

    async def test_wrong_confirmation_token(self, app):
        """Test that a tampered proof token confirms nothing."""
        login = await app.login()
        email_token = await app.prove_email(EMAIL)
        bearer = decode_token(email_token)
        forged = encode_token(bearer.session_id, b"0" * 16)

        result = await app.confirm_email(forged, login.token)
        assert not result.confirmed
        session = await app.get_session(login.session.id)
        assert not session.email_verified()
        with pytest.raises(NotFoundError):
            await app.get_account(EMAIL)

    async def test_proof_token_is_single_use(self, app):
        """Test that a proof token cannot be confirmed twice."""
        login = await app.login()
        email_token = await app.prove_email(EMAIL)
        assert (await app.confirm_email(email_token, login.token)).confirmed
        assert not (await app.confirm_email(email_token, login.token)).confirmed

    async def test_unknown_device_gets_new_session(self, app):
        """Test that confirming without a device token creates a proved session."""
        email_token = await app.prove_email(EMAIL)
        result = await app.confirm_email(email_token)
        assert result.confirmed
        assert result.token is not None
        authenticated = await app.authenticate(result.token)
        assert authenticated.authenticated
        assert authenticated.session.email_verified()

    async def test_wrong_device_token_gets_new_session(self, app):
        """Test that an invalid device token is replaced rather than trusted."""
        login = await app.login()
        bearer = decode_token(login.token)
        wrong_device = encode_token(bearer.session_id, b"\x01" * 32)
        email_token = await app.prove_email(EMAIL)

        result = await app.confirm_email(email_token, wrong_device)
        assert result.confirmed
        assert result.session.id != login.session.id
        assert not (await app.get_session(login.session.id)).email_verified()

    async def test_expired_proof_token(self, app, config, clock):
        login = await app.login()
        email_token = await app.prove_email(EMAIL)
        clock.advance(config.proof_lifespan_ms)
        assert not (await app.confirm_email(email_token, login.token)).confirmed

    async def test_malformed_proof_token(self, app):
        assert not (await app.confirm_email("not-a-token")).confirmed

    async def test_login_token_is_not_a_proof(self, app):
        """Test that a session without an email claim cannot confirm anything."""
        device = await app.login()
        other = await app.login()
        result = await app.confirm_email(other.token, device.token)
        assert not result.confirmed
        assert not (await app.authenticate(other.token)).authenticated


class TestSessionsAndAccounts:
    """Tests for logout, deletion and account views."""

    async def test_logout(self, app):
        login = await app.login()
        assert await app.logout(login.token)
        assert not (await app.authenticate(login.token)).authenticated
        assert not await app.logout(login.token)

    async def test_delete_session(self, app):
        login = await app.login()
        await app.delete_session(login.session.id)
        with pytest.raises(NotFoundError):
            await app.get_session(login.session.id)

    async def test_get_account_lists_sessions_and_data(self, app):
        """Test that the account view holds every linked session and its data."""
        first = await sign_in(app)
        second = await sign_in(app)
        await app.set_account_data(EMAIL, {"plan": "free"})

        view = await app.get_account(EMAIL)
        assert view.type == EMAIL_CLAIM
        assert view.id == EMAIL
        assert view.data == {"plan": "free"}
        session_ids = [session.id for session in view.sessions]
        assert session_ids == [decode_token(first).session_id, decode_token(second).session_id]

    async def test_delete_account(self, app):
        """Test that deleting the account logs out every device."""
        tokens = [await sign_in(app), await sign_in(app)]
        assert await app.delete_account(EMAIL) == 2
        for token in tokens:
            assert not (await app.authenticate(token)).authenticated
        with pytest.raises(NotFoundError):
            await app.get_account(EMAIL)

    async def test_rm_expired_sessions(self, app, config, clock):
        await app.login()
        await app.prove_email(EMAIL)
        clock.advance(config.proof_lifespan_ms)
        assert await app.rm_expired_sessions() == 1


class TestLifespan:
    """Tests for startup, shutdown and the sweep entry point."""

    async def test_lifespan_with_file_storage(self, config, tmp_path, clock, transport):
        """Test that the app runs end to end on file storage inside its lifespan."""
        app = App(config, storage=FileStorage(tmp_path), clock=clock, mail_transport=transport)
        async with app.lifespan():
            token = await sign_in(app)
            assert (await app.authenticate(token)).authenticated

    async def test_sweep_entry_point(self, config, tmp_path):
        """Test that the sweep runs against configured storage and finds nothing to delete."""
        fs_config = config.model_copy(update={"storage_backend": "fs", "storage_dir": str(tmp_path)})
        assert await rm_expired_sessions(fs_config) == 0
