"""Tests for demo-site registration and confirmation."""

import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest
from starlette.requests import Request

from try_sites.common.clock import FrozenClock
from try_sites.common.config import TrySitesSettings
from try_sites.common.exceptions import RecipeNotFoundError, SetupError, TenantNotFoundError
from try_sites.common.database import DatabaseManager
from try_sites.protection import DataProtectionProvider
from try_sites.setup.recipes import RecipeCatalog
from try_sites.setup.service import SITE_PROFILE_FILE, SetupService, verify_password
from try_sites.shells.host import ShellHost
from try_sites.shells.schemas import ShellSettings, TenantState
from try_sites.shells.service import ShellSettingsManager
from try_sites.sites.schemas import (
    ModelErrors,
    RegisterUserForm,
    RequestHostInfo,
)
from try_sites.sites.service import (
    ACCEPT_TERMS_MESSAGE,
    HANDLE_EXISTS_MESSAGE,
    INVALID_HANDLE_MESSAGE,
    INVALID_RECIPE_MESSAGE,
    ConfirmationService,
    RegistrationService,
    build_email_body,
    get_tenant_url,
    is_valid_handle,
)
from tests.conftest import RecordingEmailSender


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
HOST_INFO = RequestHostInfo(scheme="https", host="demo.example.com")
CONFIRM_URL = "https://demo.example.com/sites/Confirm"


@pytest.fixture
async def db():
    manager = DatabaseManager(
        TrySitesSettings(secret_key="test-secret", db_url="sqlite+aiosqlite://")
    )
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


class Harness:
    def __init__(self, root, email_to_bcc=False):
        self.clock = FrozenClock(NOW, time_zone="Europe/Paris")
        self.store = ShellSettingsManager()
        self.host = ShellHost(self.store, root)
        self.setup = SetupService(self.store, self.host, RecipeCatalog(), clock=self.clock)
        self.protector = DataProtectionProvider("test-secret", clock=self.clock).create_protector("Password")
        self.sender = RecordingEmailSender()
        self.registration = RegistrationService(
            self.store,
            self.host,
            self.setup,
            self.protector,
            self.sender,
            clock=self.clock,
            email_to_bcc=email_to_bcc,
            default_sender="bcc@example.com",
        )
        self.confirmation = ConfirmationService(
            self.host, self.setup, self.protector, clock=self.clock
        )


@pytest.fixture
def h(tmp_path):
    return Harness(tmp_path / "sites")


def _form(**overrides) -> RegisterUserForm:
    data = {
        "handle": "acme",
        "site_name": "Acme Site",
        "email": "owner@example.com",
        "recipe_name": "Blog",
        "accept_terms": True,
    }
    data.update(overrides)
    return RegisterUserForm(**data)


async def _register(db, h, **overrides):
    async with db.get_session() as session:
        return await h.registration.register(session, _form(**overrides), HOST_INFO, CONFIRM_URL)


def _link_params(link: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(link).query).items()}


async def _confirm_from_link(db, h, link: str):
    params = _link_params(link)
    async with db.get_session() as session:
        return await h.confirmation.confirm(
            session, params["email"], params["handle"], params["siteName"], params["ep"]
        )


class TestHandleValidation:
    @pytest.mark.parametrize("handle", ["acme", "Acme_2", "abc123", "_", "café"])
    def test_word_characters_accepted(self, handle):
        assert is_valid_handle(handle)

    @pytest.mark.parametrize("handle", ["my site", "a-b", "a.b", "x!", "acme\n", ""])
    def test_punctuation_and_spaces_rejected(self, handle):
        assert not is_valid_handle(handle)


class TestTenantUrl:
    def test_request_host_and_prefix(self):
        settings = ShellSettings(name="myhandle", request_url_prefix="myhandle")
        assert get_tenant_url(settings, HOST_INFO) == "https://demo.example.com/myhandle"

    def test_first_url_host_override(self):
        settings = ShellSettings(
            name="x",
            request_url_prefix="myhandle",
            request_url_host="alt.example.com,other.example.com",
        )
        assert get_tenant_url(settings, HOST_INFO) == "https://alt.example.com/myhandle"

    def test_empty_host_entries_skipped(self):
        settings = ShellSettings(name="x", request_url_host=",alt.example.com")
        assert get_tenant_url(settings, HOST_INFO) == "https://alt.example.com"

    def test_port_kept(self):
        settings = ShellSettings(name="x", request_url_prefix="p")
        info = RequestHostInfo(scheme="http", host="localhost", port=5000)
        assert get_tenant_url(settings, info) == "http://localhost:5000/p"

    def test_no_prefix(self):
        assert get_tenant_url(ShellSettings(name="x"), HOST_INFO) == "https://demo.example.com"


def _request(host: bytes) -> Request:
    return Request({
        "type": "http",
        "scheme": "http",
        "method": "GET",
        "path": "/sites/Index",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", host)],
        "server": ("testserver", 80),
    })


class TestRequestHostInfo:
    def test_host_and_port(self):
        info = RequestHostInfo.from_request(_request(b"demo.example.com:8080"))
        assert info == RequestHostInfo(scheme="http", host="demo.example.com", port=8080)

    def test_ipv6_host_keeps_brackets(self):
        info = RequestHostInfo.from_request(_request(b"[::1]:8080"))
        assert info.host == "[::1]"
        assert info.port == 8080
        settings = ShellSettings(name="x", request_url_prefix="x")
        assert get_tenant_url(settings, info) == "http://[::1]:8080/x"


class TestModelErrors:
    def test_add_and_messages(self):
        errors = ModelErrors()
        assert errors.is_valid
        errors.add("handle", "one")
        errors.add("handle", "two")
        assert not errors.is_valid
        assert errors["handle"] == ["one", "two"]
        assert errors.messages() == ["one", "two"]


class TestEmailBody:
    def test_contains_credentials_and_links(self):
        body = build_email_body("Acme", "https://x/confirm?a=1", "https://x/acme", "admin", "Pw1!")
        assert "Your demo site 'Acme' has been created." in body
        assert 'href="https://x/confirm?a=1"' in body
        assert 'href="https://x/acme/admin"' in body
        assert "Username: admin" in body
        assert "Password: Pw1!" in body

    def test_site_name_escaped(self):
        body = build_email_body("<b>x</b>", "l", "u", "admin", "pw")
        assert "<b>x</b>" not in body
        assert "&lt;b&gt;x&lt;/b&gt;" in body


class TestRegistration:
    async def test_success_persists_settings(self, db, h):
        result = await _register(db, h, handle="Acme")
        assert result.success
        assert result.errors.is_valid
        assert result.tenant_url == "https://demo.example.com/acme"

        async with db.get_session() as session:
            saved = await h.store.try_get_settings(session, "Acme")
        assert saved.request_url_prefix == "acme"
        assert saved.request_url_host is None
        assert saved.state is TenantState.UNINITIALIZED
        assert saved["Description"] == "Acme Site owner@example.com"
        assert saved["RecipeName"] == "Blog"
        assert saved["DatabaseProvider"] == "Sqlite"

    async def test_tenant_materialized(self, db, h):
        await _register(db, h)
        assert (h.host.shells_root / "acme").is_dir()

    async def test_email_sent(self, db, h):
        result = await _register(db, h)
        assert result.email_sent
        assert len(h.sender.outbox) == 1
        message = h.sender.outbox[0]
        assert message.to == "owner@example.com"
        assert message.is_html_body
        assert message.bcc is None
        assert "Acme Site" in message.body
        assert "Username: admin" in message.body

    async def test_confirmation_link_params(self, db, h):
        result = await _register(db, h)
        assert result.confirmation_link.startswith(CONFIRM_URL + "?")
        params = _link_params(result.confirmation_link)
        assert params["email"] == "owner@example.com"
        assert params["handle"] == "acme"
        assert params["siteName"] == "Acme Site"

        password = h.protector.unprotect(params["ep"])
        assert f"Password: {password}<br>" in h.sender.outbox[0].body

    async def test_link_expires_after_24_hours(self, db, h):
        result = await _register(db, h)
        ep = _link_params(result.confirmation_link)["ep"]
        h.clock.advance(timedelta(hours=24, seconds=1))
        assert not h.protector.try_unprotect(ep).ok

    async def test_bcc_when_enabled(self, db, tmp_path):
        h = Harness(tmp_path / "sites", email_to_bcc=True)
        await _register(db, h)
        assert h.sender.outbox[0].bcc == "bcc@example.com"

    async def test_terms_required(self, db, h):
        result = await _register(db, h, accept_terms=False)
        assert not result.success
        assert result.errors["accept_terms"] == [ACCEPT_TERMS_MESSAGE]
        assert h.sender.outbox == []
        async with db.get_session() as session:
            assert await h.store.try_get_settings(session, "acme") is None

    async def test_invalid_handle(self, db, h):
        result = await _register(db, h, handle="my site")
        assert not result.success
        assert result.errors["handle"] == [INVALID_HANDLE_MESSAGE]

    async def test_both_errors_reported(self, db, h):
        result = await _register(db, h, handle="bad-name", accept_terms=False)
        assert set(result.errors) == {"accept_terms", "handle"}

    async def test_empty_handle_is_generated(self, db, h):
        result = await _register(db, h, handle="")
        assert result.success
        assert len(result.settings.name) == 8
        assert is_valid_handle(result.settings.name)

    async def test_duplicate_handle(self, db, h):
        first = await _register(db, h, site_name="First")
        second = await _register(db, h, site_name="Second")
        assert first.success
        assert not second.success
        assert second.errors["handle"] == [HANDLE_EXISTS_MESSAGE]
        assert len(h.sender.outbox) == 1

        async with db.get_session() as session:
            saved = await h.store.try_get_settings(session, "acme")
        assert saved["Description"] == "First owner@example.com"

    async def test_concurrent_create_maps_to_exists(self, db, h, monkeypatch):
        # Simulate a registration that passed the existence check and lost
        # the race at persist time.
        await _register(db, h, site_name="Winner")

        async def not_found(session, name):
            return None

        monkeypatch.setattr(h.host, "try_get_settings", not_found)
        result = await _register(db, h, site_name="Loser")
        assert not result.success
        assert result.errors["handle"] == [HANDLE_EXISTS_MESSAGE]

    async def test_handle_differing_only_by_case_exists(self, db, h):
        first = await _register(db, h, handle="acme")
        second = await _register(db, h, handle="ACME")
        assert first.success
        assert not second.success
        assert second.errors["handle"] == [HANDLE_EXISTS_MESSAGE]
        assert len(h.sender.outbox) == 1

    async def test_case_variant_race_maps_to_exists(self, db, h, monkeypatch):
        await _register(db, h, handle="acme")

        async def not_found(session, name):
            return None

        monkeypatch.setattr(h.host, "try_get_settings", not_found)
        result = await _register(db, h, handle="Acme")
        assert not result.success
        assert result.errors["handle"] == [HANDLE_EXISTS_MESSAGE]

    async def test_tenant_committed_before_email(self, db, h):
        class FailingSender(RecordingEmailSender):
            async def send(self, message):
                raise RuntimeError("provider crashed")

        h.registration.email_sender = FailingSender()
        with pytest.raises(RuntimeError):
            await _register(db, h)

        async with db.get_session() as session:
            saved = await h.store.try_get_settings(session, "acme")
        assert saved is not None
        assert saved.state is TenantState.UNINITIALIZED

    async def test_unknown_recipe_still_sends_email(self, db, h):
        result = await _register(db, h, recipe_name="NoSuchRecipe")
        assert result.success
        assert result.errors["recipe_name"] == [INVALID_RECIPE_MESSAGE]
        assert len(h.sender.outbox) == 1

    async def test_email_failure_does_not_fail_registration(self, db, h):
        h.sender.accept = False
        result = await _register(db, h)
        assert result.success
        assert not result.email_sent


class TestConfirmation:
    async def test_full_flow(self, db, h):
        result = await _register(db, h)
        confirmed = await _confirm_from_link(db, h, result.confirmation_link)
        assert confirmed.location == "/acme"
        assert confirmed.execution_id

        async with db.get_session() as session:
            saved = await h.store.try_get_settings(session, "acme")
        assert saved.state is TenantState.RUNNING
        assert saved["SiteTimeZone"] == "Europe/Paris"

        password = h.protector.unprotect(_link_params(result.confirmation_link)["ep"])
        profile = json.loads((h.host.shells_root / "acme" / SITE_PROFILE_FILE).read_text())
        assert profile["admin_email"] == "owner@example.com"
        assert profile["admin_username"] == "admin"
        assert profile["site_name"] == "Acme Site"
        assert profile["database_provider"] == "Sqlite"
        assert verify_password(password, profile["admin_password_hash"])

    async def test_unknown_handle_not_found(self, db, h, monkeypatch):
        calls = []
        monkeypatch.setattr(h.setup, "setup", lambda *a, **k: calls.append(a))
        async with db.get_session() as session:
            with pytest.raises(TenantNotFoundError):
                await h.confirmation.confirm(session, "a@b.c", "ghost", "x", "ep")
        assert calls == []

    async def test_missing_handle_not_found(self, db, h):
        async with db.get_session() as session:
            with pytest.raises(TenantNotFoundError):
                await h.confirmation.confirm(session, None, None, None, None)

    async def test_running_tenant_skips_setup(self, db, h, monkeypatch):
        result = await _register(db, h)
        async with db.get_session() as session:
            settings = await h.store.try_get_settings(session, "acme")
            settings.state = TenantState.RUNNING
            await h.store.save_settings(session, settings)

        calls = []
        monkeypatch.setattr(h.setup, "setup", lambda *a, **k: calls.append(a))
        confirmed = await _confirm_from_link(db, h, result.confirmation_link)
        assert confirmed.location == "/acme"
        assert calls == []

    async def test_second_confirmation_redirects(self, db, h):
        result = await _register(db, h)
        await _confirm_from_link(db, h, result.confirmation_link)
        again = await _confirm_from_link(db, h, result.confirmation_link)
        assert again.location == "/acme"
        assert again.execution_id is None

    async def test_unknown_recipe_not_found(self, db, h):
        result = await _register(db, h, recipe_name="NoSuchRecipe")
        with pytest.raises(RecipeNotFoundError):
            await _confirm_from_link(db, h, result.confirmation_link)

    async def test_expired_link_fails_setup(self, db, h):
        result = await _register(db, h)
        h.clock.advance(timedelta(days=2))
        with pytest.raises(SetupError) as exc_info:
            await _confirm_from_link(db, h, result.confirmation_link)
        assert exc_info.value.errors == {
            "AdminPassword": "The confirmation link is invalid or has expired."
        }
        async with db.get_session() as session:
            saved = await h.store.try_get_settings(session, "acme")
        assert saved.state is TenantState.UNINITIALIZED

    async def test_tampered_link_fails_setup(self, db, h):
        result = await _register(db, h)
        params = _link_params(result.confirmation_link)
        with pytest.raises(SetupError) as exc_info:
            async with db.get_session() as session:
                await h.confirmation.confirm(
                    session, params["email"], "acme", params["siteName"], params["ep"][:-4] + "AAAA"
                )
        assert "AdminPassword" in exc_info.value.errors
