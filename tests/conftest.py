"""Shared test fixtures for Try-Sites."""

import os
import pytest
from httpx import ASGITransport, AsyncClient

from try_sites.email.sender import EmailSender, MailMessage


SECRET_KEY = "test-secret-key-for-unit-tests"


class RecordingEmailSender(EmailSender):
    """Keeps sent messages in memory instead of calling a provider."""

    def __init__(self, accept: bool = True):
        super().__init__()
        self.accept = accept
        self.outbox: list[MailMessage] = []

    async def send(self, message: MailMessage) -> bool:
        self.outbox.append(message)
        return self.accept


@pytest.fixture
def secret_key():
    return SECRET_KEY


@pytest.fixture
def outbox_sender():
    return RecordingEmailSender()


@pytest.fixture
def app(tmp_path, outbox_sender):
    """Create a test app with in-memory DB and a recording email sender."""
    os.environ["TRYSITES_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["TRYSITES_SECRET_KEY"] = SECRET_KEY
    os.environ["TRYSITES_SHELLS_ROOT"] = str(tmp_path / "sites")

    # Clear caches and singletons so new env vars take effect
    from try_sites.common.config import get_settings
    get_settings.cache_clear()

    from try_sites.deps import reset_singletons, set_email_sender
    reset_singletons()
    set_email_sender(outbox_sender)

    from try_sites.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from try_sites.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()
