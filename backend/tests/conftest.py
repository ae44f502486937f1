import os
import sqlite3
from datetime import datetime, date
from pathlib import Path

import pytest
import pytest_asyncio

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("SQLITE_URL", "sqlite+aiosqlite:///./data/test.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "true")
os.environ.setdefault("SITE_URL", "https://badcompany.test")
os.environ.setdefault("RETRY_BASE_DELAY", "0")
os.environ.setdefault("RETRY_MAX_JITTER", "0")

# Avoid deprecated sqlite3 default datetime adapters in Python 3.12+.
sqlite3.register_adapter(datetime, lambda value: value.isoformat(sep=" "))
sqlite3.register_adapter(date, lambda value: value.isoformat())

from badcompany.auth.admin import create_access_token  # noqa: E402
from badcompany.services.email_service import EmailProvider, email_service  # noqa: E402


class FakeMailProvider(EmailProvider):
    """Records outgoing mail instead of talking to an SMTP server."""

    def __init__(self):
        self.sent: list[dict] = []
        self.refuse: set[str] = set()

    async def send(self, to, subject, html, text, headers=None, from_name=None) -> bool:
        if to in self.refuse:
            return False
        self.sent.append(
            {
                "to": to,
                "subject": subject,
                "html": html,
                "text": text,
                "headers": headers or {},
                "from_name": from_name,
            }
        )
        return True


@pytest.fixture(scope="session")
def sqlite_db_path() -> Path:
    return Path("data/test.db")


@pytest.fixture(autouse=True, scope="session")
def _ensure_test_db_dir(sqlite_db_path: Path) -> None:
    sqlite_db_path.parent.mkdir(parents=True, exist_ok=True)
    if sqlite_db_path.exists():
        sqlite_db_path.unlink()


@pytest.fixture(autouse=True)
def mailer() -> FakeMailProvider:
    provider = FakeMailProvider()
    email_service.use_provider(provider)
    yield provider
    email_service.use_provider(None)


@pytest_asyncio.fixture
async def session_factory():
    """Fresh tables for each test; the engine is disposed on the test's own loop."""
    import badcompany.models  # noqa: F401
    from badcompany.database import Base, dispose_engine, get_engine, get_session_factory

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield get_session_factory()

    await dispose_engine()


@pytest.fixture
def admin_headers() -> dict:
    token = create_access_token("1", "admin@badcompany.pt", "admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def editor_headers() -> dict:
    token = create_access_token("2", "editor@badcompany.pt", "editor")
    return {"Authorization": f"Bearer {token}"}
