"""Shared helpers for the test suite."""
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from wastebin.config import Settings
from wastebin.database import ConnectionManager
from wastebin.records import NewPaste

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    environ = {
        "WASTEBIN_LOCAL_DB": "true",
        "WASTEBIN_DB_PATH": ":memory:",
        "WASTEBIN_TEST_MODE": "1",
        "WASTEBIN_APP_DOMAIN": "http://testserver",
    }
    environ.update({f"WASTEBIN_{key}": str(value) for key, value in overrides.items()})
    return Settings(environ)


def connected_manager(**overrides) -> ConnectionManager:
    manager = ConnectionManager(make_settings(**overrides), sleep=lambda seconds: None)
    manager.connect(1)
    manager.migrate()
    return manager


def new_paste(content="hello", language="", burn=False, expires_in=timedelta(hours=1), now=None) -> NewPaste:
    now = now or datetime.now(timezone.utc)
    return NewPaste(content=content, language=language, burn=burn, expiry_timestamp=now + expires_in)


class FakeEngine:
    """Stands in for a SQLAlchemy engine whose liveness can be toggled."""

    def __init__(self, healthy=True, block=None, dispose_block=None):
        self.healthy = healthy
        self.block = block
        self.dispose_block = dispose_block
        self.disposed = False

    def connect(self):
        if self.block is not None:
            self.block.wait(2)
        if not self.healthy:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return MagicMock()

    def dispose(self):
        if self.dispose_block is not None:
            self.dispose_block.wait(2)
        self.disposed = True


class FlakyEngineFactory:
    """Hands out engines that fail their ping until ``failures`` attempts were made."""

    def __init__(self, failures):
        self.failures = failures
        self.engines = []

    @property
    def calls(self):
        return len(self.engines)

    def __call__(self, settings):
        engine = FakeEngine(healthy=len(self.engines) >= self.failures)
        self.engines.append(engine)
        return engine


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def release_on_cleanup(testcase, event: threading.Event) -> None:
    testcase.addCleanup(event.set)
