import asyncio
import inspect
import pathlib
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import get_settings  # noqa: E402
from dca_ledger import Transaction  # noqa: E402

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            argnames = pyfuncitem._fixtureinfo.argnames
            kwargs = {name: pyfuncitem.funcargs[name] for name in argnames}
            loop.run_until_complete(test_function(**kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Drop cached settings so env overrides in one test never leak into another."""

    monkeypatch.delenv("INTERNAL_AUTH_TOKEN", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_tx(tx_id: str, tx_type: str, day: int = 0, **fields) -> Transaction:
    """Build a ledger entry ``day`` days after a fixed origin; string amounts become Decimals."""

    amounts = {
        key: Decimal(value) if isinstance(value, str) and key.endswith(("_qty", "_usd")) else value
        for key, value in fields.items()
    }
    return Transaction(id=tx_id, type=tx_type, timestamp=T0 + timedelta(days=day), **amounts)


class FakeResult:
    def __init__(self, rows):
        self._rows = list(rows)

    def scalars(self) -> "FakeResult":
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class FakeSession:
    """In-memory stand-in for ``AsyncSession``.

    ``scalar`` and ``execute`` answer from queues in call order; ``get`` looks
    objects up by (model, primary key).
    """

    def __init__(self, *, scalars=(), results=(), objects=None):
        self.scalar_queue = list(scalars)
        self.result_queue = [FakeResult(rows) for rows in results]
        self.objects = dict(objects or {})
        self.added: list = []
        self.deleted: list = []
        self.commits = 0

    async def scalar(self, statement):
        return self.scalar_queue.pop(0)

    async def execute(self, statement):
        return self.result_queue.pop(0)

    async def get(self, model, key):
        return self.objects.get((model, key))

    def add(self, instance) -> None:
        self.added.append(instance)

    async def delete(self, instance) -> None:
        self.deleted.append(instance)

    async def commit(self) -> None:
        self.commits += 1

    async def refresh(self, instance) -> None:
        return None
