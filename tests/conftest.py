import pytest
import pytest_asyncio

from shell_bay.chat.store import ChatStore
from shell_bay.chat.turn import ConversationEngine
from shell_bay.data import settings as settings_module
from shell_bay.data.settings import SettingsStore
from shell_bay.data.sqlite_store import SQLiteStore
from shell_bay.generation.errors import AuthError


class FakeClient:
    """Stands in for GeminiClient: yields canned chunks, optionally failing after them."""

    def __init__(self, chunks=(), error=None, code="", gate=None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.code = code
        self.gate = gate
        self.calls = []
        self.closed = False

    async def stream_generate(self, prompt, history):
        self.calls.append((prompt, history))
        for chunk in self.chunks:
            if self.gate is not None:
                await self.gate.wait()
            yield chunk
        if self.error is not None:
            raise self.error

    async def generate_code(self, prompt, history):
        self.calls.append((prompt, history))
        if self.error is not None:
            raise self.error
        return self.code

    async def close(self) -> None:
        self.closed = True


class FakeFactory:
    def __init__(self, client: FakeClient) -> None:
        self.client = client
        self.requests = []

    def __call__(self, provider, api_key):
        self.requests.append((provider, api_key))
        if not api_key:
            raise AuthError(f"No API key configured for {provider}")
        return self.client


@pytest.fixture(autouse=True)
def no_env_keys(monkeypatch):
    for name in list(settings_module.ENV_API_KEYS):
        monkeypatch.setitem(settings_module.ENV_API_KEYS, name, "")


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "test.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def chat_store(sqlite_store):
    return ChatStore(sqlite_store)


@pytest_asyncio.fixture
async def settings(sqlite_store):
    store = SettingsStore(sqlite_store)
    await store.update(provider="gemini", api_keys={"gemini": "test-key"})
    return store


@pytest_asyncio.fixture
async def project(sqlite_store):
    return await sqlite_store.create_project("Demo", "A test project")


@pytest.fixture
def fake_client():
    return FakeClient(chunks=["const ", "x", " = 1;"])


@pytest.fixture
def factory(fake_client):
    return FakeFactory(fake_client)


@pytest.fixture
def engine(chat_store, settings, factory):
    return ConversationEngine(chat_store, settings, factory)


def drain(queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events
