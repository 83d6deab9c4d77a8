import json

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from conftest import FakeClient, FakeFactory
from shell_bay.api.routes import relay_turn, router
from shell_bay.chat.turn import COMPLETION_MESSAGE, ConversationEngine
from shell_bay.data import settings as settings_module
from shell_bay.data.settings import SettingsStore


@pytest.mark.asyncio
async def test_sqlite_project_lifecycle(sqlite_store):
    # Create project
    project = await sqlite_store.create_project()
    assert project["name"] == "Untitled Project"
    assert project["description"] == "A new Shell Bay project"
    assert project["code"] == ""
    pid = project["id"]

    # List projects
    projects = await sqlite_store.list_projects()
    assert len(projects) == 1
    assert projects[0]["id"] == pid

    # Add messages
    await sqlite_store.add_message(pid, "user", "Hello")
    await sqlite_store.add_message(pid, "assistant", "Hi there")

    # Get messages
    msgs = await sqlite_store.get_messages(pid)
    assert len(msgs) == 2
    assert msgs[0]["role"] == "user"
    assert msgs[1]["role"] == "assistant"

    # Replace code
    await sqlite_store.update_code(pid, "const a = 1;")
    fetched = await sqlite_store.get_project(pid)
    assert fetched["code"] == "const a = 1;"

    # Delete removes the conversation with it
    assert await sqlite_store.delete_project(pid)
    assert await sqlite_store.get_project(pid) is None
    assert await sqlite_store.get_messages(pid) == []
    assert not await sqlite_store.delete_project(pid)


@pytest.mark.asyncio
async def test_messages_keep_insertion_order(sqlite_store):
    project = await sqlite_store.create_project()
    for i in range(20):
        await sqlite_store.add_message(project["id"], "user", f"m{i}")
    msgs = await sqlite_store.get_messages(project["id"])
    assert [m["content"] for m in msgs] == [f"m{i}" for i in range(20)]


@pytest.mark.asyncio
async def test_settings_roundtrip(sqlite_store):
    settings = SettingsStore(sqlite_store)
    assert await settings.credential() == ("gemini", "")

    await settings.update(provider="openai", api_keys={"openai": "sk-1", "gemini": "g-1"})
    assert await settings.credential() == ("openai", "sk-1")
    assert await sqlite_store.get_settings() == {
        "active_provider": "openai",
        "openai_api_key": "sk-1",
        "gemini_api_key": "g-1",
    }
    assert await settings.summary() == {
        "provider": "openai",
        "configured": {"gemini": True, "openai": True, "anthropic": False},
    }


@pytest.mark.asyncio
async def test_empty_stored_key_overrides_environment(sqlite_store, monkeypatch):
    monkeypatch.setitem(settings_module.ENV_API_KEYS, "gemini", "env-key")
    settings = SettingsStore(sqlite_store)
    assert await settings.api_key("gemini") == "env-key"

    await settings.update(api_keys={"gemini": ""})
    assert await settings.api_key("gemini") == ""
    assert (await settings.summary())["configured"]["gemini"] is False


@pytest_asyncio.fixture
async def api(sqlite_store, chat_store, settings, factory):
    app = FastAPI()
    app.include_router(router)
    app.state.sqlite_store = sqlite_store
    app.state.chat_store = chat_store
    app.state.settings = settings
    app.state.engine = ConversationEngine(chat_store, settings, factory)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_project_routes(api):
    resp = await api.post("/api/projects", json={"name": "Landing page"})
    assert resp.status_code == 200
    project = resp.json()
    assert project["name"] == "Landing page"
    pid = project["id"]

    resp = await api.patch(f"/api/projects/{pid}", json={"description": "Marketing site"})
    assert resp.json()["description"] == "Marketing site"
    assert resp.json()["name"] == "Landing page"

    resp = await api.get(f"/api/projects/{pid}")
    body = resp.json()
    assert body["project"]["id"] == pid
    assert body["messages"] == []
    assert body["generating"] is False

    assert len((await api.get("/api/projects")).json()) == 1

    assert (await api.delete(f"/api/projects/{pid}")).status_code == 200
    assert (await api.get(f"/api/projects/{pid}")).status_code == 404
    assert (await api.delete(f"/api/projects/{pid}")).status_code == 404


@pytest.mark.asyncio
async def test_settings_routes_never_return_keys(api):
    resp = await api.put(
        "/api/settings", json={"provider": "gemini", "api_keys": {"anthropic": "sk-ant"}}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "provider": "gemini",
        "configured": {"gemini": True, "openai": False, "anthropic": True},
    }
    assert "sk-ant" not in resp.text
    assert (await api.put("/api/settings", json={"provider": "other"})).status_code == 422


@pytest.mark.asyncio
async def test_chat_preconditions(api, sqlite_store, chat_store, project):
    pid = project["id"]
    resp = await api.post(f"/api/projects/{pid}/chat", json={"message": "   "})
    assert resp.status_code == 400

    resp = await api.post("/api/projects/missing/chat", json={"message": "hi"})
    assert resp.status_code == 404

    chat_store.try_begin(pid)
    resp = await api.post(f"/api/projects/{pid}/chat", json={"message": "hi"})
    assert resp.status_code == 409
    chat_store.finish(pid)

    await sqlite_store.set_setting("gemini_api_key", "")
    resp = await api.post(f"/api/projects/{pid}/chat", json={"message": "hi"})
    assert resp.status_code == 412

    assert await sqlite_store.get_messages(pid) == []


@pytest.mark.asyncio
async def test_generate_route(api, fake_client, project):
    fake_client.code = "export default function App() {}"
    resp = await api.post(f"/api/projects/{project['id']}/generate", json={"message": "an app"})
    assert resp.status_code == 200
    assert resp.json() == {"code": "export default function App() {}"}

    detail = (await api.get(f"/api/projects/{project['id']}")).json()
    assert detail["project"]["code"] == "export default function App() {}"


@pytest.mark.asyncio
async def test_relay_turn_streams_store_events(chat_store, settings, factory, project):
    engine = ConversationEngine(chat_store, settings, factory)
    events = [e async for e in relay_turn(engine, chat_store, project["id"], "make a counter")]

    kinds = [e["event"] for e in events]
    assert kinds[:2] == ["status", "message"]
    assert kinds[-3:] == ["message", "status", "done"]
    assert set(kinds[2:-3]) == {"code"}
    assert json.loads(events[1]["data"])["content"] == "make a counter"

    # Each code event is the full text so far; a slow reader may skip some
    codes = [e["data"] for e in events if e["event"] == "code"]
    assert codes[-1] == "const x = 1;"
    assert all(later.startswith(earlier) for earlier, later in zip(codes, codes[1:]))
    assert set(codes) <= {"const ", "const x", "const x = 1;"}

    assert json.loads(events[-3]["data"])["content"] == COMPLETION_MESSAGE
    assert "message_id" in json.loads(events[-1]["data"])


@pytest.mark.asyncio
async def test_relay_turn_reports_rejected_turn(chat_store, settings, project):
    engine = ConversationEngine(chat_store, settings, FakeFactory(FakeClient()))
    events = [e async for e in relay_turn(engine, chat_store, project["id"], "  ")]
    assert [e["event"] for e in events] == ["error", "done"]
    assert "error" in json.loads(events[-1]["data"])
