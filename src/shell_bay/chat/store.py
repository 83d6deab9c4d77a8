import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from ..data.sqlite_store import SQLiteStore
from ..generation.roles import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreEvent:
    """A whole-value change published to observers of one project."""

    type: str  # "message", "code", "status"
    project_id: str
    data: Any = None


class Subscription:
    """One observer's event feed.

    Code writes that arrive back to back and have not been read yet collapse
    into the newest one, so a slow reader holds at most one pending artifact
    per run of writes instead of every intermediate value. Every other event
    is delivered in publish order.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tail_code: list | None = None

    def put_nowait(self, event: StoreEvent | None) -> None:
        if event is not None and event.type == "code":
            if self._tail_code is not None:
                self._tail_code[0] = event
                return
            self._tail_code = [event]
            self._queue.put_nowait(self._tail_code)
            return
        self._tail_code = None
        self._queue.put_nowait(event)

    def _unwrap(self, item: Any) -> StoreEvent | None:
        if isinstance(item, list):
            if item is self._tail_code:
                self._tail_code = None
            return item[0]
        return item

    async def get(self) -> StoreEvent | None:
        return self._unwrap(await self._queue.get())

    def get_nowait(self) -> StoreEvent | None:
        return self._unwrap(self._queue.get_nowait())

    def empty(self) -> bool:
        return self._queue.empty()


class ChatStore:
    """Per-project conversation, artifact and generating flag.

    Every write goes through to the project store and is then published to
    the project's observers. Values are always replaced whole, so an observer
    never sees half of a write.
    """

    def __init__(self, sqlite_store: SQLiteStore) -> None:
        self._sqlite = sqlite_store
        self._generating: set[str] = set()
        self._observers: dict[str, set[Subscription]] = {}

    async def get_project(self, project_id: str) -> dict | None:
        return await self._sqlite.get_project(project_id)

    async def get_messages(self, project_id: str) -> list[dict]:
        return await self._sqlite.get_messages(project_id)

    async def get_code(self, project_id: str) -> str:
        project = await self._sqlite.get_project(project_id)
        return project["code"] if project else ""

    async def add_message(self, project_id: str, role: Role, content: str) -> dict:
        message = await self._sqlite.add_message(project_id, Role(role).value, content)
        self._publish(StoreEvent("message", project_id, message))
        return message

    async def update_code(self, project_id: str, code: str) -> None:
        await self._sqlite.update_code(project_id, code)
        self._publish(StoreEvent("code", project_id, code))

    # --- Generating flag ---

    def is_generating(self, project_id: str) -> bool:
        return project_id in self._generating

    def try_begin(self, project_id: str) -> bool:
        """Set the generating flag; False if it was already set."""
        if project_id in self._generating:
            return False
        self._generating.add(project_id)
        self._publish(StoreEvent("status", project_id, True))
        return True

    def finish(self, project_id: str) -> None:
        self._generating.discard(project_id)
        self._publish(StoreEvent("status", project_id, False))

    # --- Observers ---

    @asynccontextmanager
    async def subscribe(self, project_id: str) -> AsyncIterator[Subscription]:
        queue = Subscription()
        self._observers.setdefault(project_id, set()).add(queue)
        try:
            yield queue
        finally:
            observers = self._observers.get(project_id)
            if observers is not None:
                observers.discard(queue)
                if not observers:
                    del self._observers[project_id]

    def _publish(self, event: StoreEvent) -> None:
        for queue in self._observers.get(event.project_id, ()):
            queue.put_nowait(event)
