import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from ..data.settings import SettingsStore
from ..generation.client import create_client, to_wire_history
from ..generation.errors import (
    EmptyInputError,
    GenerationInProgressError,
    ProjectNotFoundError,
)
from ..generation.roles import Provider, Role
from .store import ChatStore

logger = logging.getLogger(__name__)

COMPLETION_MESSAGE = "I've generated the code based on your requirements. Check the preview!"


def error_message(error: BaseException) -> str:
    return f"Error: {error}. Please check your API key in Settings."


class ConversationEngine:
    """Runs generation turns: Idle -> Generating -> Idle, one per project.

    A turn appends the user message, streams chunks into the project's
    artifact (each write is the full text so far) and ends with either the
    completion acknowledgment or an error message. A failed turn keeps
    whatever partial artifact it had written.
    """

    def __init__(
        self,
        store: ChatStore,
        settings: SettingsStore,
        client_factory: Callable[[Provider, str], Any] = create_client,
    ) -> None:
        self._store = store
        self._settings = settings
        self._client_factory = client_factory
        self._tasks: set[asyncio.Task] = set()

    def is_generating(self, project_id: str) -> bool:
        return self._store.is_generating(project_id)

    async def check(self, project_id: str, prompt: str) -> Any:
        """Validate a submission without writing anything; return the client to use."""
        if not prompt or not prompt.strip():
            raise EmptyInputError("Prompt is empty")
        if self._store.is_generating(project_id):
            raise GenerationInProgressError("A generation is already running for this project")
        if await self._store.get_project(project_id) is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        provider, api_key = await self._settings.credential()
        return self._client_factory(provider, api_key)

    async def submit(self, project_id: str, prompt: str) -> dict:
        """Run one turn to completion and return the assistant message.

        Precondition failures raise before anything is written. Failures
        during generation become the assistant message and never propagate.
        """
        client = await self.check(project_id, prompt)
        if not self._store.try_begin(project_id):
            await client.close()
            raise GenerationInProgressError("A generation is already running for this project")

        t0 = time.time()
        chunks = 0
        try:
            history = to_wire_history(await self._store.get_messages(project_id))
            await self._store.add_message(project_id, Role.USER, prompt)
            logger.info("Turn started for project %s (%d prior messages)", project_id, len(history))

            accumulated = ""
            async for chunk in client.stream_generate(prompt, history):
                chunks += 1
                accumulated += chunk
                await self._store.update_code(project_id, accumulated)

            reply = await self._store.add_message(project_id, Role.ASSISTANT, COMPLETION_MESSAGE)
        except Exception as e:
            logger.exception("Generation failed for project %s after %d chunks", project_id, chunks)
            reply = await self._record_failure(project_id, e)
        finally:
            self._store.finish(project_id)
            await client.close()

        logger.info(
            "Turn finished for project %s: %d chunks in %d ms",
            project_id,
            chunks,
            round((time.time() - t0) * 1000),
        )
        return reply

    async def _record_failure(self, project_id: str, error: Exception) -> dict:
        content = error_message(error)
        try:
            return await self._store.add_message(project_id, Role.ASSISTANT, content)
        except Exception:
            # The project may have been deleted while the turn was starting
            logger.exception("Could not record failure for project %s", project_id)
            return {
                "id": None,
                "project_id": project_id,
                "role": Role.ASSISTANT.value,
                "content": content,
                "timestamp": None,
            }

    def start(self, project_id: str, prompt: str) -> asyncio.Task:
        """Run submit() in the background; the turn outlives any observer."""
        task = asyncio.create_task(self.submit(project_id, prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def generate(self, project_id: str, prompt: str) -> str:
        """One-shot generation: the extracted code replaces the artifact.

        Uses the same preconditions and generating flag as a streamed turn
        but leaves the conversation untouched. Errors propagate.
        """
        client = await self.check(project_id, prompt)
        if not self._store.try_begin(project_id):
            await client.close()
            raise GenerationInProgressError("A generation is already running for this project")
        try:
            history = to_wire_history(await self._store.get_messages(project_id))
            code = await client.generate_code(prompt, history)
            await self._store.update_code(project_id, code)
            return code
        finally:
            self._store.finish(project_id)
            await client.close()
