import logging

from fastapi import APIRouter, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from ..generation.errors import (
    ConfigError,
    EmptyInputError,
    GenerationError,
    GenerationInProgressError,
    ProjectNotFoundError,
)
from .models import (
    ChatRequest,
    CreateProjectRequest,
    GenerateOut,
    ProjectDetailOut,
    ProjectOut,
    SettingsUpdate,
    UpdateProjectRequest,
)
from .sse import sse_code, sse_done, sse_error, sse_message, sse_status

logger = logging.getLogger(__name__)
router = APIRouter()


def _http_error(e: GenerationError) -> HTTPException:
    if isinstance(e, EmptyInputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ProjectNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, GenerationInProgressError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigError):
        return HTTPException(status_code=412, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


# --- Projects ---


@router.post("/api/projects", response_model=ProjectOut)
async def create_project(req: CreateProjectRequest, request: Request):
    sqlite = request.app.state.sqlite_store
    return await sqlite.create_project(req.name, req.description)


@router.get("/api/projects", response_model=list[ProjectOut])
async def list_projects(request: Request):
    sqlite = request.app.state.sqlite_store
    return await sqlite.list_projects()


@router.get("/api/projects/{project_id}", response_model=ProjectDetailOut)
async def get_project(project_id: str, request: Request):
    sqlite = request.app.state.sqlite_store
    engine = request.app.state.engine
    project = await sqlite.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    messages = await sqlite.get_messages(project_id)
    return {
        "project": project,
        "messages": messages,
        "generating": engine.is_generating(project_id),
    }


@router.patch("/api/projects/{project_id}", response_model=ProjectOut)
async def update_project(project_id: str, req: UpdateProjectRequest, request: Request):
    sqlite = request.app.state.sqlite_store
    if not await sqlite.get_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    await sqlite.update_project(project_id, name=req.name, description=req.description)
    return await sqlite.get_project(project_id)


@router.delete("/api/projects/{project_id}")
async def delete_project(project_id: str, request: Request):
    sqlite = request.app.state.sqlite_store
    engine = request.app.state.engine
    if engine.is_generating(project_id):
        raise HTTPException(status_code=409, detail="Project is generating")
    if not await sqlite.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"deleted": project_id}


# --- Generation ---


@router.post("/api/projects/{project_id}/chat")
async def chat_endpoint(project_id: str, req: ChatRequest, request: Request):
    engine = request.app.state.engine
    chat_store = request.app.state.chat_store

    try:
        client = await engine.check(project_id, req.message)
    except GenerationError as e:
        raise _http_error(e) from e
    await client.close()

    return EventSourceResponse(relay_turn(engine, chat_store, project_id, req.message), ping=15)


async def relay_turn(engine, chat_store, project_id: str, message: str):
    """Start a turn and yield its store events as SSE dicts until it ends."""
    async with chat_store.subscribe(project_id) as queue:
        task = engine.start(project_id, message)
        task.add_done_callback(lambda _: queue.put_nowait(None))

        while True:
            event = await queue.get()
            if event is None:
                break
            if event.type == "message":
                yield sse_message(event.data)
            elif event.type == "code":
                yield sse_code(event.data)
            elif event.type == "status":
                yield sse_status(event.data)

    try:
        reply = task.result()
    except GenerationError as e:
        logger.warning("Turn rejected for project %s: %s", project_id, e)
        yield sse_error(str(e))
        yield sse_done({"error": str(e)})
        return
    except Exception as e:
        logger.exception("Error in chat stream")
        yield sse_error(str(e))
        yield sse_done({"error": str(e)})
        return
    yield sse_done({"message_id": reply["id"]})


@router.post("/api/projects/{project_id}/generate", response_model=GenerateOut)
async def generate_endpoint(project_id: str, req: ChatRequest, request: Request):
    engine = request.app.state.engine
    try:
        code = await engine.generate(project_id, req.message)
    except GenerationError as e:
        logger.warning("Generation failed for project %s: %s", project_id, e)
        raise _http_error(e) from e
    return {"code": code}


# --- Settings ---


@router.get("/api/settings")
async def get_settings(request: Request):
    settings = request.app.state.settings
    return await settings.summary()


@router.put("/api/settings")
async def update_settings(req: SettingsUpdate, request: Request):
    settings = request.app.state.settings
    api_keys = {p.value: key for p, key in (req.api_keys or {}).items()}
    await settings.update(provider=req.provider, api_keys=api_keys)
    return await settings.summary()
