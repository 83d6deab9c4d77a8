from pydantic import BaseModel

from ..data.sqlite_store import DEFAULT_PROJECT_DESCRIPTION, DEFAULT_PROJECT_NAME
from ..generation.roles import Provider, Role


class ChatRequest(BaseModel):
    message: str


class CreateProjectRequest(BaseModel):
    name: str = DEFAULT_PROJECT_NAME
    description: str = DEFAULT_PROJECT_DESCRIPTION


class UpdateProjectRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class SettingsUpdate(BaseModel):
    provider: Provider | None = None
    api_keys: dict[Provider, str] | None = None


class ProjectOut(BaseModel):
    id: str
    name: str
    description: str
    code: str
    created_at: str
    updated_at: str


class MessageOut(BaseModel):
    id: str
    project_id: str
    role: Role
    content: str
    timestamp: str


class ProjectDetailOut(BaseModel):
    project: ProjectOut
    messages: list[MessageOut]
    generating: bool


class GenerateOut(BaseModel):
    code: str
