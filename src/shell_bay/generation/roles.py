from enum import Enum


class Role(str, Enum):
    """Message roles as the application stores them."""

    USER = "user"
    ASSISTANT = "assistant"


class WireRole(str, Enum):
    """Turn roles as the provider expects them."""

    USER = "user"
    MODEL = "model"


class Provider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def to_wire_role(role: Role | str) -> WireRole:
    return WireRole.USER if Role(role) is Role.USER else WireRole.MODEL
