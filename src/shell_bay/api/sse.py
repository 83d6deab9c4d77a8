import json


def format_sse_event(event_type: str, data: str) -> dict:
    """Format an SSE event for sse-starlette's EventSourceResponse."""
    return {"event": event_type, "data": data}


def sse_message(message: dict) -> dict:
    return format_sse_event("message", json.dumps(message))


def sse_code(code: str) -> dict:
    return format_sse_event("code", code)


def sse_status(generating: bool) -> dict:
    return format_sse_event("status", json.dumps({"generating": generating}))


def sse_error(error: str) -> dict:
    return format_sse_event("error", error)


def sse_done(data: dict) -> dict:
    return format_sse_event("done", json.dumps(data))
