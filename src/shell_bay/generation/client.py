import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    HTTP_TIMEOUT_SECS,
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    TOP_K,
    TOP_P,
)
from .errors import AuthError, ConfigError, RequestError, TransportError
from .extract import extract_code
from .prompts import SYSTEM_PROMPT
from .roles import Provider, WireRole, to_wire_role
from .sse import iter_sse_json

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to generate code"


def make_turn(role: WireRole, text: str) -> dict:
    return {"role": role.value, "parts": [{"text": text}]}


def to_wire_history(messages: list[dict]) -> list[dict]:
    """Map stored conversation messages onto provider turns."""
    return [make_turn(to_wire_role(m["role"]), m["content"]) for m in messages]


def build_contents(prompt: str, history: list[dict]) -> list[dict]:
    return [
        make_turn(WireRole.USER, SYSTEM_PROMPT),
        *history,
        make_turn(WireRole.USER, prompt),
    ]


def build_request(prompt: str, history: list[dict]) -> dict:
    return {
        "contents": build_contents(prompt, history),
        "generationConfig": {
            "temperature": TEMPERATURE,
            "topK": TOP_K,
            "topP": TOP_P,
            "maxOutputTokens": MAX_OUTPUT_TOKENS,
        },
    }


def extract_text(envelope: Any) -> str | None:
    """Pull candidates[0].content.parts[0].text out of a response envelope."""
    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return GENERIC_ERROR
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return str(message)
    return GENERIC_ERROR


class GeminiClient:
    """Talks to the Gemini generateContent / streamGenerateContent endpoints.

    Each call issues exactly one request and never retries; callers decide
    what to do with the raised GenerationError.
    """

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient | None = None,
        base_url: str = GEMINI_BASE_URL,
        model: str = GEMINI_MODEL,
    ) -> None:
        if not api_key:
            raise AuthError("No API key configured for gemini")
        self._api_key = api_key
        self._http = http
        self._owns_http = http is None
        self._base_url = base_url.rstrip("/")
        self._model = model

    def _url(self, method: str) -> str:
        return f"{self._base_url}/models/{self._model}:{method}"

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECS)
        return self._http

    async def stream_generate(self, prompt: str, history: list[dict]) -> AsyncIterator[str]:
        """Yield text fragments as the provider streams them."""
        body = build_request(prompt, history)
        params = {"key": self._api_key, "alt": "sse"}
        try:
            async with self._client().stream(
                "POST", self._url("streamGenerateContent"), params=params, json=body
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise RequestError(_error_message(response), response.status_code)
                async for envelope in iter_sse_json(response.aiter_bytes()):
                    text = extract_text(envelope)
                    if text:
                        yield text
        except httpx.HTTPError as e:
            logger.error("Gemini stream failed: %s", e)
            raise TransportError(f"Connection to the model failed: {e}") from e

    async def generate_code(self, prompt: str, history: list[dict]) -> str:
        """Generate in one request and return the extracted code."""
        body = build_request(prompt, history)
        try:
            response = await self._client().post(
                self._url("generateContent"), params={"key": self._api_key}, json=body
            )
        except httpx.HTTPError as e:
            logger.error("Gemini request failed: %s", e)
            raise TransportError(f"Connection to the model failed: {e}") from e

        if response.is_error:
            raise RequestError(_error_message(response), response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("Response body was not valid JSON") from e
        return extract_code(extract_text(data) or "")

    async def close(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()


def create_client(
    provider: Provider | str, api_key: str, http: httpx.AsyncClient | None = None
) -> GeminiClient:
    """Build the protocol client for a provider, checking its credential first."""
    provider = Provider(provider)
    if not api_key:
        raise AuthError(f"No API key configured for {provider.value}")
    if provider is not Provider.GEMINI:
        raise ConfigError(f"Provider {provider.value} is not supported yet")
    return GeminiClient(api_key, http=http)
