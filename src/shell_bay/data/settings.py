import logging

from ..config import DEFAULT_PROVIDER, ENV_API_KEYS
from ..generation.roles import Provider
from .sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

ACTIVE_PROVIDER_KEY = "active_provider"


def _api_key_setting(provider: Provider) -> str:
    return f"{provider.value}_api_key"


class SettingsStore:
    """Credential source: the active provider and one API key per provider.

    A stored key, even an empty one, takes precedence over the environment
    fallback, so saving an empty key clears it.
    """

    def __init__(self, sqlite_store: SQLiteStore) -> None:
        self._sqlite = sqlite_store

    async def active_provider(self) -> Provider:
        value = await self._sqlite.get_setting(ACTIVE_PROVIDER_KEY)
        return Provider(value or DEFAULT_PROVIDER)

    async def api_key(self, provider: Provider | str) -> str:
        provider = Provider(provider)
        stored = await self._sqlite.get_setting(_api_key_setting(provider))
        if stored is not None:
            return stored
        return ENV_API_KEYS.get(provider.value, "")

    async def credential(self) -> tuple[Provider, str]:
        provider = await self.active_provider()
        return provider, await self.api_key(provider)

    async def update(
        self, provider: Provider | str | None = None, api_keys: dict[str, str] | None = None
    ) -> None:
        if provider is not None:
            await self._sqlite.set_setting(ACTIVE_PROVIDER_KEY, Provider(provider).value)
        for name, key in (api_keys or {}).items():
            await self._sqlite.set_setting(_api_key_setting(Provider(name)), key)
        logger.info("Settings updated (provider=%s, keys=%s)", provider, sorted(api_keys or {}))

    async def summary(self) -> dict:
        """Active provider and which keys are present; never the keys themselves."""
        provider = await self.active_provider()
        configured = {p.value: bool(await self.api_key(p)) for p in Provider}
        return {"provider": provider.value, "configured": configured}
