from typing import Callable, Dict

from .base import SyncImageProvider
from .midjourney import MidjourneyApi
from .openai_images import OpenAIImageProvider
from .stability import StabilityImageProvider
from ..config import Settings
from ..errors import UnsupportedProvider
from ..storage.schema import Provider


class ProviderRegistry:
    """Hands out configured provider clients, built on first use."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._factories: Dict[Provider, Callable[[], SyncImageProvider]] = {
            Provider.OPENAI: self._openai,
            Provider.STABLE_DIFFUSION: self._stability,
        }
        self._sync: Dict[Provider, SyncImageProvider] = {}
        self._midjourney: MidjourneyApi | None = None

    def sync_provider(self, provider: Provider) -> SyncImageProvider:
        if provider not in self._sync:
            factory = self._factories.get(provider)
            if factory is None:
                raise UnsupportedProvider(provider.value)
            self._sync[provider] = factory()
        return self._sync[provider]

    def midjourney(self) -> MidjourneyApi:
        if self._midjourney is None:
            self._midjourney = MidjourneyApi(
                self.settings.midjourney_base_url,
                self.settings.midjourney_api_secret,
                timeout=self.settings.provider_timeout_seconds,
            )
        return self._midjourney

    def _openai(self) -> SyncImageProvider:
        return OpenAIImageProvider(
            self.settings.openai_api_key,
            self.settings.openai_base_url,
            timeout=self.settings.provider_timeout_seconds,
        )

    def _stability(self) -> SyncImageProvider:
        return StabilityImageProvider(
            self.settings.stability_api_key,
            self.settings.stability_base_url,
            timeout=self.settings.provider_timeout_seconds,
        )
