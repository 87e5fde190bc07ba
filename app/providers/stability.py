from typing import Any, Dict

import httpx

from .base import DrawRequest, SyncImageProvider
from ..errors import ProviderRejected, ProviderUnavailable

# https://platform.stability.ai/docs/api-reference#tag/Text-to-Image
_OPTION_FIELDS = ("style_preset", "cfg_scale", "steps", "seed", "clip_guidance_preset", "sampler")
_MIN_SIDE, _MAX_SIDE = 320, 1536


class StabilityImageProvider(SyncImageProvider):
    def __init__(self, api_key: str | None, base_url: str, timeout: float = 120, client: httpx.Client | None = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def normalize(self, request: DrawRequest) -> Dict[str, Any]:
        if not request.model:
            raise ProviderRejected("Stable Diffusion requires an engine id as model")
        for side in (request.width, request.height):
            if side % 64 or not _MIN_SIDE <= side <= _MAX_SIDE:
                raise ProviderRejected(
                    f"Stable Diffusion needs multiples of 64 between {_MIN_SIDE} and {_MAX_SIDE}, got {side}"
                )
        payload: Dict[str, Any] = {
            "text_prompts": [{"text": request.prompt}],
            "width": request.width,
            "height": request.height,
            "samples": 1,
        }
        for name in _OPTION_FIELDS:
            if request.options.get(name) is not None:
                payload[name] = request.options[name]
        return payload

    def generate(self, request: DrawRequest) -> str:
        payload = self.normalize(request)
        url = f"{self.base_url}/v1/generation/{request.model}/text-to-image"
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        try:
            r = self.client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Stability request failed: {exc}") from exc
        if r.status_code == 400:
            raise ProviderRejected(f"Stability rejected the request: {r.text}")
        if r.status_code != 200:
            raise ProviderUnavailable(f"Stability request failed with status {r.status_code}: {r.text}")
        artifacts = r.json().get("artifacts") or []
        if not artifacts:
            raise ProviderUnavailable("Stability returned no artifacts")
        first = artifacts[0]
        if first.get("finishReason") == "CONTENT_FILTERED":
            raise ProviderRejected("Stability filtered the generated image")
        return first["base64"]
