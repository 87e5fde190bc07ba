from typing import Any, Dict

import openai
from openai import OpenAI

from .base import DrawRequest, SyncImageProvider
from ..errors import ProviderRejected, ProviderUnavailable

# https://platform.openai.com/docs/api-reference/images/create
_SIZES = {
    "dall-e-2": {(256, 256), (512, 512), (1024, 1024)},
    "dall-e-3": {(1024, 1024), (1792, 1024), (1024, 1792)},
}
_STYLES = {"vivid", "natural"}


class OpenAIImageProvider(SyncImageProvider):
    def __init__(self, api_key: str | None, base_url: str | None = None, timeout: float = 120, client=None):
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def normalize(self, request: DrawRequest) -> Dict[str, Any]:
        model = request.model or "dall-e-3"
        sizes = _SIZES.get(model)
        if sizes is None:
            raise ProviderRejected(f"Unsupported OpenAI image model: {model}")
        if (request.width, request.height) not in sizes:
            raise ProviderRejected(f"{model} does not support size {request.width}x{request.height}")
        params = {
            "model": model,
            "prompt": request.prompt,
            "size": f"{request.width}x{request.height}",
            "n": 1,
            "response_format": "b64_json",
        }
        style = request.options.get("style")
        if style:
            if model != "dall-e-3" or style not in _STYLES:
                raise ProviderRejected(f"Style {style!r} is not available for {model}")
            params["style"] = style
        return params

    def generate(self, request: DrawRequest) -> str:
        params = self.normalize(request)
        try:
            resp = self.client.images.generate(**params)
        except openai.BadRequestError as exc:
            raise ProviderRejected(f"OpenAI rejected the request: {exc}") from exc
        except openai.APIError as exc:
            raise ProviderUnavailable(f"OpenAI image call failed: {exc}") from exc
        if not resp.data or not resp.data[0].b64_json:
            raise ProviderUnavailable("OpenAI returned no image data")
        return resp.data[0].b64_json
