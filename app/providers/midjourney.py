"""Client for a Midjourney proxy (midjourney-proxy compatible HTTP API).

Submissions return immediately with a proxy task id; progress is reported
later, either by the proxy calling our notify hook or by polling
``/task/list-by-condition``.
"""
from enum import Enum
from math import gcd
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .base import DrawRequest
from ..errors import ProviderRejected, ProviderUnavailable
from ..storage.schema import ImageAction

MODELS = {"midjourney", "niji"}
DEFAULT_VERSION = "6.0"

# 1: submitted, 21: already exists, 22: queued
SUCCESS_CODES = {1, 21, 22}


class MidjourneyTaskStatus(str, Enum):
    NOT_START = "NOT_START"
    SUBMITTED = "SUBMITTED"
    MODAL = "MODAL"
    IN_PROGRESS = "IN_PROGRESS"
    FAILURE = "FAILURE"
    SUCCESS = "SUCCESS"
    CANCEL = "CANCEL"


class SubmitResponse(BaseModel):
    code: int
    description: str = ""
    result: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.code in SUCCESS_CODES and bool(self.result)


class MidjourneyNotify(BaseModel):
    """Task progress as pushed to the notify hook or returned by the task list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    action: Optional[str] = None
    status: Optional[str] = None
    prompt: Optional[str] = None
    prompt_en: Optional[str] = Field(default=None, alias="promptEn")
    description: Optional[str] = None
    state: Optional[str] = None
    submit_time: Optional[int] = Field(default=None, alias="submitTime")
    start_time: Optional[int] = Field(default=None, alias="startTime")
    finish_time: Optional[int] = Field(default=None, alias="finishTime")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    progress: Optional[str] = None
    fail_reason: Optional[str] = Field(default=None, alias="failReason")
    buttons: Optional[List[ImageAction]] = None


_SUBMIT = TypeAdapter(SubmitResponse)
_NOTIFY_LIST = TypeAdapter(List[MidjourneyNotify])


def build_state(width: int, height: int, version: str, model: str) -> str:
    divisor = gcd(width, height) or 1
    params = f"--ar {width // divisor}:{height // divisor}"
    if model == "niji":
        return f"{params} --niji {version}"
    return f"{params} --v {version}"


def normalize(request: DrawRequest) -> Dict[str, Any]:
    model = request.model or "midjourney"
    if model not in MODELS:
        raise ProviderRejected(f"Unsupported Midjourney model: {model}")
    if request.width <= 0 or request.height <= 0:
        raise ProviderRejected("Midjourney needs a positive width and height")
    version = str(request.options.get("version") or DEFAULT_VERSION)
    return {
        "prompt": request.prompt,
        "state": build_state(request.width, request.height, version, model),
        "base64Array": request.options.get("reference_images") or [],
    }


class MidjourneyApi:
    def __init__(self, base_url: str, api_secret: str | None = None, timeout: float = 30,
                 client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        headers = {"mj-api-secret": api_secret} if api_secret else {}
        self.client = client or httpx.Client(timeout=timeout, headers=headers)

    def imagine(self, request: DrawRequest, notify_url: str) -> SubmitResponse:
        payload = normalize(request)
        payload["notifyHook"] = notify_url
        return self._parse("/submit/imagine", _SUBMIT, self._post("/submit/imagine", payload))

    def action(self, custom_id: str, task_id: str, notify_url: str) -> SubmitResponse:
        payload = {"customId": custom_id, "taskId": task_id, "notifyHook": notify_url}
        return self._parse("/submit/action", _SUBMIT, self._post("/submit/action", payload))

    def list_tasks(self, ids: Iterable[str]) -> List[MidjourneyNotify]:
        path = "/task/list-by-condition"
        data = self._post(path, {"ids": sorted(set(ids))})
        return self._parse(path, _NOTIFY_LIST, data or [])

    def _post(self, path: str, payload: dict):
        try:
            r = self.client.post(f"{self.base_url}{path}", json=payload)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Midjourney proxy call {path} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderUnavailable(f"Midjourney proxy call {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse(path: str, adapter: TypeAdapter, data):
        try:
            return adapter.validate_python(data)
        except ValidationError as exc:
            raise ProviderUnavailable(f"Midjourney proxy call {path} returned an unexpected payload: {exc}") from exc
