from pathlib import Path
import base64
import itertools
import sys

import fakeredis
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.providers.base import DrawRequest, SyncImageProvider
from app.providers.midjourney import MidjourneyNotify, SubmitResponse
from app.storage.artifacts import LocalArtifactStore
from app.storage.repo import Repo
from app.storage.schema import ImageTask, Provider

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_B64 = base64.b64encode(PNG_BYTES).decode()


class StubProvider(SyncImageProvider):
    def __init__(self, payload=PNG_B64, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls = []

    def normalize(self, request: DrawRequest):
        return {"prompt": request.prompt}

    def generate(self, request: DrawRequest) -> str:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.payload


class StubMidjourney:
    def __init__(self):
        self.code = 1
        self.description = ""
        self.result: str | None = None
        self.submitted = []
        self.tasks = {}
        self.list_error: Exception | None = None
        self._ids = (f"mj-{n}" for n in itertools.count(1))

    def _respond(self) -> SubmitResponse:
        result = self.result
        if result is None and self.code in (1, 21, 22):
            result = next(self._ids)
        return SubmitResponse(code=self.code, description=self.description, result=result)

    def imagine(self, request, notify_url):
        self.submitted.append(("imagine", request.prompt, notify_url))
        return self._respond()

    def action(self, custom_id, task_id, notify_url):
        self.submitted.append(("action", custom_id, task_id, notify_url))
        return self._respond()

    def list_tasks(self, ids):
        if self.list_error is not None:
            raise self.list_error
        return [self.tasks[i] for i in ids if i in self.tasks]


class StubProviders:
    def __init__(self, sync=None, mj=None):
        self.sync = sync or StubProvider()
        self.mj = mj or StubMidjourney()

    def sync_provider(self, provider):
        return self.sync

    def midjourney(self):
        return self.mj


class FlakyArtifactStore(LocalArtifactStore):
    def save(self, content):
        raise OSError("disk full")


def notify(task_id, status, **fields) -> MidjourneyNotify:
    return MidjourneyNotify.model_validate({"id": task_id, "status": status, **fields})


def make_image(image_id="img-1", provider=Provider.MIDJOURNEY, external_task_id=None, **fields) -> ImageTask:
    data = dict(
        id=image_id,
        owner_id="user-1",
        prompt="a cat",
        provider=provider,
        model="midjourney" if provider is Provider.MIDJOURNEY else "dall-e-3",
        width=1024,
        height=1024,
        options={"version": "6.0"},
        external_task_id=external_task_id,
    )
    data.update(fields)
    return ImageTask(**data)


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def repo(redis_server):
    return Repo(fakeredis.FakeRedis(server=redis_server, decode_responses=True))


@pytest.fixture
def artifacts(tmp_path):
    return LocalArtifactStore(str(tmp_path / "files"), "http://files.local/")


@pytest.fixture
def providers():
    return StubProviders()
