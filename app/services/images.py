import logging
import uuid
from typing import Any, Callable, Dict, List

from .actions import check_submit
from ..errors import SubmitFailed, TaskNotFound
from ..providers import midjourney
from ..providers.base import DrawRequest
from ..providers.registry import ProviderRegistry
from ..storage.repo import DuplicateExternalTask, Repo
from ..storage.schema import ImageStatus, ImageTask, Provider

logger = logging.getLogger(__name__)


class ImageService:
    """Task submission and owner-scoped reads.

    ``dispatch`` hands a task id to the background executor; it must return
    without waiting for the generation to finish.
    """

    def __init__(self, repo: Repo, providers: ProviderRegistry, dispatch: Callable[[str], Any], notify_url: str):
        self.repo = repo
        self.providers = providers
        self.dispatch = dispatch
        self.notify_url = notify_url

    def draw(self, owner_id: str, provider: "str | Provider", prompt: str, model: str, width: int, height: int,
             options: Dict[str, Any] | None = None, public_status: bool = False) -> str:
        provider = Provider.parse(provider)
        request = DrawRequest(prompt=prompt, model=model, width=width, height=height, options=dict(options or {}))
        if provider.is_async:
            midjourney.normalize(request)
        else:
            self.providers.sync_provider(provider).normalize(request)

        image = ImageTask(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            prompt=prompt,
            provider=provider,
            model=model,
            width=width,
            height=height,
            options=request.options,
            public_status=public_status,
        )
        self.repo.create(image)
        logger.info("Image %s created for owner %s on %s", image.id, owner_id, provider.value)

        if provider.is_async:
            self._submit_imagine(image, request)
        else:
            self._dispatch(image)
        return image.id

    def _dispatch(self, image: ImageTask):
        try:
            self.dispatch(image.id)
        except Exception as exc:
            logger.exception("Image %s could not be scheduled", image.id)
            self.repo.update(image.id, status=ImageStatus.FAIL,
                             error_message=f"Could not schedule generation: {exc}")

    def _submit_imagine(self, image: ImageTask, request: DrawRequest):
        try:
            external_id = check_submit(self.providers.midjourney().imagine(request, self.notify_url))
            self.repo.set_external_task_id(image.id, external_id)
        except Exception as exc:
            self.repo.delete(image.id)
            logger.info("Image %s rolled back after a failed Midjourney submission", image.id)
            if isinstance(exc, DuplicateExternalTask):
                raise SubmitFailed(f"proxy returned task {exc.external_id} which is already tracked") from exc
            raise

    def get(self, image_id: str) -> ImageTask:
        image = self.repo.get(image_id)
        if image is None:
            raise TaskNotFound(image_id)
        return image

    def list_my(self, owner_id: str, limit: int = 50) -> List[ImageTask]:
        return self.repo.list_by_owner(owner_id, limit)

    def delete_my(self, image_id: str, owner_id: str):
        image = self.repo.get(image_id)
        if image is None or image.owner_id != owner_id:
            raise TaskNotFound(image_id)
        self.repo.delete(image_id)
