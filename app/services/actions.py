import logging
import uuid

from ..errors import ActionNotAvailable, QuotaExhausted, SubmitFailed, TaskNotFound
from ..providers.midjourney import MidjourneyApi, SubmitResponse
from ..storage.repo import DuplicateExternalTask, Repo
from ..storage.schema import ImageStatus, ImageTask

logger = logging.getLogger(__name__)


def check_submit(resp: SubmitResponse) -> str:
    """Return the new proxy task id, or raise the error matching the rejection."""
    if resp.accepted:
        return resp.result
    if "quota_not_enough" in (resp.description or ""):
        raise QuotaExhausted()
    raise SubmitFailed(resp.description or f"code {resp.code}")


class ActionDispatcher:
    """Invokes a provider-offered follow-up action and tracks it as a new task."""

    def __init__(self, repo: Repo, api: MidjourneyApi, notify_url: str):
        self.repo = repo
        self.api = api
        self.notify_url = notify_url

    def invoke(self, image_id: str, custom_id: str, owner_id: str | None = None) -> str:
        image = self.repo.get(image_id)
        if image is None or (owner_id is not None and image.owner_id != owner_id):
            raise TaskNotFound(image_id)
        if not image.external_task_id or custom_id not in {b.custom_id for b in image.buttons}:
            raise ActionNotAvailable(image_id, custom_id)

        external_id = check_submit(self.api.action(custom_id, image.external_task_id, self.notify_url))

        derived = ImageTask(
            id=uuid.uuid4().hex,
            owner_id=image.owner_id,
            prompt=image.prompt,
            provider=image.provider,
            model=image.model,
            width=image.width,
            height=image.height,
            options=image.options,
            public_status=image.public_status,
            status=ImageStatus.IN_PROGRESS,
            external_task_id=external_id,
        )
        try:
            self.repo.create(derived)
        except DuplicateExternalTask:
            # code 21, or a concurrent invocation of the same action, hands back a tracked task
            existing = self.repo.get_by_external_task_id(image.provider, external_id)
            if existing is None or existing.id == image.id:
                raise SubmitFailed(f"proxy returned task {external_id} which is already tracked")
            return existing.id
        logger.info("Image %s: action %s submitted as image %s (task %s)",
                    image_id, custom_id, derived.id, external_id)
        return derived.id
