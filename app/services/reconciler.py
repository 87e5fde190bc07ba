"""Merges Midjourney proxy progress into stored image tasks.

Two entry points feed the same merge: the periodic sweep (``sync``) and the
notify webhook (``notify``). Both may deliver the same notification more than
once and may race; the store ignores writes against terminal tasks, so a
merge that loses the race is a no-op.
"""
import logging
from typing import Callable, Optional, Tuple

from ..errors import ImageServiceError
from ..providers.midjourney import MidjourneyApi, MidjourneyNotify, MidjourneyTaskStatus
from ..storage.artifacts import download_bytes
from ..storage.repo import Repo
from ..storage.schema import ImageStatus, ImageTask, Provider

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    MidjourneyTaskStatus.SUCCESS: ImageStatus.SUCCESS,
    MidjourneyTaskStatus.FAILURE: ImageStatus.FAIL,
    MidjourneyTaskStatus.CANCEL: ImageStatus.FAIL,
}


def to_image_status(raw: Optional[str]) -> Optional[ImageStatus]:
    """Map the proxy status vocabulary; None means the job is still running."""
    if not raw:
        return None
    try:
        return _STATUS_MAP.get(MidjourneyTaskStatus(raw))
    except ValueError:
        logger.warning("Unknown Midjourney task status %r, treating as running", raw)
        return None


class MidjourneyReconciler:
    def __init__(self, repo: Repo, api: MidjourneyApi, artifacts,
                 downloader: Callable[[str], bytes] = download_bytes):
        self.repo = repo
        self.api = api
        self.artifacts = artifacts
        self.downloader = downloader

    def sync(self) -> int:
        images = self.repo.list_by_status_and_provider(ImageStatus.IN_PROGRESS, Provider.MIDJOURNEY)
        images = [image for image in images if image.external_task_id]
        if not images:
            return 0
        try:
            notifications = self.api.list_tasks(image.external_task_id for image in images)
        except ImageServiceError:
            logger.exception("Midjourney sync could not fetch progress for %d images", len(images))
            return 0
        by_task_id = {n.id: n for n in notifications}

        count = 0
        for image in images:
            notify = by_task_id.get(image.external_task_id)
            if notify is None:
                logger.error("Midjourney sync found no progress for image %s (task %s)",
                             image.id, image.external_task_id)
                continue
            if self.merge(image, notify):
                count += 1
        return count

    def notify(self, notify: MidjourneyNotify) -> bool:
        image = self.repo.get_by_external_task_id(Provider.MIDJOURNEY, notify.id)
        if image is None:
            logger.warning("Midjourney notify for unknown task %s dropped", notify.id)
            return False
        return self.merge(image, notify)

    def merge(self, image: ImageTask, notify: MidjourneyNotify) -> bool:
        if image.status.terminal:
            logger.debug("Image %s already %s, ignoring task %s", image.id, image.status.value, notify.id)
            return False

        try:
            status, artifact_ref, error_message = self._resolve(image, notify)
            applied = self.repo.update(
                image.id,
                status=status,
                artifact_ref=artifact_ref,
                error_message=error_message,
                buttons=notify.buttons,
            )
        except Exception:
            logger.exception("Could not merge Midjourney task %s into image %s", notify.id, image.id)
            return False
        if not applied:
            logger.debug("Merge of task %s into image %s had no effect", notify.id, image.id)
        return applied

    def _resolve(self, image: ImageTask, notify: MidjourneyNotify) -> Tuple[Optional[ImageStatus], Optional[str], Optional[str]]:
        status = to_image_status(notify.status)
        if status is ImageStatus.SUCCESS:
            if notify.image_url:
                return status, self._persist(image, notify.image_url), None
            return ImageStatus.FAIL, None, notify.fail_reason or "Midjourney reported success without an image"
        if status is ImageStatus.FAIL:
            return status, None, notify.fail_reason or f"Midjourney task ended with {notify.status}"
        return None, None, None

    def _persist(self, image: ImageTask, url: str) -> str:
        try:
            return self.artifacts.save(self.downloader(url))
        except Exception as exc:
            logger.warning("Image %s: could not store %s, keeping the external url: %s", image.id, url, exc)
            return url
