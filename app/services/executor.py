import base64
import binascii
import logging

from ..providers.base import DrawRequest
from ..providers.registry import ProviderRegistry
from ..storage.repo import Repo
from ..storage.schema import ImageStatus, ImageTask

logger = logging.getLogger(__name__)


def to_draw_request(image: ImageTask) -> DrawRequest:
    return DrawRequest(
        prompt=image.prompt,
        model=image.model,
        width=image.width,
        height=image.height,
        options=dict(image.options),
    )


def decode_image(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, TypeError) as exc:
        raise ValueError(f"Could not decode image payload: {exc}") from exc


class TaskExecutor:
    """Runs a synchronous provider call for a persisted task and records the outcome.

    Every failure ends the task in FAIL; nothing is re-raised to the worker.
    """

    def __init__(self, repo: Repo, providers: ProviderRegistry, artifacts):
        self.repo = repo
        self.providers = providers
        self.artifacts = artifacts

    def execute(self, image_id: str) -> ImageStatus | None:
        image = self.repo.get(image_id)
        if image is None:
            logger.warning("Image %s vanished before execution", image_id)
            return None
        if image.status.terminal:
            logger.info("Image %s is already %s, skipping", image_id, image.status.value)
            return image.status

        try:
            provider = self.providers.sync_provider(image.provider)
            payload = provider.generate(to_draw_request(image))
            artifact_ref = self.artifacts.save(decode_image(payload))
            self.repo.update(image_id, status=ImageStatus.SUCCESS, artifact_ref=artifact_ref)
        except Exception as exc:
            logger.exception("Image %s generation failed", image_id)
            return self._fail(image, str(exc) or type(exc).__name__)

        logger.info("Image %s generated: %s", image_id, artifact_ref)
        return ImageStatus.SUCCESS

    def _fail(self, image: ImageTask, message: str) -> ImageStatus | None:
        try:
            self.repo.update(image.id, status=ImageStatus.FAIL, error_message=message)
        except Exception:
            logger.exception("Image %s: could not record the failure", image.id)
            return None
        return ImageStatus.FAIL
