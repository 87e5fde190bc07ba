import logging
import uuid
from pathlib import Path

import httpx

from ..errors import ArtifactStoreFailure

logger = logging.getLogger(__name__)

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"\xff\xd8\xff", ".jpg"),
    (b"GIF8", ".gif"),
)


def guess_extension(content: bytes) -> str:
    for signature, ext in _SIGNATURES:
        if content.startswith(signature):
            return ext
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return ".webp"
    return ".bin"


class LocalArtifactStore:
    """Writes image bytes to a directory served under ``base_url``."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def save(self, content: bytes) -> str:
        name = f"{uuid.uuid4().hex}{guess_extension(content)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(content)
        except OSError as exc:
            raise ArtifactStoreFailure(f"Could not store artifact: {exc}") from exc
        logger.debug("Stored artifact %s (%d bytes)", name, len(content))
        return f"{self.base_url}/{name}"


def download_bytes(url: str, timeout: float = 60, client: httpx.Client | None = None) -> bytes:
    try:
        if client is not None:
            resp = client.get(url)
            resp.raise_for_status()
            return resp.content
        with httpx.Client(timeout=timeout, follow_redirects=True) as c:
            resp = c.get(url)
            resp.raise_for_status()
            return resp.content
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise ArtifactStoreFailure(f"Could not download {url}: {exc}") from exc
