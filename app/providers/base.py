from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class DrawRequest:
    prompt: str
    model: str
    width: int
    height: int
    options: Dict[str, Any] = field(default_factory=dict)


class SyncImageProvider(ABC):
    """A provider whose call blocks until the image is returned."""

    @abstractmethod
    def normalize(self, request: DrawRequest) -> Dict[str, Any]:
        """Select the option fields this provider accepts.

        Raises ProviderRejected for combinations the provider cannot serve.
        Called at dispatch time, before any task exists or any network call.
        """

    @abstractmethod
    def generate(self, request: DrawRequest) -> str:
        """Return the generated image as a base64 payload."""
