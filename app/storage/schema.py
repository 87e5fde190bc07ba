from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import UnsupportedProvider


class ImageStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"

    @property
    def terminal(self) -> bool:
        return self is not ImageStatus.IN_PROGRESS


class Provider(str, Enum):
    OPENAI = "openai"
    STABLE_DIFFUSION = "stable_diffusion"
    MIDJOURNEY = "midjourney"

    @property
    def is_async(self) -> bool:
        return self is Provider.MIDJOURNEY

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedProvider(value) from None


class ImageAction(BaseModel):
    """A follow-up operation the provider offers on a job (a Midjourney button)."""

    model_config = ConfigDict(populate_by_name=True)

    custom_id: str = Field(alias="customId")
    label: Optional[str] = None
    emoji: Optional[str] = None
    type: Optional[int] = None
    style: Optional[int] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImageTask(BaseModel):
    id: str
    owner_id: str
    prompt: str
    provider: Provider
    model: str
    width: int
    height: int
    options: Dict[str, Any] = Field(default_factory=dict)
    public_status: bool = False

    status: ImageStatus = ImageStatus.IN_PROGRESS
    external_task_id: Optional[str] = None
    artifact_ref: Optional[str] = None
    error_message: Optional[str] = None
    buttons: List[ImageAction] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
