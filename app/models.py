from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from .storage.schema import ImageAction, ImageTask

class DrawImageRequest(BaseModel):
    provider: str
    prompt: str = Field(min_length=1, max_length=2000)
    model: str = ""
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    options: Dict[str, Any] = Field(default_factory=dict)
    public_status: bool = False

class ActionRequest(BaseModel):
    id: str
    custom_id: str

class TaskResponse(BaseModel):
    id: str

class ImageResponse(BaseModel):
    id: str
    prompt: str
    provider: str
    model: str
    width: int
    height: int
    status: str  # IN_PROGRESS | SUCCESS | FAIL
    pic_url: Optional[str] = None
    error_message: Optional[str] = None
    buttons: List[ImageAction] = []
    public_status: bool = False
    created_at: datetime
    finished_at: Optional[datetime] = None

    @classmethod
    def from_task(cls, task: ImageTask) -> "ImageResponse":
        return cls(
            id=task.id,
            prompt=task.prompt,
            provider=task.provider.value,
            model=task.model,
            width=task.width,
            height=task.height,
            status=task.status.value,
            pic_url=task.artifact_ref,
            error_message=task.error_message,
            buttons=task.buttons,
            public_status=task.public_status,
            created_at=task.created_at,
            finished_at=task.finished_at,
        )
