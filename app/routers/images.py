import asyncio
import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from ..auth import current_user, require_token
from ..config import settings
from ..errors import ImageServiceError
from ..models import ActionRequest, DrawImageRequest, ImageResponse, TaskResponse
from ..providers.midjourney import MidjourneyNotify
from ..services.images import ImageService
from ..storage.schema import ImageStatus
from .. import wiring
from worker.celery_app import execute_draw

router = APIRouter(prefix="/image")
service = ImageService(
    wiring.get_repo(),
    wiring.get_providers(),
    dispatch=lambda image_id: execute_draw.delay(image_id),
    notify_url=settings.midjourney_notify_url,
)
actions = wiring.build_action_dispatcher()
reconciler = wiring.build_reconciler()


def _http_error(exc: ImageServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))

@router.post("/draw", response_model=TaskResponse, dependencies=[Depends(require_token)])
async def draw(payload: DrawImageRequest, user: str = Depends(current_user)):
    try:
        image_id = await asyncio.to_thread(
            service.draw, user, payload.provider, payload.prompt, payload.model,
            payload.width, payload.height, payload.options, payload.public_status,
        )
    except ImageServiceError as exc:
        raise _http_error(exc)
    return TaskResponse(id=image_id)

@router.get("/get", response_model=ImageResponse, dependencies=[Depends(require_token)])
async def get_image(image_id: str = Query(..., alias="id"), longpoll: bool = False):
    try:
        image = service.get(image_id)
        deadline = time.time() + settings.max_status_longpoll_seconds
        while longpoll and image.status is ImageStatus.IN_PROGRESS and time.time() < deadline:
            await asyncio.sleep(1.0)
            image = service.get(image_id)
    except ImageServiceError as exc:
        raise _http_error(exc)
    return ImageResponse.from_task(image)

@router.get("/my-list", response_model=List[ImageResponse], dependencies=[Depends(require_token)])
async def my_list(limit: int = Query(50, ge=1, le=200), user: str = Depends(current_user)):
    return [ImageResponse.from_task(image) for image in service.list_my(user, limit)]

@router.delete("/delete-my", dependencies=[Depends(require_token)])
async def delete_my(image_id: str = Query(..., alias="id"), user: str = Depends(current_user)):
    try:
        service.delete_my(image_id, user)
    except ImageServiceError as exc:
        raise _http_error(exc)
    return {"ok": True}

@router.post("/midjourney/action", response_model=TaskResponse, dependencies=[Depends(require_token)])
async def midjourney_action(payload: ActionRequest, user: str = Depends(current_user)):
    try:
        image_id = await asyncio.to_thread(actions.invoke, payload.id, payload.custom_id, user)
    except ImageServiceError as exc:
        raise _http_error(exc)
    return TaskResponse(id=image_id)

@router.post("/midjourney/notify")
async def midjourney_notify(notify: MidjourneyNotify):
    await asyncio.to_thread(reconciler.notify, notify)
    return {"ok": True}
