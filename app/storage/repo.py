from datetime import datetime, timezone
from typing import Iterable, List, Optional

import orjson
import redis

from .schema import ImageAction, ImageStatus, ImageTask, Provider
from ..config import settings


class DuplicateExternalTask(ValueError):
    def __init__(self, external_id: str):
        super().__init__(f"External task {external_id} is already tracked")
        self.external_id = external_id


class Repo:
    """Redis-backed task store.

    Every task is a hash under ``image:{id}``; secondary indexes cover the
    lookups the engine needs (external task id, status+provider for the sweep,
    owner for listings). Status writes are compare-and-set: once a task is
    terminal, further updates are ignored.
    """

    def __init__(self, client: redis.Redis | None = None):
        self.r = client or redis.from_url(settings.redis_url, decode_responses=True)

    def _key(self, image_id: str) -> str:
        return f"image:{image_id}"

    def _ext_key(self, provider, external_id: str) -> str:
        return f"image:ext:{Provider(provider).value}:{external_id}"

    def _status_key(self, status, provider) -> str:
        return f"image:status:{ImageStatus(status).value}:{Provider(provider).value}"

    def _owner_key(self, owner_id: str) -> str:
        return f"image:owner:{owner_id}"

    def create(self, task: ImageTask) -> ImageTask:
        if task.external_task_id and not self.r.set(
            self._ext_key(task.provider, task.external_task_id), task.id, nx=True
        ):
            raise DuplicateExternalTask(task.external_task_id)
        pipe = self.r.pipeline()
        pipe.hset(self._key(task.id), mapping=self._to_hash(task))
        pipe.sadd(self._status_key(task.status, task.provider), task.id)
        pipe.zadd(self._owner_key(task.owner_id), {task.id: task.created_at.timestamp()})
        pipe.execute()
        return task

    def get(self, image_id: str) -> ImageTask | None:
        data = self.r.hgetall(self._key(image_id))
        if not data:
            return None
        return self._from_hash(data)

    def get_by_external_task_id(self, provider: Provider, external_id: str) -> ImageTask | None:
        image_id = self.r.get(self._ext_key(provider, external_id))
        if not image_id:
            return None
        return self.get(image_id)

    def list_by_status_and_provider(self, status: ImageStatus, provider: Provider) -> List[ImageTask]:
        ids = self.r.smembers(self._status_key(status, provider))
        return self._load_many(sorted(ids))

    def list_by_owner(self, owner_id: str, limit: int = 50) -> List[ImageTask]:
        ids = self.r.zrevrange(self._owner_key(owner_id), 0, limit - 1)
        return self._load_many(ids)

    def set_external_task_id(self, image_id: str, external_id: str, options: dict | None = None):
        key = self._key(image_id)

        def apply(pipe):
            provider, existing = pipe.hmget(key, "provider", "external_task_id")
            if provider is None:
                raise KeyError(image_id)
            if existing:
                raise ValueError(f"Image {image_id} already has external task {existing}")
            ext_key = self._ext_key(provider, external_id)
            pipe.watch(ext_key)
            if pipe.exists(ext_key):
                raise DuplicateExternalTask(external_id)
            mapping = {"external_task_id": external_id}
            if options is not None:
                mapping["options"] = orjson.dumps(options).decode()
            pipe.multi()
            pipe.set(ext_key, image_id)
            pipe.hset(key, mapping=mapping)

        self.r.transaction(apply, key)

    def update(
        self,
        image_id: str,
        *,
        status: ImageStatus | None = None,
        artifact_ref: str | None = None,
        error_message: str | None = None,
        buttons: Optional[Iterable[ImageAction]] = None,
    ) -> bool:
        """Apply a partial update unless the task is already terminal.

        Returns True when the write took effect.
        """
        self._check_outcome(status, artifact_ref, error_message)
        key = self._key(image_id)

        def apply(pipe) -> bool:
            current, provider = pipe.hmget(key, "status", "provider")
            if current is None or ImageStatus(current).terminal:
                return False
            mapping = {}
            if buttons is not None:
                mapping["buttons"] = orjson.dumps([b.model_dump() for b in buttons]).decode()
            if status is not None:
                mapping["status"] = status.value
                if status.terminal:
                    mapping["finished_at"] = datetime.now(timezone.utc).isoformat()
            if artifact_ref is not None:
                mapping["artifact_ref"] = artifact_ref
            if error_message is not None:
                mapping["error_message"] = error_message
            if not mapping:
                return False
            pipe.multi()
            pipe.hset(key, mapping=mapping)
            if status is not None and status.value != current:
                pipe.smove(
                    self._status_key(current, provider), self._status_key(status, provider), image_id
                )
            return True

        return self.r.transaction(apply, key, value_from_callable=True)

    def delete(self, image_id: str) -> bool:
        key = self._key(image_id)

        def apply(pipe) -> bool:
            data = pipe.hgetall(key)
            if not data:
                return False
            task = self._from_hash(data)
            pipe.multi()
            pipe.delete(key)
            pipe.srem(self._status_key(task.status, task.provider), image_id)
            pipe.zrem(self._owner_key(task.owner_id), image_id)
            if task.external_task_id:
                pipe.delete(self._ext_key(task.provider, task.external_task_id))
            return True

        return self.r.transaction(apply, key, value_from_callable=True)

    @staticmethod
    def _check_outcome(status, artifact_ref, error_message):
        if status is ImageStatus.SUCCESS:
            if not artifact_ref or error_message is not None:
                raise ValueError("SUCCESS requires an artifact reference and no error message")
        elif status is ImageStatus.FAIL:
            if not error_message or artifact_ref is not None:
                raise ValueError("FAIL requires an error message and no artifact reference")
        elif artifact_ref is not None or error_message is not None:
            raise ValueError("Artifact reference and error message are only set on a terminal status")

    def _load_many(self, ids) -> List[ImageTask]:
        ids = list(ids)
        if not ids:
            return []
        pipe = self.r.pipeline(transaction=False)
        for image_id in ids:
            pipe.hgetall(self._key(image_id))
        return [self._from_hash(data) for data in pipe.execute() if data]

    @staticmethod
    def _to_hash(task: ImageTask) -> dict:
        return {
            "id": task.id,
            "owner_id": task.owner_id,
            "prompt": task.prompt,
            "provider": task.provider.value,
            "model": task.model,
            "width": task.width,
            "height": task.height,
            "options": orjson.dumps(task.options).decode(),
            "public_status": int(task.public_status),
            "status": task.status.value,
            "external_task_id": task.external_task_id or "",
            "artifact_ref": task.artifact_ref or "",
            "error_message": task.error_message or "",
            "buttons": orjson.dumps([b.model_dump() for b in task.buttons]).decode(),
            "created_at": task.created_at.isoformat(),
            "finished_at": task.finished_at.isoformat() if task.finished_at else "",
        }

    @staticmethod
    def _from_hash(data: dict) -> ImageTask:
        return ImageTask(
            id=data["id"],
            owner_id=data["owner_id"],
            prompt=data["prompt"],
            provider=data["provider"],
            model=data["model"],
            width=int(data["width"]),
            height=int(data["height"]),
            options=orjson.loads(data.get("options") or "{}"),
            public_status=data.get("public_status") == "1",
            status=data.get("status", ImageStatus.IN_PROGRESS.value),
            external_task_id=data.get("external_task_id") or None,
            artifact_ref=data.get("artifact_ref") or None,
            error_message=data.get("error_message") or None,
            buttons=orjson.loads(data.get("buttons") or "[]"),
            created_at=data["created_at"],
            finished_at=data.get("finished_at") or None,
        )
