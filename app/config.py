from pydantic import BaseModel
import os

class Settings(BaseModel):
    api_token: str = os.getenv("API_TOKEN", "change-me")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str | None = os.getenv("OPENAI_BASE_URL")
    stability_api_key: str | None = os.getenv("STABILITY_API_KEY")
    stability_base_url: str = os.getenv("STABILITY_BASE_URL", "https://api.stability.ai")

    midjourney_base_url: str = os.getenv("MIDJOURNEY_BASE_URL", "http://127.0.0.1:8080/mj")
    midjourney_api_secret: str | None = os.getenv("MIDJOURNEY_API_SECRET")
    midjourney_notify_url: str = os.getenv(
        "MIDJOURNEY_NOTIFY_URL", "http://127.0.0.1:8000/image/midjourney/notify"
    )
    midjourney_sync_interval_seconds: int = int(os.getenv("MIDJOURNEY_SYNC_INTERVAL_SECONDS", 10))

    provider_timeout_seconds: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", 120))
    artifact_dir: str = os.getenv("ARTIFACT_DIR", "./artifacts")
    artifact_base_url: str = os.getenv("ARTIFACT_BASE_URL", "http://127.0.0.1:8000/files")
    max_status_longpoll_seconds: int = int(os.getenv("MAX_STATUS_LONGPOLL_SECONDS", 60))

settings = Settings()
