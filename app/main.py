import logging

from fastapi import FastAPI
from .config import settings
from .routers import images

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Image Draw API", version="1.0.0")
app.include_router(images.router)
