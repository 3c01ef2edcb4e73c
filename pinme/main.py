import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pinme.api.v1.api import api_router
from pinme.core.config import settings
from pinme.core.database import AsyncSessionLocal
from pinme.core.fcm_manager import fcm_manager
from pinme.services.runtime import ReminderRuntime

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = ReminderRuntime(AsyncSessionLocal, fcm_manager)
    app.state.runtime = runtime
    await runtime.start()
    logger.info(f"✅ {settings.PROJECT_NAME} ready")
    try:
        yield
    finally:
        await runtime.shutdown()


app = FastAPI(title=settings.PROJECT_NAME, openapi_url=f"{settings.API_V1_STR}/openapi.json", lifespan=lifespan)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health():
    return {"status": "ok"}
