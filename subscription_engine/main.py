from fastapi import FastAPI

from subscription_engine.core.config import settings
from subscription_engine.routers import lifecycle

OPENAPI_TAGS = [
    {"name": "Lifecycle", "description": "Run lifecycle passes and inspect engine state."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Subscription lifecycle engine: trial conversion, renewals, "
        "grace periods, payment retries and reminders."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.include_router(lifecycle.router, prefix="/v1", tags=["Lifecycle"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
