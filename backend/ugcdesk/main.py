from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .errors import UGCError
from .routes_analytics import router as analytics_router
from .routes_assets import router as assets_router
from .routes_content import router as content_router
from .routes_files import router as files_router
from .routes_inbox import router as inbox_router
from .routes_rights import router as rights_router
from .settings import get_settings

logger = logging.getLogger("ugcdesk")

app = FastAPI(title="UGC Desk")
settings = get_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UGCError)
async def domain_error_handler(request: Request, exc: UGCError):
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(content_router)
app.include_router(inbox_router)
app.include_router(rights_router)
app.include_router(assets_router)
app.include_router(analytics_router)
app.include_router(files_router)


@app.on_event("startup")
async def startup_event():
    """Start scheduled discovery on app startup."""
    from .services.scheduler import scheduler_service
    scheduler_service.configure(settings.async_database_url)
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    from .services.scheduler import scheduler_service
    scheduler_service.stop()
