import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fashionist.api.v1.media import router as media_router
from fashionist.core.config import get_settings
from fashionist.core.errors import MalformedRequest, PersistenceFailure
from fashionist.services.media.orchestrator import build_orchestrator

settings = get_settings()

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal server error"

app = FastAPI(
    title="Fashionist Media API",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)


@app.on_event("startup")
async def _startup_media():
    for problem in settings.validate_required_config():
        logger.warning("Config: %s", problem)
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(settings)


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

app.include_router(media_router, prefix="/api/v1", tags=["media"])


@app.exception_handler(MalformedRequest)
async def _malformed_request_handler(request: Request, exc: MalformedRequest):
    return JSONResponse(status_code=422, content={"detail": exc.detail, "errors": exc.errors})


@app.exception_handler(PersistenceFailure)
async def _persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("Persistence failure (provider=%s): %s", exc.provider_id or "-", exc.detail)
    if settings.expose_error_details:
        return JSONResponse(status_code=502, content={"detail": exc.detail})
    return JSONResponse(status_code=502, content={"detail": "Generated image could not be stored"})


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for 5xx unless explicitly enabled.
    if exc.status_code >= 500 and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"detail": GENERIC_ERROR})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR})


@app.get("/health")
def health():
    return {"status": "ok"}
