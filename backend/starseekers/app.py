"""FastAPI application setup for Starseekers."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from starseekers.api.dependencies import get_app_settings
from starseekers.api.routes_admin import router as admin_router
from starseekers.api.routes_auth import router as auth_router
from starseekers.api.routes_search import router as search_router
from starseekers.api.routes_sync import router as sync_router
from starseekers.core.errors import StarseekersError
from starseekers.core.logging import configure_logging, get_logger
from starseekers.models.dto import ErrorResponse

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Starseekers",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(sync_router, prefix="", tags=["sync"])
app.include_router(search_router, prefix="", tags=["search"])
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.exception_handler(StarseekersError)
async def handle_starseekers_error(request: Request, exc: StarseekersError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())


@app.on_event("startup")
async def startup() -> None:
    """Load settings; service clients are built on first use."""
    get_app_settings()
