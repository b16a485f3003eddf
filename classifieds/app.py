"""FastAPI application for the classifieds backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .fields.rules import PayloadValidationError
from .fields.values import InvalidFieldValueError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); other databases use Alembic migrations
    if settings.is_sqlite:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)


@app.exception_handler(PayloadValidationError)
async def payload_validation_handler(request: Request, exc: PayloadValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation failed", "errors": exc.errors},
    )


@app.exception_handler(InvalidFieldValueError)
async def invalid_field_value_handler(request: Request, exc: InvalidFieldValueError):
    logger.warning("Field value rejected at storage: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation failed", "errors": {"fields": [str(exc)]}},
    )


# Import and register routers
from .routers import ads, categories, health  # noqa: E402

app.include_router(health.router)
app.include_router(categories.router)
app.include_router(ads.router)
