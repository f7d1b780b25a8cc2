import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, APIRouter, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import configure_mappers
from datetime import datetime, timezone

from app.core.config import settings
from app.core.database import async_session_maker, get_db
from app.api.v1 import auth, clients, grootboek, boekingsregels, btw, helpers, mappings, uploads

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

KEY_TABLES = (
    "profiles",
    "clients",
    "grootboek_accounts",
    "btw_codes",
    "boekingsregels",
    "btw_aangiftes",
    "upload_logs",
)


def verify_orm_mappings() -> None:
    """
    Verify all SQLAlchemy ORM mappings are valid at startup.

    This catches relationship configuration errors early before
    any requests are processed.
    """
    # Import all models to ensure they are registered
    from app.models import (  # noqa: F401
        Profile, Client, GrootboekAccount, BtwCode, Boekingsregel,
        BtwAangifte, UploadLog, ColumnMapping,
    )

    # This will raise InvalidRequestError if any relationships are misconfigured
    configure_mappers()
    logger.info("ORM mapper configuration verified successfully")


async def verify_btw_codes() -> None:
    """
    Warn when the btw_codes table lacks codes of the static rules table.

    Booking rules are validated against the static table, the table only
    feeds the code picker; a missing seed is therefore not fatal.
    """
    from app.models.grootboek import BtwCode
    from app.services.btw.codes import BTW_CODES

    async with async_session_maker() as session:
        result = await session.execute(select(BtwCode.code))
        db_codes = set(result.scalars().all())

    missing = set(BTW_CODES) - db_codes
    if missing:
        logger.warning(
            f"btw_codes table is missing codes: {sorted(missing)}. "
            f"Run: alembic upgrade head (or python seed.py)"
        )
    else:
        logger.info(f"btw_codes table verified: {len(db_codes)} codes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Startup:
    - Verify ORM mappings to fail fast if models are misconfigured
    - Check that the BTW code table is seeded
    """
    try:
        verify_orm_mappings()
    except Exception as e:
        logger.critical(f"ORM mapper configuration failed: {e}")
        raise RuntimeError(f"Application cannot start: ORM mapping error - {e}") from e

    try:
        await verify_btw_codes()
    except Exception as e:
        # Non-critical: DB might not be ready yet
        logger.warning(f"Could not verify btw_codes (DB may not be ready): {e}")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware - must be added FIRST to ensure headers on all responses including errors
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to ensure JSON responses with proper CORS headers.

    HTTPException is handled by FastAPI's default handler and will not
    reach this handler, preserving intended status codes.
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
        },
    )

# API v1 router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_v1_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_v1_router.include_router(grootboek.router, tags=["grootboek"])
api_v1_router.include_router(boekingsregels.router, tags=["boekingsregels"])
api_v1_router.include_router(btw.router, tags=["btw-aangifte"])
api_v1_router.include_router(uploads.router, tags=["uploads"])
api_v1_router.include_router(mappings.router, prefix="/mappings", tags=["column-mappings"])
api_v1_router.include_router(helpers.router, tags=["helpers"])

app.include_router(api_v1_router)


@app.get("/health")
async def health_check(db: Annotated[AsyncSession, Depends(get_db)]):
    """
    Health check endpoint.

    Verifies database connectivity and that the key tables exist
    (i.e. the migrations have run).
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": {"status": "unknown", "message": None},
            "migrations": {"status": "unknown", "message": None},
        }
    }

    try:
        await db.execute(text("SELECT 1"))
        health["components"]["database"]["status"] = "healthy"
        health["components"]["database"]["message"] = "Connected"
    except Exception as e:
        health["components"]["database"]["status"] = "unhealthy"
        health["components"]["database"]["message"] = str(e)
        health["status"] = "unhealthy"
        return health

    try:
        tables = await db.run_sync(lambda session: inspect(session.connection()).get_table_names())
        present = [name for name in KEY_TABLES if name in tables]
        if len(present) == len(KEY_TABLES):
            health["components"]["migrations"]["status"] = "healthy"
        else:
            health["components"]["migrations"]["status"] = "warning"
        health["components"]["migrations"]["message"] = f"{len(present)}/{len(KEY_TABLES)} key tables present"
    except Exception as e:
        health["components"]["migrations"]["status"] = "unhealthy"
        health["components"]["migrations"]["message"] = str(e)
        health["status"] = "unhealthy"

    return health


@app.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": VERSION,
        "docs": "/docs",
    }
