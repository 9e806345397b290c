# intentmarket/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from intentmarket.core.config import get_settings
from intentmarket.core.errors import MarketplaceError
from intentmarket.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from intentmarket.models import user as _user_models  # noqa: F401
from intentmarket.models import intent as _intent_models  # noqa: F401
from intentmarket.models import offer as _offer_models  # noqa: F401
from intentmarket.models import purchase as _purchase_models  # noqa: F401


# Routers
from intentmarket.routers.auth import router as auth_router
from intentmarket.routers.users import router as users_router
from intentmarket.routers.intents import router as intents_router
from intentmarket.routers.offers import router as offers_router
from intentmarket.routers.purchases import router as purchases_router
from intentmarket.routers.market import router as market_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables (database backend only).

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    if settings.STORAGE_BACKEND == "memory":
        logger.info("Startup: using in-memory storage, nothing to migrate.")
        yield
        return

    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Translate domain errors into their HTTP status with a {"detail": ...} body."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Versioned API prefix, e.g. /api/v1
app.include_router(auth_router, prefix=settings.API_V1_STR)
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(intents_router, prefix=settings.API_V1_STR)
app.include_router(offers_router, prefix=settings.API_V1_STR)
app.include_router(purchases_router, prefix=settings.API_V1_STR)
app.include_router(market_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "intent-marketplace"}
