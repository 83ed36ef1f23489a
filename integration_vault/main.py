import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_integrations,  # noqa: F401
)
from .database import Base, engine
from .domain.integrations.router import router as integrations_router
from .domain.messaging.router import router as conversations_router
from .domain.payments.router import router as payments_router
from .encryption import get_field_cipher
from .errors import VaultError
from .routes.webhooks import router as webhooks_router
from .shared.http_errors import to_http_exception

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    # Raises ConfigurationError when ENCRYPTION_KEY is missing or malformed
    get_field_cipher()

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    await engine.dispose()
    logger.info("Application shutting down...")


app = FastAPI(title="Integration Vault API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(VaultError)
async def vault_exception_handler(request: Request, exc: VaultError):
    """Errors that escaped a router's own handling"""
    logger.error(f"{request.method} {request.url.path} - {type(exc).__name__}: {exc}")
    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(integrations_router)
app.include_router(conversations_router)
app.include_router(payments_router)
app.include_router(webhooks_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
