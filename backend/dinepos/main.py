"""FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from dinepos.api.routes import api_router
from dinepos.core.config import settings
from dinepos.core.exceptions import PosError
from dinepos.core.rate_limit import limiter
from dinepos.db.base import Base
from dinepos.db.session import SessionLocal, engine
from dinepos.services.change_feed import change_feed
from dinepos.services.table_service import TableService

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    import json as _json
    import sys

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return _json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        # Skip logging for health checks and docs
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        response = await call_next(request)
        process_time = time.time() - start_time

        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"{request.method} {request.url.path} - Status: {response.status_code} - "
            f"Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting DinePOS order engine")

    # Create tables if they don't exist (for SQLite dev)
    if settings.database_url.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    db = SessionLocal()
    try:
        TableService(db).ensure_super_admin()
    except (PosError, SQLAlchemyError) as e:
        logger.error(f"Could not check for the default super admin: {e}")
    finally:
        db.close()

    change_feed.attach(SessionLocal)
    yield
    change_feed.detach()
    logger.info("Shutting down DinePOS order engine")


app = FastAPI(
    title="DinePOS",
    description="Restaurant order lifecycle engine: KOTs, settlement, loyalty and shift cash",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Liveness check with a database round trip."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = "unhealthy"
    finally:
        db.close()
    return {"status": "healthy" if database == "healthy" else "degraded", "database": database, "version": "1.0.0"}
