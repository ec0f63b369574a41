# app/main.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.database import create_db_and_tables, dispose_engine

# Import models so SQLModel metadata is populated before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import product as _product_models  # noqa: F401

# Routers
from app.routers.auth import router as auth_router
from app.routers.products import router as products_router
from app.routers.admin_products import router as admin_products_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Optionally insert sample categories/products/admin.

    Shutdown:
      - Dispose the connection pool.
    """
    logger.info("🔄 Startup: Initializing database...")
    try:
        create_db_and_tables()
        if settings.SEED_SAMPLE_DATA:
            from app.seed import run_seed

            run_seed()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB initialization FAILED: {e}")
        raise
    yield
    dispose_engine()
    logger.info("Shutdown: connection pool released.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("📥 %s %s %s", request.method, request.url.path, request.url.query or "")
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed query/body values are client errors (400), not 422."""
    errors = exc.errors()
    detail = "Invalid request"
    if errors:
        loc = ".".join(str(part) for part in errors[0].get("loc", ()))
        detail = f"Invalid value for {loc}: {errors[0].get('msg')}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last resort: anything not mapped by a service becomes a generic 500."""
    logger.exception("💥 Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if settings.DEBUG:
        content["message"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


# API prefix, e.g. /api
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(products_router, prefix=settings.API_PREFIX)
app.include_router(admin_products_router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "storefront-backend"}


@app.get(f"{settings.API_PREFIX}/test")
def api_test():
    """Liveness probe used by the admin UI."""
    return {
        "message": "Server is working!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
