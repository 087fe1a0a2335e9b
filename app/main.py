"""
Main FastAPI application for the Comply-Desk kit generator.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from app.config import settings
from app.routers import health, kits, products
from app.services.catalog import CatalogError, ProductCatalog

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup helpers
# ---------------------------------------------------------------------------

def _check_credentials() -> bool:
    """Warn when the OpenAI key is missing.  Never raises."""
    if settings.OPENAI_API_KEY:
        logger.info("✓ OPENAI_API_KEY configured (model: %s)", settings.OPENAI_MODEL)
        return True
    logger.warning(
        "⚠ OPENAI_API_KEY not set — every kit generation request will fail "
        "until it is configured"
    )
    return False


def _check_catalog() -> int:
    """Load the catalog once to report its size.  Returns 0 on failure."""
    try:
        catalog = ProductCatalog.from_file()
    except CatalogError as exc:
        logger.warning("⚠ %s — /products.json will return errors", exc)
        return 0
    logger.info("✓ Catalog loaded: %d products from %s", len(catalog), settings.PRODUCTS_FILE)
    return len(catalog)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Comply-Desk kit generator …")
    logger.info("=" * 60)

    _check_credentials()
    _check_catalog()

    logger.info("=" * 60)
    logger.info("  Kit generator ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down kit generator …")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Comply-Desk API",
    description=(
        "**Comply-Desk**: compliance kit generator for small U.S. businesses.\n\n"
        "Key endpoints:\n"
        "- `POST /generateKit` — outline + Word document for a kit\n"
        "- `GET  /products.json` — kit catalog\n"
        "- `GET  /api/products/{slug}/preview` — free kit preview\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    if request.url.path not in ("/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Plain-text 500 for anything a route did not handle itself."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return PlainTextResponse(
        f"Error: {exc}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,    prefix="/api/health", tags=["Health"])
app.include_router(kits.router,      tags=["Kits"])
app.include_router(products.router,  tags=["Products"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root — returns basic service info."""
    return {
        "name": "Comply-Desk API",
        "version": "1.0.0",
        "description": "Compliance kit generator",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "generate": kits.GENERATE_PATH,
            "products": "/products.json",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
