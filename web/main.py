"""
FastAPI web application for the bookkeeping service.
"""
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from bookkeeping.config import VERSION, config, validate_config, ConfigurationError
from bookkeeping.exceptions import BookkeepingError, NotFoundError, ShopifyError
from bookkeeping.observability import setup_logging, get_logger, get_correlation_id
from bookkeeping.shopify import close_order_source
from bookkeeping.store import get_store, close_store
from web.middleware import RequestLoggingMiddleware
from web.routes import api
from web.routes.api._deps import limiter

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)

app = FastAPI(
    title="Bookkeeping",
    description="Monthly profit, shipping and payout reconciliation for a Shopify store",
    version=VERSION,
)

# Add rate limiter to app state
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail,
        },
    )


@app.exception_handler(BookkeepingError)
async def bookkeeping_error_handler(request: Request, exc: BookkeepingError):
    """Domain errors that escaped a route: 404 / 502 / 500 with a JSON body."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ShopifyError):
        status_code = 502
    else:
        status_code = 500
    logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "detail": str(exc),
            "correlation_id": get_correlation_id(),
        },
    )


# Add request logging middleware (adds correlation IDs and timing)
app.add_middleware(RequestLoggingMiddleware)

if config.web.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Include routers
app.include_router(api.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Bookkeeping service starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config(require_shopify=True)
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    store = await get_store()
    payout_config = await store.get_payout_config()
    logger.info(
        f"Ledger store ready at {store.db_path} "
        f"(payout split {payout_config.media_buyer_percent}/{payout_config.ops_percent}/{payout_config.crm_percent})"
    )


@app.on_event("shutdown")
async def shutdown_event():
    await close_order_source()
    await close_store()
    logger.info("Bookkeeping service stopped")
