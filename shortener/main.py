from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
import logging

from .api import urls
from .api.urls import get_registry
from .config import settings
from .database import AsyncSessionLocal, init_models
from .exceptions import ExpiredError, NotFoundError, ShortenerError
from .expiration import utc_now
from .logging_config import setup_logging
from .observability import (
    PrometheusMiddleware,
    REDIRECT_404_TOTAL,
    REDIRECT_EXPIRED_TOTAL,
    REDIRECT_TOTAL,
    metrics_endpoint,
)
from .redis import redis_client
from .schemas import ErrorResponse, HealthResponse, StatsResponse
from .services.cleanup import CleanupSweeper
from .services.registry import LinkRegistry

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    await init_models()
    logger.info(f"Database initialised: {settings.DATABASE_URL}")
    await redis_client.connect()
    sweeper = CleanupSweeper(AsyncSessionLocal, settings.CLEANUP_INTERVAL_MINUTES, redis_client)
    sweeper.start()
    app.state.sweeper = sweeper
    yield
    # Shutdown logic
    await sweeper.stop()
    await redis_client.close()

app = FastAPI(
    title="URL Shortener",
    description="Short links with expiration, click counting and token-gated deletion",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ShortenerError)
async def shortener_error_handler(request: Request, exc: ShortenerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=400, content={"error": "validation_error", "detail": detail})

app.add_route("/metrics", metrics_endpoint)

app.include_router(urls.router)

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health():
    return HealthResponse(status="ok", timestamp=utc_now())

@app.get("/stats", response_model=StatsResponse, tags=["System"])
async def stats(registry: LinkRegistry = Depends(get_registry)):
    result = await registry.stats()
    return StatsResponse(
        total_urls=result.total,
        active_urls=result.active,
        expired_urls=result.expired,
        total_clicks=result.total_clicks,
        timestamp=utc_now(),
    )

@app.get(
    "/{short_code}",
    status_code=302,
    response_class=RedirectResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["URLs"],
)
async def redirect_to_url(
    short_code: str,
    registry: LinkRegistry = Depends(get_registry),
):
    try:
        link = await registry.resolve(short_code)
    except NotFoundError:
        REDIRECT_404_TOTAL.inc()
        raise
    except ExpiredError:
        REDIRECT_EXPIRED_TOTAL.inc()
        raise

    REDIRECT_TOTAL.inc()
    return RedirectResponse(url=link.original_url, status_code=302)
