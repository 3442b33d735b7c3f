"""
FastAPI application entry point with health check route.

Run locally with:
    uvicorn kmerbeauty.api.app:app --reload --app-dir backend
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from kmerbeauty import __version__
from kmerbeauty.api.routes import admin, beta_tests, bookings, chat, geocoding, preferences, services
from kmerbeauty.api.middleware.error_handler import (
    AppException,
    app_exception_handler,
    cancelled_exception_handler,
    data_access_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from kmerbeauty.lib.cancellation import OperationCancelled
from kmerbeauty.lib.errors import DataAccessError
from kmerbeauty.lib.logging import get_logger, set_correlation_id
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.lib.settings import settings
from kmerbeauty.services.geocoding_service import close_geocoding_client

logger = get_logger(__name__)


# Correlation ID middleware
class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation_id to all requests for distributed tracing.
    Accepts X-Correlation-ID from incoming requests or generates a new one.
    """
    
    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        
        # Request state for handlers, context var for log records
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        
        logger.info(
            "Incoming request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            }
        )
        
        response = await call_next(request)
        
        response.headers["X-Correlation-ID"] = correlation_id
        
        logger.info(
            "Response sent",
            extra={"status_code": response.status_code},
        )
        
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    logger.info(f"{settings.app_name} starting up...")
    yield
    logger.info(f"{settings.app_name} shutting down...")
    close_geocoding_client()


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="Aggregation API for the client, admin and mobile apps: provider search, bookings, beta tests, dashboard",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Correlation ID middleware
app.add_middleware(CorrelationIdMiddleware)


# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(DataAccessError, data_access_exception_handler)
app.add_exception_handler(OperationCancelled, cancelled_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# Include routers
app.include_router(services.router)
app.include_router(bookings.router)
app.include_router(beta_tests.router)
app.include_router(preferences.router)
app.include_router(chat.router)
app.include_router(geocoding.router)
app.include_router(admin.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.
    
    Metrics exposed:
    - provider_searches_total: Provider searches by outcome
    - booking_enrichment_misses_total: Unresolved images and therapist names
    - beta_test_transitions_total: Tester verdicts and resets
    - dashboard_widget_failures_total: Widgets left at their default
    - backend_errors_total: Failed database calls by operation and kind
    - geocoding_requests_total: Nominatim lookups by outcome
    """
    return PlainTextResponse(
        content=get_metrics_collector().export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
