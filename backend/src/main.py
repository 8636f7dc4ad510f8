# pyright: reportMissingTypeStubs=false
"""
Clinic Treatment Pricing Backend API

A FastAPI application that prices treatment orders for a clinic and resolves
the practitioner commission owed on each order.

Features:
- Line item pricing with per-procedure discounts
- Commission rule matching and commission calculation
- Voucher validation through an external service
- Commission rule management backed by SQLAlchemy
"""

import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import commission_rules, treatment_pricing
from core.constants import CORS_ORIGINS
from core.database import create_tables
from services.pricing_errors import VoucherServiceError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Treatment Pricing API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Treatment Pricing API")

    create_tables()
    logger.info("✅ Commission rule store ready")

    yield

    logger.info("🛑 Shutting down Clinic Treatment Pricing API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Treatment Pricing",
    description="Treatment order pricing and practitioner commission resolution",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    treatment_pricing.router,
    prefix="/api/pricing",
    tags=["pricing"],
    responses={
        400: {"description": "Bad request"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
        502: {"description": "Voucher service error"},
    },
)
app.include_router(
    commission_rules.router,
    prefix="/api/commission-rules",
    tags=["commission-rules"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic Treatment Pricing API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(VoucherServiceError)
async def voucher_service_error_handler(request: Request, exc: VoucherServiceError):
    """Handle voucher service failures that escaped a route."""
    logger.warning(f"Voucher service error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "type": "external_service_error"},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def http_status_error_handler(request: Request, exc: httpx.HTTPStatusError):
    """Handle HTTP status errors from external services."""
    logger.exception(f"External service error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "External service error", "type": "external_service_error"},
    )
