"""Main FastAPI application."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from leadcaller.calls import CallLifecycleManager
from leadcaller.config import config
from leadcaller.errors import DuplicateKeyError, LeadCallerError
from leadcaller.health import VERSION
from leadcaller.health import router as health_router
from leadcaller.logging_config import logger
from leadcaller.metrics import api_request_duration, api_requests_total
from leadcaller.persistence import Persistence
from leadcaller.routers import appointments, calls, leads
from leadcaller.vapi_client import UnconfiguredTransport, VapiClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    # Startup
    logger.info("application_starting", version=VERSION)
    persistence = Persistence.from_config()
    persistence.start()

    transport = VapiClient.from_config() if config.has_vapi_config() else UnconfiguredTransport()
    logger.info("vapi_configured", configured=config.has_vapi_config())

    app.state.persistence = persistence
    app.state.transport = transport
    app.state.lifecycle = CallLifecycleManager(persistence, transport)
    logger.info("application_started", persistence_mode=persistence.mode)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    if isinstance(transport, VapiClient):
        transport.close()
    persistence.close()


app = FastAPI(
    title="Lead Caller API",
    description="Outbound AI sales calls for real estate leads",
    version=VERSION,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    api_requests_total.labels(request.method, endpoint, response.status_code).inc()
    api_request_duration.observe(time.perf_counter() - start)
    return response


@app.exception_handler(LeadCallerError)
async def lead_caller_error_handler(request: Request, exc: LeadCallerError):
    body = {"success": False, "message": exc.message}
    if isinstance(exc, DuplicateKeyError) and exc.existing_id:
        body["existing_id"] = exc.existing_id
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(body, status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, error=str(exc))
    return JSONResponse({"success": False, "message": "Internal server error"}, status_code=500)


# Include health & monitoring router
app.include_router(health_router)
app.include_router(leads.router)
app.include_router(calls.router)
app.include_router(appointments.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Lead Caller API - outbound AI calling for real estate leads",
        "version": VERSION,
        "endpoints": {
            "leads": "/api/leads",
            "lead_import": "/api/leads/import",
            "start_call": "/api/calls/start",
            "calls": "/api/calls",
            "webhook": "/api/calls/webhook",
            "appointments": "/api/appointments",
            "health": "/health",
            "metrics": "/metrics",
        },
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("leadcaller.main:app", host="0.0.0.0", port=8000, reload=config.DEBUG)
