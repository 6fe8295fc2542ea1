"""
Health check and monitoring endpoints.
"""

from fastapi import APIRouter, Depends

from leadcaller.config import config
from leadcaller.dependencies import get_persistence
from leadcaller.logging_config import logger
from leadcaller.persistence import Persistence

SERVICE_NAME = "leadcaller"
VERSION = "1.0.0"

router = APIRouter(tags=["Health & Monitoring"])


# GET /health
# Gets: nothing
# Returns: {status, service, version}
# Example:
#   curl http://localhost:8000/health
@router.get("/health")
async def health_check():
    """
    Basic health check - returns 200 if service is running.
    Use this for liveness checks.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
    }


# GET /health/ready
# Gets: nothing
# Returns: {database, persistence_mode, vapi, ready}; always 200, the volatile store keeps the API usable
# Example:
#   curl http://localhost:8000/health/ready
@router.get("/health/ready")
def readiness_check(persistence: Persistence = Depends(get_persistence)):
    """
    Readiness check.

    When the process fell back to the volatile store after losing its
    database, this check is also what brings it back: a successful ping
    switches persistence to durable again.
    """
    checks = {
        "database": "not_configured",
        "persistence_mode": persistence.mode,
        "vapi": config.has_vapi_config() or "not_configured",
        "ready": True,
    }

    if persistence.durable is not None:
        checks["database"] = persistence.try_reconnect()
        checks["persistence_mode"] = persistence.mode
        logger.debug("readiness_check_database", reachable=checks["database"])

    return checks


# GET /health/info
# Gets: nothing
# Returns: service configuration summary
# Example:
#   curl http://localhost:8000/health/info
@router.get("/health/info")
async def system_info(persistence: Persistence = Depends(get_persistence)):
    """
    System information and configuration status.
    """
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "configuration": {
            "database_configured": config.has_database(),
            "persistence_mode": persistence.mode,
            "vapi_configured": config.has_vapi_config(),
            "debug_mode": config.DEBUG,
        },
        "features": {
            "durable_storage": persistence.mode == "durable",
            "outbound_calls": config.has_vapi_config(),
            "webhook_reconciliation": True,
            "transcript_analysis": True,
        },
    }
