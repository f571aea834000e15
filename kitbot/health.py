"""
Health check and monitoring endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from kitbot import calendar_service as calendar_module
from kitbot.config import config
from kitbot.database import get_db
from kitbot.logging_config import logger
from kitbot.tools import TOOL_NAMES

router = APIRouter(tags=["Health & Monitoring"])

SERVICE_NAME = "kitbot"
SERVICE_VERSION = "1.0.0"


# GET /health
# Gets: nothing
# Returns: {status, service, version}
# Example:
#   curl http://localhost:8000/health
@router.get("/health")
async def health_check():
    """
    Basic health check - returns 200 if service is running.
    Use this for basic liveness checks.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }


# GET /health/ready
# Gets: nothing
# Returns: dependency readiness checks; HTTP 503 when the database is unreachable
# Example:
#   curl http://localhost:8000/health/ready
@router.get("/health/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check.

    Checks:
    - Database connectivity (required)
    - OpenAI configuration (optional: without it every turn gets the fallback reply)
    - Google Calendar connection (optional: visits are still saved locally)
    """
    checks = {
        "database": False,
        "openai": False,
        "calendar": None,
        "ready": False
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.warning("readiness_check_database", status="error", error=str(e))

    checks["openai"] = True if config.has_openai_key() else "not_configured"

    if config.has_calendar_credentials():
        checks["calendar"] = calendar_module.calendar_service.test_connection()
    else:
        checks["calendar"] = "not_configured"

    checks["ready"] = checks["database"] is True

    status_code = 200 if checks["ready"] else 503
    return JSONResponse(content=checks, status_code=status_code)


# GET /health/info
# Gets: nothing
# Returns: service configuration summary
# Example:
#   curl http://localhost:8000/health/info
@router.get("/health/info")
async def system_info():
    """
    System information and configuration status.
    """
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "configuration": {
            "openai_configured": config.has_openai_key(),
            "openai_model": config.OPENAI_MODEL if config.has_openai_key() else None,
            "calendar_configured": config.has_calendar_credentials(),
            "history_window": config.HISTORY_WINDOW,
            "debug_mode": config.DEBUG
        },
        "features": {
            "llm_conversations": config.has_openai_key(),
            "calendar_sync": config.has_calendar_credentials(),
            "lead_followups": config.has_whatsapp_gateway(),
            "tools": sorted(TOOL_NAMES),
        }
    }
