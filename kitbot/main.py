"""Main FastAPI application."""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from kitbot.config import config
from kitbot.database import init_db
from kitbot.health import router as health_router, SERVICE_VERSION
from kitbot.logging_config import logger
from kitbot.metrics import api_requests_total
from kitbot.routers.agent import router as agent_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("application_starting", version=SERVICE_VERSION)
    init_db()
    logger.info("database_initialized")
    logger.info("openai_configured", configured=config.has_openai_key())
    logger.info("calendar_configured", configured=config.has_calendar_credentials())

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="KitBot API",
    description="WhatsApp assistant for kitnet rentals",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def count_requests(request: Request, call_next):
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    api_requests_total.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
    return response


app.include_router(health_router)
app.include_router(agent_router)


# GET /
# Gets: nothing
# Returns: basic API metadata and a map of key endpoints
# Example:
#   curl http://localhost:8000/
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "KitBot API - WhatsApp assistant for kitnet rentals",
        "version": SERVICE_VERSION,
        "description": "Answers prospective tenants, registers leads, sends the folder and tour video, and books visits",
        "endpoints": {
            "agent_turn": "/agent/turn",
            "health": "/health",
            "readiness": "/health/ready",
            "info": "/health/info",
            "metrics": "/metrics",
        },
    }


# GET /metrics
# Gets: nothing
# Returns: Prometheus text exposition
# Example:
#   curl http://localhost:8000/metrics
@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
