"""
Health check routes.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from wastebin.database import ConnectionManager
from wastebin.dependencies import get_connections
from wastebin.models import DatabaseHealth, ErrorResponse, HealthCheck

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/healthz", response_model=HealthCheck)
def health_check() -> HealthCheck:
    """
    Liveness endpoint.
    Returns 200 with ok=true while the process is serving requests.
    """
    return HealthCheck(ok=True)


@router.get("/health/db", response_model=DatabaseHealth, responses={503: {"model": ErrorResponse}})
def database_health_check(
    connections: ConnectionManager = Depends(get_connections),
) -> DatabaseHealth:
    """
    Database health endpoint.
    Pings the database and queries the pastes table; failures answer 503.
    """
    connections.health_check()
    return DatabaseHealth(status="healthy", timestamp=datetime.now(timezone.utc))
