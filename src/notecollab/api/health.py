"""Health check API endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.realtime import RealtimeHub, get_realtime_hub
from ..core.schemas.common import HealthCheckResponse
from ..core.services import HealthService
from ..database import get_db_session

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/", response_model=HealthCheckResponse)
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """Overall status: unhealthy without the database, degraded without Redis."""
    return await HealthService(session).get_health_status()


@router.get("/database", response_model=Dict[str, Any])
async def database_health(session: AsyncSession = Depends(get_db_session)):
    return await HealthService(session).check_database_health()


@router.get("/redis", response_model=Dict[str, Any])
async def redis_health(session: AsyncSession = Depends(get_db_session)):
    return await HealthService(session).check_redis_health()


@router.get("/realtime", response_model=Dict[str, Any])
async def realtime_health(hub: RealtimeHub = Depends(get_realtime_hub)):
    """Whether cross-process relay is running, and how many feeds are open."""
    return hub.stats()
