"""
Health check utilities for monitoring service dependencies.
"""

import asyncio
import logging
import time
from typing import Dict, Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..redis_client import get_redis
from .clock import utcnow

logger = logging.getLogger(__name__)


class HealthCheckResult:
    """Result of a health check."""
    
    def __init__(self, service: str, healthy: bool, response_time: float, details: Dict[str, Any] = None):
        self.service = service
        self.healthy = healthy
        self.response_time = response_time
        self.details = details or {}
        self.timestamp = utcnow().isoformat()
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "healthy": self.healthy,
            "response_time": self.response_time,
            "details": self.details,
            "timestamp": self.timestamp
        }


async def check_database_health(session_factory: async_sessionmaker[AsyncSession]) -> HealthCheckResult:
    """Check database connectivity."""
    start_time = time.perf_counter()
    
    try:
        async with session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            value = result.scalar()
        
        return HealthCheckResult(
            service="database",
            healthy=value == 1,
            response_time=time.perf_counter() - start_time,
            details={"query": "SELECT 1", "result": "success" if value == 1 else "unexpected result"}
        )
    
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return HealthCheckResult(
            service="database",
            healthy=False,
            response_time=time.perf_counter() - start_time,
            details={"error": str(e), "error_type": type(e).__name__}
        )


async def check_redis_health() -> HealthCheckResult:
    """Check Redis connectivity used for cross-process schedule locks."""
    start_time = time.perf_counter()
    settings = get_settings()
    
    if not settings.enable_distributed_locks:
        return HealthCheckResult(
            service="redis",
            healthy=True,
            response_time=0.0,
            details={"status": "disabled"}
        )
    
    healthy = await get_redis().ping()
    return HealthCheckResult(
        service="redis",
        healthy=healthy,
        response_time=time.perf_counter() - start_time,
        details={"operations": ["ping"], "result": "success" if healthy else "unreachable"}
    )


async def get_health_status(
    session_factory: async_sessionmaker[AsyncSession],
    sweeper_running: Optional[bool] = None
) -> Dict[str, Any]:
    """Get health status of all dependencies."""
    start_time = time.perf_counter()
    
    health_checks = await asyncio.gather(
        check_database_health(session_factory),
        check_redis_health(),
    )
    
    results = [check.to_dict() for check in health_checks]
    overall_healthy = all(check.healthy for check in health_checks)
    
    status = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "total_check_time": time.perf_counter() - start_time,
        "services": results,
        "summary": {
            "total_services": len(results),
            "healthy_services": sum(1 for r in results if r["healthy"]),
            "unhealthy_services": sum(1 for r in results if not r["healthy"])
        }
    }
    if sweeper_running is not None:
        status["expiry_sweeper"] = {"running": sweeper_running}
    return status
