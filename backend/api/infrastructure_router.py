"""
Infrastructure Monitoring Router
Detailed health, cache statistics and error statistics
"""

from fastapi import APIRouter, Request
from datetime import datetime

from infrastructure.errors import TokenApiError

router = APIRouter(prefix="/api/infrastructure", tags=["Infrastructure"])


# ============================================
# HEALTH CHECKS
# ============================================

@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """
    Detailed health check - verifies the network registry can be loaded.
    A dynamic registry serving a stale copy still reports healthy.
    """
    service = request.app.state.token_service
    try:
        networks = await service.supported_networks()
    except TokenApiError as e:
        return {
            "status": "degraded",
            "error": e.message,
            "timestamp": datetime.now().isoformat()
        }

    return {
        "status": "healthy",
        "networks": len(networks),
        "cache_entries": len(service.cache),
        "uptime_seconds": _get_uptime(),
        "timestamp": datetime.now().isoformat()
    }


# ============================================
# STATISTICS
# ============================================

@router.get("/cache/stats")
async def get_cache_stats(request: Request):
    """Cache size, keys and hit/miss counters"""
    return {
        **request.app.state.token_service.cache.stats(),
        "timestamp": datetime.now().isoformat()
    }


@router.get("/errors/stats")
async def get_error_stats(request: Request):
    """Get error statistics"""
    return request.app.state.error_tracker.get_stats()


# ============================================
# CONFIGURATION
# ============================================

@router.get("/config")
async def get_configuration(request: Request):
    """Current configuration (secrets hidden)"""
    return {
        **request.app.state.config.to_dict(),
        "timestamp": datetime.now().isoformat()
    }


# ============================================
# HELPERS
# ============================================

_start_time = datetime.now()


def _get_uptime() -> float:
    """Get application uptime in seconds"""
    return (datetime.now() - _start_time).total_seconds()
