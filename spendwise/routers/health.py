"""
Health Check Router
Liveness of the API and of its backing services
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from spendwise.core.config import settings
from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.routers.deps import get_cache, get_store
from spendwise.utils.scheduler import get_scheduler_status

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/status")
def services_status(store: RecordStore = Depends(get_store), cache: Cache = Depends(get_cache)):
    """
    Check connectivity of the backing services:
    - DynamoDB (all four tables)
    - Redis cache
    - Background scheduler
    """
    tables = store.table_status()
    dynamodb_status = {
        "connected": all(table["status"] == "ACTIVE" for table in tables.values()),
        "region": settings.DYNAMO_REGION,
        "tables": tables,
    }
    if not dynamodb_status["connected"]:
        logger.error(f"DynamoDB check failed: {tables}")

    redis_connected = cache.ping()
    if not redis_connected:
        logger.error("Redis check failed")

    status = {
        "timestamp": datetime.utcnow().isoformat(),
        "services": {
            "dynamodb": dynamodb_status,
            "redis": {"connected": redis_connected},
        },
        "scheduler": get_scheduler_status(),
    }
    status["overall_status"] = "healthy" if dynamodb_status["connected"] and redis_connected else "degraded"
    return status
