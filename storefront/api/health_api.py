from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies_api import get_database, get_settings
from storefront.core.config import Settings
from storefront.core.database import Database
from storefront.utils.date_utils import utcnow

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    """Liveness plus a database round trip"""
    db_healthy = database.health_check()
    body = {
        "status": "healthy" if db_healthy else "unhealthy",
        "database": "healthy" if db_healthy else "unhealthy",
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat() + "Z",
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if db_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )
