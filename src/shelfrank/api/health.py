from fastapi import APIRouter, Request

from ..logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(request: Request) -> dict[str, str | bool]:
    storage_ok = False

    try:
        catalog = request.app.state.catalog_service
        catalog.repository.store.get(catalog.repository.key)
        storage_ok = True
    except Exception as e:
        logger.warning("Storage health check failed", error=str(e))

    return {
        "status": "ready" if storage_ok else "degraded",
        "storage": storage_ok,
    }
