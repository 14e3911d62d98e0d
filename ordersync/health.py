from datetime import datetime

from fastapi import APIRouter

from ordersync.readiness import readiness_manager

router = APIRouter()


@router.get("/health")
async def health_check():
    services = readiness_manager.get_status()["services"]
    status = "healthy" if all(services.values()) else "degraded"
    return {
        "status": status,
        "services": services,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ready")
async def readiness_check():
    return readiness_manager.get_status()
