"""
Startup readiness and health checks.
Application starts without network, recovers after.
"""
import time
from typing import Any, Dict, Optional

from ordersync.logger import logger


class ReadinessManager:
    """
    Manages application readiness state.
    Startup succeeds even when Redis, Postgres or the LLM are unreachable;
    matching then runs on in-process state and local fallbacks.
    """

    def __init__(self):
        self.is_ready = False
        self.services: Dict[str, bool] = {"config": True}
        self.startup_time: Optional[float] = None

    async def initialize_services(self, services: Dict[str, Any]):
        """
        Initialize every service object (anything with initialize() and is_available).
        Non-blocking, failures don't prevent startup.
        """
        logger.info("Starting service initialization...")

        for name, service in services.items():
            try:
                await service.initialize()
                self.services[name] = bool(service.is_available)
            except Exception as e:
                logger.warning(f"{name} initialization failed: {e}")
                self.services[name] = False

        self.is_ready = True
        self.startup_time = time.monotonic()

        logger.info(f"Services initialized. Ready: {self.is_ready}")
        logger.info(f"Service status: {self.services}")

    def get_status(self) -> Dict[str, Any]:
        """Get readiness status."""
        uptime = 0.0
        if self.startup_time is not None:
            uptime = time.monotonic() - self.startup_time
        return {
            "ready": self.is_ready,
            "services": dict(self.services),
            "uptime": uptime,
        }

    def is_service_available(self, service_name: str) -> bool:
        """Check if a specific service is available."""
        return self.services.get(service_name, False)


# Global readiness manager
readiness_manager = ReadinessManager()
