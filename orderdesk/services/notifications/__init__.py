"""
Notification Service Factory

Returns Mock or Real printer/alert services based on ENV_MODE.

Author: Khalil Bannouri
Version: 3.0.0
"""

import logging
from functools import lru_cache

from orderdesk.core.config import get_settings
from orderdesk.services.notifications.base import (
    BaseAlertService,
    BasePrinterService,
    NotificationResult,
)
from orderdesk.services.notifications.dispatcher import DispatchReport, NotificationDispatcher
from orderdesk.services.notifications.mock import MockAlertService, MockPrinterService
from orderdesk.services.notifications.real import HttpPrinterService, RedisAlertService

logger = logging.getLogger(__name__)


@lru_cache()
def get_printer_service() -> BasePrinterService:
    """Get the configured printer service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Printer Service: Using MockPrinterService (development mode)")
        return MockPrinterService()
    else:
        logger.info(f"Printer Service: Using HttpPrinterService ({settings.env_mode.value} mode)")
        return HttpPrinterService()


@lru_cache()
def get_alert_service() -> BaseAlertService:
    """Get the configured alert service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Alert Service: Using MockAlertService (development mode)")
        return MockAlertService()
    else:
        logger.info(f"Alert Service: Using RedisAlertService ({settings.env_mode.value} mode)")
        return RedisAlertService()


def reset_notification_services() -> None:
    """Clear the cached service instances."""
    get_printer_service.cache_clear()
    get_alert_service.cache_clear()


async def close_notification_services() -> None:
    """Close the cached services' clients, then forget them."""
    for service in (get_printer_service(), get_alert_service()):
        await service.aclose()
        logger.info(f"Closed {service.provider_name} {type(service).__name__}")
    reset_notification_services()


__all__ = [
    "get_printer_service",
    "get_alert_service",
    "reset_notification_services",
    "close_notification_services",
    "BasePrinterService",
    "BaseAlertService",
    "NotificationResult",
    "NotificationDispatcher",
    "DispatchReport",
]
