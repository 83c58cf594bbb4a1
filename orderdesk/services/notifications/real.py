"""
Real Notification Services

Production implementations:
- HTTP print relay for receipts (httpx)
- Redis pub/sub for the dashboard alert sound

Author: Khalil Bannouri
Version: 3.0.0
"""

import json
import logging
from typing import Optional, Sequence

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from orderdesk.core.config import get_settings
from orderdesk.services.notifications.base import (
    BaseAlertService,
    BasePrinterService,
    NotificationResult,
)
from orderdesk.services.receipts import ReceiptDocument

logger = logging.getLogger(__name__)


class HttpPrinterService(BasePrinterService):
    """Posts rendered receipts to a print relay attached to the receipt printer."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.server_url = server_url or settings.print_server_url
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.print_timeout_seconds
        )

        if not self.server_url:
            logger.warning("Print server URL not configured")
        logger.info("HttpPrinterService initialized")

    @property
    def provider_name(self) -> str:
        return "http"

    async def print_receipt(self, document: ReceiptDocument) -> NotificationResult:
        """Send the receipt to the print relay."""
        if not self.server_url:
            return NotificationResult(
                success=False,
                error_message="Print server not configured",
                provider="http"
            )

        try:
            response = await self._client.post(
                self.server_url,
                json={
                    "title": document.title,
                    "order_id": document.order_id,
                    "content_type": "text/html",
                    "document": document.html,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Print relay error for order #{document.order_id}: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="http"
            )

        job_id = None
        if response.headers.get("content-type", "").startswith("application/json"):
            job_id = response.json().get("job_id")
        logger.info(f"Receipt for order #{document.order_id} sent to printer ({response.status_code})")

        return NotificationResult(success=True, message_id=job_id, provider="http")

    async def health_check(self) -> bool:
        if not self.server_url:
            return False
        try:
            response = await self._client.get(self.server_url)
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


class RedisAlertService(BaseAlertService):
    """Publishes a new-order ring on the dashboard's redis channel."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
        sound_url: Optional[str] = None,
        client: Optional[aioredis.Redis] = None,
    ):
        settings = get_settings()
        self.channel = channel or settings.alert_channel
        self.sound_url = sound_url or settings.alert_sound_url
        self._redis = client or aioredis.from_url(
            redis_url or settings.redis_url,
            socket_timeout=2,
        )
        logger.info(f"RedisAlertService initialized (channel={self.channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def play_alert(self, tenant_id: str, order_ids: Sequence[int]) -> NotificationResult:
        message = json.dumps({
            "type": "new_order",
            "tenant_id": tenant_id,
            "order_ids": list(order_ids),
            "sound_url": self.sound_url,
        })
        try:
            receivers = await self._redis.publish(self.channel, message)
        except (RedisError, OSError) as e:
            logger.error(f"Alert publish failed for {tenant_id}: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="redis"
            )

        if not receivers:
            logger.warning(f"Alert for {tenant_id} published but no dashboard is listening")
        return NotificationResult(success=True, provider="redis")

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError):
            return False

    async def aclose(self) -> None:
        await self._redis.aclose()
