"""
Mock Notification Services

Simulate the printer and the audio alert for development.
Nothing is printed or played - documents and alerts are logged and kept in
memory so they can be inspected.

Author: Khalil Bannouri
Version: 3.0.0
"""

import asyncio
import logging
import random
import uuid
from typing import Sequence

from orderdesk.services.notifications.base import (
    BaseAlertService,
    BasePrinterService,
    NotificationResult,
)
from orderdesk.services.receipts import ReceiptDocument

logger = logging.getLogger(__name__)


class _Simulated:
    def __init__(self, failure_rate: float = 0.0, min_latency: float = 0.0, max_latency: float = 0.0):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

    async def _simulate_latency(self) -> None:
        """Simulate device latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate


class MockPrinterService(_Simulated, BasePrinterService):
    """Mock printer for development."""

    def __init__(self, failure_rate: float = 0.0, min_latency: float = 0.0, max_latency: float = 0.0):
        super().__init__(failure_rate, min_latency, max_latency)
        self.printed: list[ReceiptDocument] = []
        logger.info(f"MockPrinterService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def print_receipt(self, document: ReceiptDocument) -> NotificationResult:
        """Simulate printing a receipt."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock print failed (simulated) for order #{document.order_id}")
            return NotificationResult(
                success=False,
                error_message="Simulated printer failure",
                provider="mock"
            )

        self.printed.append(document)
        job_id = f"print_mock_{uuid.uuid4().hex[:12]}"
        logger.info(f"Mock receipt printed: {document.title} (ID: {job_id})")

        return NotificationResult(success=True, message_id=job_id, provider="mock")

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True


class MockAlertService(_Simulated, BaseAlertService):
    """Mock audio alert for development."""

    def __init__(self, failure_rate: float = 0.0):
        super().__init__(failure_rate)
        self.alerts: list[tuple[str, list[int]]] = []
        logger.info(f"MockAlertService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def play_alert(self, tenant_id: str, order_ids: Sequence[int]) -> NotificationResult:
        """Simulate ringing the dashboard."""
        if self._should_fail():
            logger.warning(f"Mock alert failed (simulated) for {tenant_id}")
            return NotificationResult(
                success=False,
                error_message="Simulated playback failure",
                provider="mock"
            )

        self.alerts.append((tenant_id, list(order_ids)))
        logger.info(f"Mock alert played for {tenant_id}: {len(order_ids)} new order(s)")
        return NotificationResult(success=True, provider="mock")

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
