"""
Notification Dispatcher

Drives the side effects of newly observed orders:
    - one audible alert per poll cycle that surfaced at least one new order
    - one printed receipt per new order, in feed order, when auto-print is on

Side-effect failures are logged and never interrupt order processing.

Author: Khalil Bannouri
Version: 3.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from orderdesk.schemas import OrderRecord
from orderdesk.services.notifications.base import BaseAlertService, BasePrinterService
from orderdesk.services.preferences import Preferences
from orderdesk.services.receipts import ReceiptDocument, render_receipt

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """What a dispatch actually did."""
    alerted: bool = False
    printed: list[int] = field(default_factory=list)
    print_failures: list[int] = field(default_factory=list)


class NotificationDispatcher:
    """Fires alert and print side effects for new orders."""

    def __init__(
        self,
        printer: BasePrinterService,
        alert: BaseAlertService,
        preferences: Preferences,
        render: Callable[[OrderRecord], ReceiptDocument] = render_receipt,
    ):
        self.printer = printer
        self.alert = alert
        self.preferences = preferences
        self._render = render

    async def dispatch(self, tenant_id: str, new_orders: Sequence[OrderRecord]) -> DispatchReport:
        report = DispatchReport()
        if not new_orders:
            return report

        logger.info(f"{len(new_orders)} new order(s) for {tenant_id}: {[o.id for o in new_orders]}")
        report.alerted = await self._play_alert(tenant_id, [o.id for o in new_orders])

        if self.preferences.auto_print:
            for order in new_orders:
                if await self._print(order):
                    report.printed.append(order.id)
                else:
                    report.print_failures.append(order.id)

        return report

    async def _play_alert(self, tenant_id: str, order_ids: list[int]) -> bool:
        try:
            result = await self.alert.play_alert(tenant_id, order_ids)
        except Exception as e:
            logger.exception(f"Alert playback failed for {tenant_id}: {e}")
            return False

        if not result.success:
            logger.warning(f"Alert playback failed for {tenant_id}: {result.error_message}")
        return result.success

    async def _print(self, order: OrderRecord) -> bool:
        try:
            document = self._render(order)
            result = await self.printer.print_receipt(document)
        except Exception as e:
            logger.exception(f"Printing order #{order.id} failed: {e}")
            return False

        if not result.success:
            logger.warning(f"Printing order #{order.id} failed: {result.error_message}")
        return result.success
