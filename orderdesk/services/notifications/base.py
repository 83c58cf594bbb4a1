"""
Notification Service Abstract Base Classes

Defines the interfaces of the two side-effect surfaces driven by new orders:
    - Printing surface: receives a rendered receipt document
    - Audio alert: rings the operator's dashboard

Supports both Mock (development) and Real (production) implementations.

Author: Khalil Bannouri
Version: 3.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from orderdesk.services.receipts import ReceiptDocument


@dataclass
class NotificationResult:
    """Result from a print or alert request."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BasePrinterService(ABC):
    """Abstract base class for receipt printing."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def print_receipt(self, document: ReceiptDocument) -> NotificationResult:
        """Send one receipt to the printer."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check printer connectivity."""
        pass

    async def aclose(self) -> None:
        """Release connections held by the service."""
        return None


class BaseAlertService(ABC):
    """Abstract base class for the audible new-order alert."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def play_alert(self, tenant_id: str, order_ids: Sequence[int]) -> NotificationResult:
        """Play the notification sound once."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check alert channel connectivity."""
        pass

    async def aclose(self) -> None:
        """Release connections held by the service."""
        return None
