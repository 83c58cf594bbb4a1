"""
Receipt rendering.

Turns a decoded order into the printable document sent to the printing
surface: header (restaurant, date, order id, table or delivery marker,
customer, verification code), optional delivery block, itemized table and
total.
"""

from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from orderdesk.core.config import get_settings
from orderdesk.schemas import OrderRecord
from orderdesk.services.remote import utcnow

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


@dataclass
class ReceiptDocument:
    """A rendered receipt ready for the printer."""
    order_id: int
    title: str
    html: str


@lru_cache()
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )


def render_receipt(
    order: OrderRecord,
    restaurant_name: Optional[str] = None,
    currency: Optional[str] = None,
    printed_at: Optional[datetime] = None,
) -> ReceiptDocument:
    settings = get_settings()
    template = _environment().get_template("receipt.html")
    html = template.render(
        order=order,
        restaurant_name=restaurant_name or settings.restaurant_name,
        currency=currency or settings.currency,
        printed_at=printed_at or utcnow(),
    )
    return ReceiptDocument(order_id=order.id, title=f"Order #{order.id}", html=html)
