"""
SQLAlchemy Database Models

The remote `orders` table. Its schema is narrow: fulfillment
type, phone, address and verification code have no columns of their own and
travel packed inside `table_number` (see orderdesk.codec).

Author: Khalil Bannouri
Version: 3.0.0
"""

import enum

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String, Text
from sqlalchemy.sql import func

from orderdesk.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow (forward only)."""
    PENDING = "pending"
    PREPARING = "preparing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FulfillmentType(str, enum.Enum):
    """How the order reaches the customer."""
    DINE_IN = "dine_in"
    DELIVERY = "delivery"


class Order(Base):
    """
    Main Order table - one row per customer submission.
    """
    __tablename__ = "orders"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Owning restaurant
    tenant_id = Column("restaurant_id", String(64), nullable=False, index=True)

    customer_name = Column(String(100), nullable=False)

    # Packed location metadata (DINEIN_V1|||... / DELIVERY_V1|||... / legacy)
    table_number = Column(String(500), nullable=True)

    items = Column(Text, nullable=False)  # JSON string of dish snapshots
    total = Column(Float, nullable=False)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Order #{self.id} - {self.tenant_id} - {self.customer_name} - {self.status.value}>"
