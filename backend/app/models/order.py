import enum
from sqlalchemy import Column, String, DateTime, Numeric, Text

from .base import BaseModel
from .types import CaseInsensitiveEnum


class OrderType(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"
    DINE_IN = "dine_in"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(BaseModel):
    """Fulfillment record owned by the order module.

    The calendar only reads delivery orders to project them as read-only
    entries; it never writes this table.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    customer_name = Column(String(255), nullable=True)
    delivery_address = Column(Text, nullable=True)
    order_type = Column(CaseInsensitiveEnum(OrderType, name="ordertype"), nullable=False, default=OrderType.DELIVERY)
    status = Column(CaseInsensitiveEnum(OrderStatus, name="orderstatus"), nullable=False, default=OrderStatus.PENDING)
    scheduled_date = Column(DateTime, nullable=True, index=True)
    delivery_date = Column(DateTime, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=True)
