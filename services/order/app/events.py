"""
Order Service — イベント定義

注文確定後に order_events チャネルへ発行するイベント。
イベントは過去形で命名し、不変(immutable)として扱う。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from .models import Order, ReconciledLine


class OrderPlaced(BaseModel):
    """注文が確定された（在庫引き当て済み）"""
    order_id: str
    customer_id: str
    lines: list[ReconciledLine]
    total: Decimal
    timestamp: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderPlaced":
        return cls(
            order_id=order.id,
            customer_id=order.customer_id,
            lines=order.lines,
            total=order.total,
            timestamp=order.created_at,
        )
