"""
Order Service — コマンドハンドラ (CQRS の Write 側)

注文確定コマンド。リクエストごとのセッションに束ねた SQL リポジトリで
OrderPlacementEngine を組み立てて実行し、成功したら Redis Pub/Sub で
OrderPlaced イベントを発行する（他サービスへ通知）。
"""

import json
import logging
from typing import Sequence

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from .engine import DEFAULT_MAX_ATTEMPTS, OrderPlacementEngine
from .events import OrderPlaced
from .models import Order, RequestedLine
from .repositories import (
    SqlCustomerDirectory,
    SqlOrderStore,
    SqlStockLedger,
    SqlUnitOfWork,
)

logger = logging.getLogger(__name__)

ORDER_EVENTS_CHANNEL = "order_events"


def build_engine(session: AsyncSession, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> OrderPlacementEngine:
    return OrderPlacementEngine(
        customers=SqlCustomerDirectory(session),
        stock=SqlStockLedger(session),
        orders=SqlOrderStore(session),
        unit_of_work=SqlUnitOfWork(session),
        max_attempts=max_attempts,
    )


async def place_order(
    session: AsyncSession,
    redis: aioredis.Redis,
    customer_id: str,
    lines: Sequence[RequestedLine],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Order:
    """
    注文確定コマンド

    1. 顧客・数量・商品を検証
    2. 在庫を照合して一括で引き当て、注文と同じトランザクションでコミット
    3. Redis Pub/Sub で OrderPlaced を発行
    """
    order = await build_engine(session, max_attempts).place(customer_id, lines)

    event = OrderPlaced.from_order(order)
    await redis.publish(ORDER_EVENTS_CHANNEL, json.dumps({
        "event_type": "OrderPlaced",
        "data": event.model_dump(mode="json"),
    }, default=str))
    logger.info("[Order: %s] Published OrderPlaced", order.id)

    return order
