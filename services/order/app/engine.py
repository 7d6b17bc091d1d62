"""
Order Service — 注文確定エンジン (Order Placement Engine)

  フロー:
  ┌──────────────────────────────────────────────────────────┐
  │  1. 顧客を確認               → InvalidCustomer            │
  │  2. 数量を確認 (DB アクセス前) → InvalidQuantity            │
  │  3. 商品を一括取得・存在確認   → UnknownProduct             │
  │  4. 在庫照合 (累積チェック)    → InsufficientStock          │
  │  5. 在庫を一括で条件付き減算   → StockWriteConflict → 3 へ  │
  │  6. 注文を保存し、5 と同じトランザクションでコミット         │
  └──────────────────────────────────────────────────────────┘

1〜4 の失敗では何も書き込まない。5〜6 の失敗はロールバックするので、
在庫だけ減った状態や明細の欠けた注文は外から見えない。
"""

import logging
from typing import Sequence

from .errors import (
    InvalidCustomer,
    InvalidQuantity,
    PlacementError,
    StockWriteConflict,
    UnknownProduct,
)
from .models import Order, RequestedLine
from .ports import CustomerDirectory, OrderStore, StockLedger, UnitOfWork
from .reconciliation import reconcile

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class OrderPlacementEngine:
    """注文 1 件を確定する。コラボレータはコンストラクタで受け取る。"""

    def __init__(
        self,
        customers: CustomerDirectory,
        stock: StockLedger,
        orders: OrderStore,
        unit_of_work: UnitOfWork,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.customers = customers
        self.stock = stock
        self.orders = orders
        self.unit_of_work = unit_of_work
        self.max_attempts = max_attempts

    async def place(self, customer_id: str, lines: Sequence[RequestedLine]) -> Order:
        log_prefix = f"[Customer: {customer_id}]"
        logger.info("%s Placing order with %d line(s)", log_prefix, len(lines))

        # ── Step 1: 顧客 ──────────────────────────────
        customer = await self.customers.find_by_id(customer_id)
        if customer is None:
            raise self._reject(log_prefix, InvalidCustomer(f"Customer '{customer_id}' does not exist"))

        # ── Step 2: 数量 ──────────────────────────────
        invalid = [line for line in lines if line.quantity <= 0]
        if invalid:
            raise self._reject(
                log_prefix,
                InvalidQuantity(
                    "There are products with invalid quantity in the order",
                    product_id=invalid[0].product_id,
                ),
            )

        product_ids = list(dict.fromkeys(line.product_id for line in lines))

        conflict: StockWriteConflict | None = None
        for attempt in range(1, self.max_attempts + 1):
            # ── Step 3: 商品の存在確認 ─────────────────
            products = await self.stock.find_all_by_id(product_ids)
            if len(products) != len(product_ids):
                found = {product.id for product in products}
                missing = next((pid for pid in product_ids if pid not in found), None)
                raise self._reject(log_prefix, UnknownProduct(product_id=missing))

            # ── Step 4: 在庫照合 ──────────────────────
            outcome = reconcile(lines, products)
            if isinstance(outcome, PlacementError):
                raise self._reject(log_prefix, outcome)

            # ── Step 5, 6: 在庫更新と注文保存 ──────────
            try:
                await self.stock.apply_quantities(outcome.adjustments)
                order = await self.orders.create(customer, outcome.lines)
                await self.unit_of_work.commit()
            except StockWriteConflict as e:
                await self.unit_of_work.rollback()
                conflict = e
                logger.warning(
                    "%s Stock write conflict (attempt %d/%d): %s",
                    log_prefix, attempt, self.max_attempts, e.message,
                )
                continue
            except Exception:
                logger.exception("%s Commit failed, rolling back", log_prefix)
                await self._rollback_keeping_error(log_prefix)
                raise

            logger.info("%s Order %s placed (attempt %d)", log_prefix, order.id, attempt)
            return order

        logger.error("%s Giving up after %d conflicting attempts", log_prefix, self.max_attempts)
        raise conflict

    async def _rollback_keeping_error(self, log_prefix: str) -> None:
        # ロールバックの失敗は記録のみ。呼び出し元には処理中の例外を返す
        try:
            await self.unit_of_work.rollback()
        except Exception:
            logger.exception("%s Rollback failed", log_prefix)

    @staticmethod
    def _reject(log_prefix: str, error: PlacementError) -> PlacementError:
        logger.info("%s Rejected: %s - %s", log_prefix, error.kind, error.message)
        return error
