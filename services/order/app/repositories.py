"""
Order Service — SQL リポジトリ

ports.py の各インターフェースを SQLAlchemy (AsyncSession + text()) で実装する。
すべて同じセッションを共有し、コミットは SqlUnitOfWork だけが行う。
そのため在庫更新と注文保存はひとつのトランザクションになる。

在庫更新は条件付き減算:
  UPDATE products SET quantity = quantity - :qty WHERE id = :id AND quantity >= :qty
在庫が足りている限り、同じ商品への同時注文は互いに競合しない。
更新件数が 0 なら照合後に他の注文が在庫を使い切った → StockWriteConflict。
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence
from uuid import uuid4

from sqlalchemy import DateTime, Numeric, bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import StockWriteConflict, StorageUnavailable
from .models import (
    CENT,
    CatalogProduct,
    Customer,
    Order,
    ReconciledLine,
    StockAdjustment,
)


def to_price(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


class SqlCustomerDirectory:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, customer_id: str) -> Customer | None:
        try:
            result = await self.session.execute(
                text("SELECT id, name, email FROM customers WHERE id = :id"),
                {"id": customer_id},
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Customer directory unavailable: {e}") from e
        row = result.fetchone()
        if not row:
            return None
        return Customer(id=row.id, name=row.name, email=row.email or "")


class SqlStockLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all_by_id(self, product_ids: Sequence[str]) -> list[CatalogProduct]:
        if not product_ids:
            return []
        stmt = text(
            "SELECT id, name, price, quantity FROM products WHERE id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        try:
            result = await self.session.execute(stmt, {"ids": list(product_ids)})
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Stock ledger unavailable: {e}") from e
        return [
            CatalogProduct(
                id=row.id,
                name=row.name,
                unit_price=to_price(row.price),
                quantity=row.quantity,
            )
            for row in result.fetchall()
        ]

    async def apply_quantities(self, adjustments: Sequence[StockAdjustment]) -> None:
        now = datetime.now(timezone.utc)
        for adjustment in adjustments:
            try:
                result = await self.session.execute(
                    text("""
                        UPDATE products
                        SET quantity = quantity - :qty, updated_at = :now
                        WHERE id = :id AND quantity >= :qty
                    """).bindparams(bindparam("now", type_=DateTime(timezone=True))),
                    {
                        "id": adjustment.product_id,
                        "qty": adjustment.quantity,
                        "now": now,
                    },
                )
            except SQLAlchemyError as e:
                raise StorageUnavailable(f"Stock ledger unavailable: {e}") from e
            if result.rowcount != 1:
                raise StockWriteConflict(
                    f"Stock of product '{adjustment.product_id}' was taken by a concurrent order",
                    product_id=adjustment.product_id,
                )


class SqlOrderStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, customer: Customer, lines: Sequence[ReconciledLine]) -> Order:
        order = Order(
            id=str(uuid4()),
            customer_id=customer.id,
            lines=list(lines),
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.session.execute(
                text("""
                    INSERT INTO orders (id, customer_id, created_at, updated_at)
                    VALUES (:id, :customer_id, :now, :now)
                """).bindparams(bindparam("now", type_=DateTime(timezone=True))),
                {"id": order.id, "customer_id": order.customer_id, "now": order.created_at},
            )
            if order.lines:
                await self.session.execute(
                    text("""
                        INSERT INTO order_products
                            (order_id, position, product_id, price, quantity)
                        VALUES
                            (:order_id, :position, :product_id, :price, :quantity)
                    """).bindparams(bindparam("price", type_=Numeric(10, 2))),
                    [
                        {
                            "order_id": order.id,
                            "position": position,
                            "product_id": line.product_id,
                            "price": line.unit_price,
                            "quantity": line.quantity,
                        }
                        for position, line in enumerate(order.lines)
                    ],
                )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Order store unavailable: {e}") from e
        return order


class SqlUnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Rollback failed: {e}") from e
