"""
共通フィクスチャ

- InMemoryDatabase / FakeTransaction: エンジンのコラボレータを差し替えるフェイク
- sql_engine: SQLite (aiosqlite) 上に本番と同じテーブルを作った DB
"""

import asyncio
import os
from decimal import Decimal
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from sqlalchemy import Numeric, bindparam, text
from sqlalchemy.ext.asyncio import create_async_engine

from app.engine import DEFAULT_MAX_ATTEMPTS, OrderPlacementEngine
from app.errors import StockWriteConflict, StorageUnavailable
from app.models import CatalogProduct, Customer, Order
from app.schema import create_schema


class InMemoryDatabase:
    """コミット済みの状態だけを持つ。書き込みは FakeTransaction.commit() 経由。"""

    def __init__(self) -> None:
        self.customers: dict[str, Customer] = {}
        self.products: dict[str, CatalogProduct] = {}
        self.orders: dict[str, Order] = {}
        self.observed_quantities: list[int] = []
        self.fail_on: str | None = None
        self.commits = 0

    def add_customer(self, customer_id: str, name: str = "Customer") -> None:
        self.customers[customer_id] = Customer(id=customer_id, name=name)

    def add_product(self, product_id: str, quantity: int, price: str = "1.00", name: str | None = None) -> None:
        self.products[product_id] = CatalogProduct(
            id=product_id,
            name=name or product_id,
            unit_price=Decimal(price),
            quantity=quantity,
        )

    def quantity(self, product_id: str) -> int:
        return self.products[product_id].quantity

    def engine(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> OrderPlacementEngine:
        tx = FakeTransaction(self)
        return OrderPlacementEngine(tx, tx, tx, tx, max_attempts=max_attempts)


class FakeTransaction:
    """
    1 回の注文確定分のトランザクション。
    CustomerDirectory / StockLedger / OrderStore / UnitOfWork をまとめて実装する。
    各呼び出しで await asyncio.sleep(0) を挟み、並行実行時に割り込みを起こす。
    """

    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        self.calls: list[str] = []
        self.staged_adjustments = []
        self.staged_orders: list[Order] = []
        self.rollbacks = 0

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        await asyncio.sleep(0)
        if self.db.fail_on == name:
            raise StorageUnavailable(f"{name} is down")

    async def find_by_id(self, customer_id):
        await self._enter("find_by_id")
        return self.db.customers.get(customer_id)

    async def find_all_by_id(self, product_ids):
        await self._enter("find_all_by_id")
        return [
            self.db.products[pid].model_copy()
            for pid in product_ids
            if pid in self.db.products
        ]

    async def apply_quantities(self, adjustments):
        await self._enter("apply_quantities")
        self.staged_adjustments.extend(adjustments)

    async def create(self, customer, lines):
        await self._enter("create")
        order = Order(
            id=str(uuid4()),
            customer_id=customer.id,
            lines=list(lines),
            created_at="2026-01-01T00:00:00Z",
        )
        self.staged_orders.append(order)
        return order

    async def commit(self):
        # await を挟まないので asyncio 上ではアトミック
        self.calls.append("commit")
        staged, self.staged_adjustments = self.staged_adjustments, []
        orders, self.staged_orders = self.staged_orders, []
        for adjustment in staged:
            if self.db.products[adjustment.product_id].quantity < adjustment.quantity:
                raise StockWriteConflict("conflict", product_id=adjustment.product_id)
        for adjustment in staged:
            product = self.db.products[adjustment.product_id]
            new_quantity = product.quantity - adjustment.quantity
            self.db.products[product.id] = product.model_copy(update={"quantity": new_quantity})
            self.db.observed_quantities.append(new_quantity)
        for order in orders:
            self.db.orders[order.id] = order
        self.db.commits += 1

    async def rollback(self):
        self.calls.append("rollback")
        self.staged_adjustments = []
        self.staged_orders = []
        self.rollbacks += 1


@pytest.fixture
def db() -> InMemoryDatabase:
    db = InMemoryDatabase()
    db.add_customer("C1", "Alice")
    db.add_product("P1", quantity=10, price="5.00", name="Widget")
    db.add_product("P2", quantity=4, price="12.50", name="Gadget")
    return db


class FakeRedis:
    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


async def seed(conn) -> None:
    await conn.execute(
        text("INSERT INTO customers (id, name, email) VALUES (:id, :name, :email)"),
        [{"id": "C1", "name": "Alice", "email": "alice@example.com"}],
    )
    await conn.execute(
        text("INSERT INTO products (id, name, price, quantity) VALUES (:id, :name, :price, :quantity)")
        .bindparams(bindparam("price", type_=Numeric(10, 2))),
        [
            {"id": "P1", "name": "Widget", "price": Decimal("5.00"), "quantity": 10},
            {"id": "P2", "name": "Gadget", "price": Decimal("12.50"), "quantity": 4},
        ],
    )


async def prepare_database(url: str) -> None:
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await create_schema(conn)
        await seed(conn)
    await engine.dispose()


@pytest.fixture
async def sql_engine(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    await prepare_database(url)
    engine = create_async_engine(url)
    yield engine
    await engine.dispose()
