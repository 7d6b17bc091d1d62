"""
Order Service — クエリハンドラ (CQRS の Read 側)

確定済みの注文と商品の在庫状況を返す。
書き込みは commands.py / engine.py だけが行う。
"""

from collections import defaultdict

from sqlalchemy import DateTime, String, text
from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import to_price


def _line_dict(row) -> dict:
    return {
        "product_id": row.product_id,
        "unit_price": str(to_price(row.price)),
        "quantity": row.quantity,
    }


def _order_dict(row, lines: list[dict]) -> dict:
    total = sum(to_price(line["unit_price"]) * line["quantity"] for line in lines)
    return {
        "id": row.id,
        "customer_id": row.customer_id,
        "lines": lines,
        "total": str(to_price(total)),
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


async def get_order(session: AsyncSession, order_id: str) -> dict | None:
    """注文を明細付きで取得する。明細はリクエスト順。"""
    result = await session.execute(
        text("SELECT id, customer_id, created_at FROM orders WHERE id = :id")
        .columns(id=String, customer_id=String, created_at=DateTime(timezone=True)),
        {"id": order_id},
    )
    row = result.fetchone()
    if not row:
        return None

    lines = await session.execute(
        text("""
            SELECT product_id, price, quantity
            FROM order_products
            WHERE order_id = :id
            ORDER BY position ASC
        """),
        {"id": order_id},
    )
    return _order_dict(row, [_line_dict(line) for line in lines.fetchall()])


async def list_orders(session: AsyncSession) -> list[dict]:
    """全注文一覧（新しい順）"""
    result = await session.execute(
        text("SELECT id, customer_id, created_at FROM orders ORDER BY created_at DESC")
        .columns(id=String, customer_id=String, created_at=DateTime(timezone=True)),
    )
    orders = result.fetchall()

    lines_by_order: dict[str, list[dict]] = defaultdict(list)
    lines = await session.execute(
        text("""
            SELECT order_id, product_id, price, quantity
            FROM order_products
            ORDER BY order_id, position ASC
        """),
    )
    for line in lines.fetchall():
        lines_by_order[line.order_id].append(_line_dict(line))

    return [_order_dict(row, lines_by_order[row.id]) for row in orders]


async def list_products(session: AsyncSession) -> list[dict]:
    result = await session.execute(
        text("SELECT id, name, price, quantity FROM products ORDER BY name"),
    )
    return [
        {
            "id": row.id,
            "name": row.name,
            "price": str(to_price(row.price)),
            "quantity": row.quantity,
        }
        for row in result.fetchall()
    ]
