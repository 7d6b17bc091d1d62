"""
Order Service — 在庫照合 (Reconciliation)

リクエスト明細を現在の在庫と突き合わせ、単価付きの確定明細と
在庫の更新内容を作る。入力だけで結果が決まる純粋関数で、
途中で例外を投げずに失敗を値として返す。

  同じ商品が複数明細に現れた場合は、リクエスト順に
  残数を累積で減らしながらチェックする:

    在庫 4, 明細 [P×3, P×3]  → 2 行目で InsufficientStock
    在庫 4, 明細 [P×2, P×2]  → 成功, 残数 0
"""

from dataclasses import dataclass
from typing import Sequence

from .errors import InsufficientStock, PlacementError, UnknownProduct
from .models import CatalogProduct, ReconciledLine, RequestedLine, StockAdjustment


@dataclass(frozen=True)
class Reconciliation:
    lines: tuple[ReconciledLine, ...]
    adjustments: tuple[StockAdjustment, ...]


def reconcile(
    requested: Sequence[RequestedLine],
    products: Sequence[CatalogProduct],
) -> Reconciliation | PlacementError:
    catalog = {product.id: product for product in products}
    remaining = {product.id: product.quantity for product in products}
    lines: list[ReconciledLine] = []

    for line in requested:
        product = catalog.get(line.product_id)
        if product is None:
            return UnknownProduct(product_id=line.product_id)

        available = remaining[product.id]
        if available < line.quantity:
            return InsufficientStock(product.id, product.name, line.quantity, available)

        remaining[product.id] = available - line.quantity
        lines.append(
            ReconciledLine(
                product_id=product.id,
                unit_price=product.unit_price,
                quantity=line.quantity,
            )
        )

    # DB 側の行ロック順を揃えるため product_id 順で並べる
    adjustments = tuple(
        StockAdjustment(
            product_id=product_id,
            quantity=catalog[product_id].quantity - remaining[product_id],
        )
        for product_id in sorted(remaining)
        if remaining[product_id] != catalog[product_id].quantity
    )
    return Reconciliation(lines=tuple(lines), adjustments=adjustments)
