"""
Order Service — 外部コラボレータのインターフェース

注文確定エンジンはこれらの Protocol だけに依存する。
SQL 実装は repositories.py、テストでは差し替え可能なフェイクを使う。
"""

from typing import Protocol, Sequence

from .models import CatalogProduct, Customer, Order, ReconciledLine, StockAdjustment


class CustomerDirectory(Protocol):
    async def find_by_id(self, customer_id: str) -> Customer | None: ...


class StockLedger(Protocol):
    async def find_all_by_id(self, product_ids: Sequence[str]) -> list[CatalogProduct]:
        """存在する商品だけを返す。未知の ID は黙って省かれる。"""
        ...

    async def apply_quantities(self, adjustments: Sequence[StockAdjustment]) -> None:
        """
        在庫を一括で減算する。

        どれか 1 件でも在庫が quantity 未満なら
        StockWriteConflict を送出する。
        """
        ...


class OrderStore(Protocol):
    async def create(self, customer: Customer, lines: Sequence[ReconciledLine]) -> Order: ...


class UnitOfWork(Protocol):
    """在庫の書き込みと注文の保存をひとつにまとめるトランザクション境界"""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
