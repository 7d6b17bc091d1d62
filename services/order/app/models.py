"""
Order Service — ドメインモデル

注文確定で受け渡しされるデータ構造。
ReconciledLine と StockAdjustment は一度作ったら変更しない (frozen)。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

CENT = Decimal("0.01")


class RequestedLine(BaseModel):
    """注文リクエストの明細。同じ product_id が複数回現れてもよい。"""
    product_id: str
    quantity: int


class PlaceOrderRequest(BaseModel):
    # quantity の検証はエンジン側で InvalidQuantity として分類するため、
    # ここでは gt=0 を付けない
    customer_id: str
    lines: list[RequestedLine]


class Customer(BaseModel):
    id: str
    name: str
    email: str = ""


class CatalogProduct(BaseModel):
    """在庫台帳が持つ商品。価格と在庫数は同じ行から読む。"""
    id: str
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=0)


class ReconciledLine(BaseModel):
    """在庫引き当て時点の単価で確定した明細"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    unit_price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class StockAdjustment(BaseModel):
    """
    在庫の条件付き減算 1 件分。

    quantity はこの注文で商品から差し引く合計数。書き込み時点の在庫が
    quantity 未満なら減算せず、競合として扱う。
    """
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(gt=0)


class Order(BaseModel):
    id: str
    customer_id: str
    lines: list[ReconciledLine]
    created_at: datetime

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0")).quantize(CENT)
