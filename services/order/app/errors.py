"""
Order Service — 注文確定の失敗分類

すべてリクエスト単位の検証エラーまたは依存先の障害。
クラス名がそのまま API レスポンスの "error" 種別になる。
"""


class PlacementError(Exception):
    """注文確定の失敗すべての基底クラス"""

    status_code = 400

    def __init__(self, message: str, product_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.product_id = product_id

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "product_id": self.product_id,
        }


class InvalidCustomer(PlacementError):
    """顧客が存在しない"""


class InvalidQuantity(PlacementError):
    """数量が 0 以下の明細がある"""


class UnknownProduct(PlacementError):
    """カタログに存在しない商品が含まれている"""

    def __init__(self, product_id: str | None = None) -> None:
        super().__init__("There are invalid products in the order", product_id=product_id)


class InsufficientStock(PlacementError):
    """同一商品の累積数量が在庫を超えた"""

    status_code = 409

    def __init__(
        self,
        product_id: str,
        product_name: str,
        requested: int,
        available: int,
    ) -> None:
        super().__init__(
            f"Product '{product_name}' does not have enough stock: "
            f"requested={requested}, available={available}",
            product_id=product_id,
        )
        self.requested = requested
        self.available = available


class StockWriteConflict(PlacementError):
    """在庫の減算時に、照合後に他の注文が在庫を使い切っていた"""

    status_code = 409


class StorageUnavailable(PlacementError):
    """顧客・在庫・注文ストアのいずれかが利用できない"""

    status_code = 503
