"""
Order Service — ログ設定

全モジュール共通のフォーマットで標準出力へ出す（Docker/Kubernetes 向け）。
各モジュールは logging.getLogger(__name__) でロガーを取得する。
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # 外部ライブラリのログは控えめに
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
