"""
Order Service — テーブル定義

本番では DB 初期化スクリプトとして流す DDL。
CREATE_SCHEMA=1 のときは起動時に、テストでは各フィクスチャで実行する。
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

DDL = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        id          VARCHAR(64) PRIMARY KEY,
        name        VARCHAR(255) NOT NULL,
        email       VARCHAR(255),
        created_at  TIMESTAMP WITH TIME ZONE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id          VARCHAR(64) PRIMARY KEY,
        name        VARCHAR(255) NOT NULL,
        price       NUMERIC(10, 2) NOT NULL CHECK (price >= 0),
        quantity    INTEGER NOT NULL CHECK (quantity >= 0),
        updated_at  TIMESTAMP WITH TIME ZONE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id          VARCHAR(64) PRIMARY KEY,
        customer_id VARCHAR(64) NOT NULL REFERENCES customers (id),
        created_at  TIMESTAMP WITH TIME ZONE NOT NULL,
        updated_at  TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_products (
        order_id    VARCHAR(64) NOT NULL REFERENCES orders (id),
        position    INTEGER NOT NULL,
        product_id  VARCHAR(64) NOT NULL REFERENCES products (id),
        price       NUMERIC(10, 2) NOT NULL,
        quantity    INTEGER NOT NULL CHECK (quantity > 0),
        PRIMARY KEY (order_id, position)
    )
    """,
]


async def create_schema(conn: AsyncConnection) -> None:
    for statement in DDL:
        await conn.execute(text(statement))
