"""
Order Service — FastAPI エントリーポイント

CQRS パターンに従い、Command (POST) と Query (GET) のエンドポイントを分離。
注文確定は在庫の引き当てと注文保存をひとつのトランザクションで行い、
在庫の売り越しと不完全な注文の保存を防ぐ。
"""

import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import commands, queries
from .errors import PlacementError
from .logging_config import setup_logging
from .models import Order, PlaceOrderRequest
from .schema import create_schema

DATABASE_URL = os.environ["DATABASE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
PLACEMENT_MAX_ATTEMPTS = int(os.environ.get("PLACEMENT_MAX_ATTEMPTS", "3"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CREATE_SCHEMA = os.environ.get("CREATE_SCHEMA", "0") == "1"

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    if CREATE_SCHEMA:
        async with engine.begin() as conn:
            await create_schema(conn)
        logger.info("Database schema ensured")
    redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
    yield
    await redis_pool.aclose()


app = FastAPI(title="Order Service", lifespan=lifespan)


@app.exception_handler(PlacementError)
async def placement_error_handler(request: Request, exc: PlacementError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Command Endpoints (Write 側) ─────────────────

@app.post("/commands/orders", status_code=201, response_model=Order)
async def cmd_place_order(req: PlaceOrderRequest):
    """注文確定コマンド"""
    async with async_session() as session:
        return await commands.place_order(
            session, redis_pool,
            req.customer_id, req.lines,
            max_attempts=PLACEMENT_MAX_ATTEMPTS,
        )


# ── Query Endpoints (Read 側) ────────────────────

@app.get("/queries/orders")
async def query_list_orders():
    """全注文を明細付きで取得"""
    async with async_session() as session:
        return await queries.list_orders(session)


@app.get("/queries/orders/{order_id}")
async def query_get_order(order_id: str):
    """指定注文を明細付きで取得"""
    async with async_session() as session:
        order = await queries.get_order(session, order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        return order


@app.get("/queries/products")
async def query_list_products():
    """商品の在庫と単価の一覧"""
    async with async_session() as session:
        return await queries.list_products(session)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
