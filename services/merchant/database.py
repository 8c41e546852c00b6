"""
Database models and connection helpers for the Merchant Service.

Uses async SQLAlchemy; PostgreSQL via asyncpg in deployment, any async
dialect (e.g. aiosqlite) in tests.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


def make_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("postgresql"):
        return create_async_engine(database_url, echo=False, pool_size=10, max_overflow=20)
    return create_async_engine(database_url, echo=False)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


# ── Product catalog ──────────────────────────────────────────────────────

class ProductRow(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    sku = Column(String, default="")
    price = Column(Numeric(12, 2), nullable=False)
    manage_stock = Column(Boolean, default=False)
    stock_quantity = Column(Integer, nullable=True)
    in_stock = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ── Orders ───────────────────────────────────────────────────────────────

class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency = Column(String, default="USD")
    billing_email = Column(String, nullable=True)
    status = Column(String, default="draft")
    tax = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)
    order_meta = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String, nullable=False)
    sku = Column(String, default="")
    title = Column(String, default="")
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)


# ── Checkout sessions ────────────────────────────────────────────────────

class CheckoutSessionRow(Base):
    __tablename__ = "checkout_sessions"

    id = Column(String, primary_key=True)
    order_id = Column(String, nullable=False, unique=True)
    idempotency_key = Column(String, nullable=True, unique=True)
    status = Column(String, default="not_ready_for_payment")
    version = Column(Integer, nullable=False, default=1)
    session_data = Column(JSON, default=dict)  # full CheckoutSession JSON
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ── Helpers ──────────────────────────────────────────────────────────────

async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Production schemas are managed by migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
