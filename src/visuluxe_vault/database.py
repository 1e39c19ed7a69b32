"""
visuluxe_vault/database.py — Conexão assíncrona via SQLAlchemy.

SQLite (aiosqlite) em desenvolvimento, Postgres (asyncpg) em produção.
O engine e a fábrica de sessões vivem em app.state, criados pelo create_app().
"""
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Agora em UTC, sem tzinfo (mesmo formato gravado nas colunas DateTime)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db(engine: AsyncEngine):
    """Cria todas as tabelas se não existirem."""
    from visuluxe_vault.models import api_key, audit_log, notification, provider, user  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request):
    """Dependency FastAPI para injetar sessão DB."""
    async with request.app.state.sessionmaker() as session:
        yield session
