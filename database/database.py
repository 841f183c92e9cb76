# database/database.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from database.errors import StoreError

logger = logging.getLogger(__name__)

# 1. Créer Base tout de suite
Base = declarative_base()


# 2. Un engine + une session factory par shard
@dataclass
class Shard:
    index: int
    url: str
    engine: AsyncEngine
    session: sessionmaker
    ready: bool = False
    last_error: str | None = field(default=None, repr=False)


def _connect_args(url: str, ssl: bool) -> dict:
    if ssl and url.startswith("postgresql"):
        return {"ssl": "require"}
    return {}


def build_shards(urls: list[str], *, ssl: bool = False, echo: bool = False) -> list[Shard]:
    if not urls:
        raise ValueError("at least one posts database URL is required")
    shards = []
    for index, url in enumerate(urls):
        engine = create_async_engine(
            url, echo=echo, pool_pre_ping=True, connect_args=_connect_args(url, ssl),
        )
        session = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        shards.append(Shard(index=index, url=url, engine=engine, session=session))
    return shards


# 3. Importer les modèles APRÈS (ils verront déjà Base)
from database import post   # noqa: E402,F401


async def init_shard(shard: Shard) -> None:
    async with shard.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_shards(shards: list[Shard], *, fail_fast: bool = False) -> list[Shard]:
    """Crée la table posts sur chaque shard, l'un après l'autre.

    Un shard en échec reste ``ready=False`` et ne remontera d'erreur qu'au
    premier usage, sauf si ``fail_fast`` est demandé. Retourne les shards
    en échec.
    """
    failed = []
    for shard in shards:
        try:
            await init_shard(shard)
        except (SQLAlchemyError, OSError) as exc:
            shard.ready = False
            shard.last_error = str(exc)
            logger.error("❌ Error initializing posts table on shard %d: %s", shard.index, exc)
            if fail_fast:
                raise StoreError(str(exc), shard=shard.index) from exc
            failed.append(shard)
        else:
            shard.ready = True
            shard.last_error = None
            logger.info("✅ Posts table initialized on shard %d", shard.index)
    return failed


async def dispose_shards(shards: list[Shard]) -> None:
    for shard in shards:
        await shard.engine.dispose()
