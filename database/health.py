# database/health.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database.database import Shard

logger = logging.getLogger(__name__)


@dataclass
class ShardStatus:
    index: int
    ok: bool
    checked_at: float
    latency_ms: float | None = None
    error: str | None = None


class HealthMonitor:
    """Ping ``SELECT 1`` sur chaque shard ; garde le dernier résultat.

    Ne lève jamais : un shard en échec est loggé et marqué ``ok=False``.
    """

    def __init__(self, shards: list[Shard], *, clock: Callable[[], float] = time.time,
                 timeout: float = 10.0):
        self.shards = shards
        self.clock = clock
        self.timeout = timeout
        self._last: dict[int, ShardStatus] = {}

    async def _ping(self, shard: Shard) -> ShardStatus:
        started = time.perf_counter()

        async def select_one() -> None:
            async with shard.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

        try:
            await asyncio.wait_for(select_one(), self.timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Keep-alive ping failed on shard %d: %s", shard.index, exc)
            return ShardStatus(shard.index, False, self.clock(), error=str(exc) or type(exc).__name__)
        latency = (time.perf_counter() - started) * 1000
        return ShardStatus(shard.index, True, self.clock(), latency_ms=round(latency, 2))

    async def ping_all(self) -> list[ShardStatus]:
        statuses = await asyncio.gather(*(self._ping(s) for s in self.shards))
        for status in statuses:
            self._last[status.index] = status
        logger.info("Keep-alive: %d/%d shards ok", sum(s.ok for s in statuses), len(statuses))
        return list(statuses)

    @property
    def healthy(self) -> bool:
        return bool(self._last) and all(s.ok for s in self._last.values())

    def snapshot(self) -> dict:
        return {
            "status": "ok" if self.healthy else "degraded",
            "shards": [asdict(self._last[i]) for i in sorted(self._last)],
        }
