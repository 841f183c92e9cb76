# database/sharding.py
"""Routage des posts vers les shards.

Trois façons de choisir un shard :

* ``ModuloStrategy``   : ``abs(string_hash(email)) % N``. Déterministe, mais
  changer N déplace presque toutes les clés (pas de rééquilibrage).
* ``HashRingStrategy`` : anneau de hachage cohérent avec nœuds virtuels ;
  ajouter un shard ne déplace qu'environ 1/N des clés.
* ``RoundRobinCursor`` : rotation sans affinité de clé, utilisée avec
  ``run_with_failover`` (mode ``round_robin``).
"""
from __future__ import annotations

import bisect
import hashlib
import itertools
import logging
import struct
from typing import Awaitable, Callable, Protocol, TypeVar

from database.errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INT32 = 1 << 32


def string_hash(key: str) -> int:
    """Hash 31-multiplicatif sur les unités UTF-16, entier signé 32 bits."""
    h = 0
    raw = key.encode("utf-16-le")
    for (unit,) in struct.iter_unpack("<H", raw):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 1 << 31:
        h -= _INT32
    return h


def hash_to_index(key: str, n: int) -> int:
    if n < 1:
        raise ValueError("shard count must be >= 1")
    return abs(string_hash(key)) % n


# ───────────────────────────────  STRATÉGIES  ────────────────────────────────
class PartitionStrategy(Protocol):
    size: int

    def index_for(self, key: str) -> int: ...


class ModuloStrategy:
    def __init__(self, size: int):
        if size < 1:
            raise ValueError("shard count must be >= 1")
        self.size = size

    def index_for(self, key: str) -> int:
        return hash_to_index(key, self.size)


class HashRingStrategy:
    def __init__(self, size: int, vnodes: int = 64):
        if size < 1:
            raise ValueError("shard count must be >= 1")
        if vnodes < 1:
            raise ValueError("vnodes must be >= 1")
        self.size = size
        self.vnodes = vnodes
        points: list[tuple[int, int]] = []
        for index in range(size):
            for replica in range(vnodes):
                points.append((self._point(f"shard-{index}#{replica}"), index))
        points.sort()
        self._points = [p for p, _ in points]
        self._owners = [i for _, i in points]

    @staticmethod
    def _point(value: str) -> int:
        return int(hashlib.md5(value.encode("utf-8")).hexdigest()[:16], 16)

    def index_for(self, key: str) -> int:
        pos = bisect.bisect_right(self._points, self._point(key))
        if pos == len(self._points):
            pos = 0
        return self._owners[pos]


class RoundRobinCursor:
    """Curseur de rotation ; avance à chaque appel, succès ou non."""

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("shard count must be >= 1")
        self.size = size
        # next() sur itertools.count ne rend pas la main à la boucle
        self._counter = itertools.count()

    def next(self) -> int:
        return next(self._counter) % self.size


# ───────────────────────────────  ROUTEUR  ───────────────────────────────────
class ShardRouter:
    def __init__(self, size: int, strategy: PartitionStrategy | None = None):
        if size < 1:
            raise ValueError("shard count must be >= 1")
        if strategy is not None and strategy.size != size:
            raise ValueError("strategy size does not match shard count")
        self.size = size
        self.strategy = strategy or ModuloStrategy(size)
        self.cursor = RoundRobinCursor(size)

    def route_for(self, key: str) -> int:
        return self.strategy.index_for(key)

    def next_in_rotation(self) -> int:
        return self.cursor.next()

    def all_indexes(self) -> list[int]:
        return list(range(self.size))


def make_router(mode: str, size: int, vnodes: int = 64) -> ShardRouter:
    if mode == "ring":
        return ShardRouter(size, HashRingStrategy(size, vnodes))
    if mode in ("hash", "round_robin", "single"):
        return ShardRouter(size)
    raise ValueError(f"unknown shard mode: {mode!r}")


# ───────────────────────────────  FAILOVER  ──────────────────────────────────
async def run_with_failover(
    router: ShardRouter,
    op: Callable[[int], Awaitable[T]],
    *,
    retry_on: tuple[type[BaseException], ...] = (StoreError,),
) -> T:
    """Exécute ``op`` sur le shard suivant de la rotation, puis sur les
    suivants en cas d'échec : au plus ``router.size`` tentatives, jamais deux
    fois le même shard. La dernière erreur remonte telle quelle."""
    start = router.next_in_rotation()
    last_exc: BaseException = StoreError("no shard available")
    for attempt in range(router.size):
        index = (start + attempt) % router.size
        try:
            return await op(index)
        except retry_on as exc:
            last_exc = exc
            logger.warning(
                "Query failed on shard %d (attempt %d/%d): %s",
                index, attempt + 1, router.size, exc,
            )
    raise last_exc
