from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import bcrypt
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from database.database import Shard
from database.errors import NotFoundOrUnauthorized, StoreError, Unauthorized, ValidationError
from database.post import Post, as_utc, utcnow
from database.sharding import ShardRouter, make_router, run_with_failover
from database.user import User

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionOp = Callable[[AsyncSession], Awaitable[T]]


def _newest_first(posts: list[Post]) -> list[Post]:
    return sorted(posts, key=lambda p: (as_utc(p.created_at), p.id), reverse=True)


# ───────────────────────────────  POSTS  ──────────────────────────────────
class PostRepository:
    """CRUD des posts répartis sur plusieurs shards.

    ``single``            : tout sur le shard 0.
    ``hash`` / ``ring``   : opérations d'un user sur ``route_for(email)``,
                            liste globale en fan-out sur tous les shards.
    ``round_robin``       : écritures et lectures unitaires sur le shard
                            suivant de la rotation avec failover. Un post
                            n'existe que sur le shard où il a atterri, une
                            lecture par email peut donc ne pas le voir (pas
                            de réplication). Liste globale et opérations en
                            masse d'un email : fan-out sur tous les shards.
    """

    def __init__(self, shards: list[Shard], mode: str = "hash", *,
                 timeout: float = 10.0, vnodes: int = 64,
                 router: ShardRouter | None = None):
        if not shards:
            raise ValueError("at least one shard is required")
        if mode == "single" and len(shards) > 1:
            logger.warning("single mode: using shard 0 only, ignoring %d others", len(shards) - 1)
            shards = shards[:1]
        self.shards = shards
        self.mode = mode
        self.timeout = timeout
        self.router = router or make_router(mode, len(shards), vnodes)

    # ─────────── plomberie ───────────
    async def _on(self, index: int, op: SessionOp[T]) -> T:
        shard = self.shards[index]
        try:
            async with shard.session() as ses:
                return await asyncio.wait_for(op(ses), self.timeout)
        except asyncio.TimeoutError as exc:
            raise StoreError(f"query timed out after {self.timeout}s", shard=index) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(str(exc), shard=index) from exc

    async def _keyed(self, email: str, op: SessionOp[T]) -> T:
        if self.mode == "round_robin":
            return await run_with_failover(self.router, lambda i: self._on(i, op))
        return await self._on(self.router.route_for(email), op)

    async def _everywhere(self, op: SessionOp[T]) -> list[T]:
        results = await asyncio.gather(
            *(self._on(i, op) for i in self.router.all_indexes()),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for err in errors:
            logger.error("Fan-out query failed: %s", err)
        if errors:
            # pas de résultats partiels
            raise errors[0]
        return results

    async def _all_of_user(self, email: str, op: SessionOp[T]) -> list[T]:
        # round_robin : les lignes d'un email sont éparpillées sur tous les shards
        if self.mode == "round_robin":
            return await self._everywhere(op)
        return [await self._keyed(email, op)]

    # ─────────── lecture ───────────
    async def list_posts(self) -> list[dict]:
        async def op(ses: AsyncSession) -> list[Post]:
            return list((await ses.scalars(select(Post))).all())

        merged = [p for chunk in await self._everywhere(op) for p in chunk]
        return [p.to_dict() for p in _newest_first(merged)]

    async def list_user_posts(self, email: str) -> list[dict]:
        async def op(ses: AsyncSession) -> list[Post]:
            return list((await ses.scalars(select(Post).where(Post.email == email))).all())

        return [p.to_dict() for p in _newest_first(await self._keyed(email, op))]

    # ─────────── écriture ───────────
    async def create_post(self, username: str, email: str, avatar: str, content: dict) -> dict:
        async def op(ses: AsyncSession) -> dict:
            row = Post(username=username, email=email, avatar=avatar,
                       post=content, created_at=utcnow())
            ses.add(row)
            await ses.commit()
            return row.to_dict()

        return await self._keyed(email, op)

    async def update_post(self, email: str, post_id: str, content: dict) -> dict:
        async def op(ses: AsyncSession) -> dict | None:
            row = await ses.scalar(select(Post).where(Post.id == post_id, Post.email == email))
            if row is None:
                return None
            row.post = content
            await ses.commit()
            return row.to_dict()

        updated = await self._keyed(email, op)
        if updated is None:
            raise NotFoundOrUnauthorized()
        return updated

    async def delete_post(self, email: str, post_id: str) -> None:
        async def op(ses: AsyncSession) -> int:
            res = await ses.execute(delete(Post).where(Post.id == post_id, Post.email == email))
            await ses.commit()
            return res.rowcount

        if await self._keyed(email, op) == 0:
            raise NotFoundOrUnauthorized()

    async def edit_user_posts(self, email: str, username: str, avatar: str) -> list[dict]:
        """Met à jour pseudo + avatar dénormalisés sur tous les posts de l'email."""
        async def op(ses: AsyncSession) -> list[Post]:
            await ses.execute(
                update(Post)
                .where(Post.email == email)
                .values(username=username, avatar=avatar)
                .execution_options(synchronize_session=False)
            )
            await ses.commit()
            return list((await ses.scalars(select(Post).where(Post.email == email))).all())

        rows = [p for chunk in await self._all_of_user(email, op) for p in chunk]
        if not rows:
            raise NotFoundOrUnauthorized("No posts found for this user")
        return [p.to_dict() for p in _newest_first(rows)]

    async def delete_user_posts(self, email: str) -> int:
        async def op(ses: AsyncSession) -> int:
            res = await ses.execute(delete(Post).where(Post.email == email))
            await ses.commit()
            return res.rowcount

        return sum(await self._all_of_user(email, op))


# ───────────────────────────────  USERS  ──────────────────────────────────
class UserDirectory:
    """Lecture seule sur la base users externe ``{email, username, password}``."""

    def __init__(self, url: str | None, *, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self.engine = create_async_engine(url, pool_pre_ping=True) if url else None
        self.session = (
            sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)
            if self.engine else None
        )

    async def get_user(self, email: str) -> User | None:
        if self.session is None:
            raise StoreError("users store is not configured")
        try:
            async with self.session() as ses:
                return await asyncio.wait_for(
                    ses.scalar(select(User).where(User.email == email)), self.timeout,
                )
        except asyncio.TimeoutError as exc:
            raise StoreError(f"users query timed out after {self.timeout}s") from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(str(exc)) from exc

    async def verify_password(self, email: str, password: str) -> None:
        if not email or not password:
            raise ValidationError("Missing data")
        user = await self.get_user(email)
        if user is None:
            raise NotFoundOrUnauthorized("User not found")
        try:
            ok = await asyncio.to_thread(
                bcrypt.checkpw, password.encode("utf-8"), user.password.encode("utf-8"),
            )
        except ValueError as exc:
            raise StoreError(f"invalid password hash for {email}: {exc}") from exc
        if not ok:
            raise Unauthorized("Wrong password")

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def content_from(body: dict[str, Any]) -> dict | None:
    """``post`` (objet) ou ``text`` (chaîne) → contenu structuré, None si vide."""
    raw = body.get("post")
    if raw is None:
        raw = body.get("text")
    if isinstance(raw, dict):
        return raw if raw else None
    if isinstance(raw, str) and raw.strip():
        return {"text": raw}
    return None
