# server.py
from __future__ import annotations

import asyncio
import logging

import aiocron
from aiohttp import web

import config
from database.database import build_shards, dispose_shards, init_shards
from database.health import HealthMonitor
from database.utils import PostRepository, UserDirectory
from handlers import (
    cors_middleware, error_middleware,
    main_routes, posts_routes, settings_routes,
    health_key, posts_key, users_key,
)

logger = logging.getLogger(__name__)

keepalive_key = web.AppKey("keepalive", aiocron.Cron)


# ───────────────────────────  Application
def create_app(
    posts_urls: list[str] | None = None,
    *,
    mode: str | None = None,
    users_url: str | None = None,
    timeout: float | None = None,
    keepalive_cron: str | None = None,
    fail_fast: bool | None = None,
    cors_origins: list[str] | None = None,
    vnodes: int | None = None,
) -> web.Application:
    """Construit l'app ; les arguments absents viennent de ``config``."""
    mode = mode or config.SHARD_MODE
    if mode not in config.SHARD_MODES:
        raise ValueError(f"SHARD_MODE must be one of {config.SHARD_MODES}, got {mode!r}")
    timeout = config.QUERY_TIMEOUT if timeout is None else timeout
    fail_fast = config.INIT_FAIL_FAST if fail_fast is None else fail_fast
    cron_spec = keepalive_cron or config.KEEPALIVE_CRON

    urls = posts_urls or config.POSTS_DB_URLS
    if mode == "single":
        urls = urls[:1]
    shards = build_shards(urls, ssl=config.DB_SSL)
    posts = PostRepository(
        shards, mode, timeout=timeout,
        vnodes=config.RING_VNODES if vnodes is None else vnodes,
    )
    users = UserDirectory(users_url if users_url is not None else config.USERS_DB_URL,
                          timeout=timeout)
    health = HealthMonitor(posts.shards, timeout=timeout)

    app = web.Application(middlewares=[
        cors_middleware(config.CORS_ORIGINS if cors_origins is None else cors_origins),
        error_middleware,
    ])
    app[posts_key] = posts
    app[users_key] = users
    app[health_key] = health
    app.add_routes(main_routes)
    app.add_routes(posts_routes)
    app.add_routes(settings_routes)

    # ─── démarrage : tables puis cron keep-alive
    async def on_startup(app: web.Application) -> None:
        await init_shards(posts.shards, fail_fast=fail_fast)
        await health.ping_all()
        app[keepalive_key] = aiocron.crontab(cron_spec, func=health.ping_all, start=False)
        app[keepalive_key].start()
        logger.info("✅ %d shard(s) in %s mode, keep-alive '%s'", len(posts.shards), mode, cron_spec)

    async def on_cleanup(app: web.Application) -> None:
        if keepalive_key in app:
            app[keepalive_key].stop()
        await users.dispose()
        await dispose_shards(posts.shards)

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


# ───────────────────────────  Main
async def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL)
    app = create_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.HOST, config.PORT)
    await site.start()
    logger.info("✅ Server running on port %s", config.PORT)
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
