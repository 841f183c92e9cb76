# create_db.py
import asyncio
import logging
import sys

import config
from database.database import build_shards, dispose_shards, init_shards
from database.errors import StoreError


async def create() -> int:
    """Crée la table posts sur chaque shard configuré (fail-fast)."""
    shards = build_shards(config.POSTS_DB_URLS, ssl=config.DB_SSL)
    try:
        await init_shards(shards, fail_fast=True)
    except StoreError as exc:
        logging.error("Initialization aborted: %s", exc)
        return 1
    finally:
        await dispose_shards(shards)
    print(f"✅ {len(shards)} shard(s) initialisé(s) avec succès.")
    return 0

def run() -> None:
    logging.basicConfig(level=config.LOG_LEVEL)
    sys.exit(asyncio.run(create()))


if __name__ == "__main__":
    run()
