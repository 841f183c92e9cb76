from __future__ import annotations

import bcrypt
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from database.database import build_shards, dispose_shards, init_shards
from database.user import User, UsersBase
from handlers import posts_key
from server import create_app
from tests.helpers import ORIGIN


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def shard_urls(tmp_path):
    def factory(n: int = 3) -> list[str]:
        return [sqlite_url(tmp_path / f"shard{i}.sqlite3") for i in range(n)]
    return factory


@pytest.fixture
def broken_url(tmp_path):
    # dossier inexistant : sqlite ne peut pas ouvrir le fichier
    return sqlite_url(tmp_path / "missing" / "nowhere.sqlite3")


@pytest.fixture
async def shards(shard_urls):
    built = build_shards(shard_urls(3))
    await init_shards(built)
    yield built
    await dispose_shards(built)


@pytest.fixture
def make_client(aiohttp_client, shard_urls):
    async def factory(n: int = 3, mode: str = "hash", urls: list[str] | None = None, **kwargs):
        app = create_app(
            urls or shard_urls(n), mode=mode,
            users_url=kwargs.pop("users_url", ""),
            cors_origins=[ORIGIN], **kwargs,
        )
        return await aiohttp_client(app)
    return factory


@pytest.fixture
async def client(make_client):
    return await make_client()


@pytest.fixture
def repo_of():
    return lambda client: client.server.app[posts_key]


@pytest.fixture
async def users_url(tmp_path):
    url = sqlite_url(tmp_path / "users.sqlite3")
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(UsersBase.metadata.create_all)
    hashed = bcrypt.hashpw(b"s3cret", bcrypt.gensalt(rounds=4)).decode()
    async with engine.begin() as conn:
        await conn.execute(
            User.__table__.insert(),
            [{"email": "a@x.com", "username": "a", "password": hashed}],
        )
    await engine.dispose()
    return url


