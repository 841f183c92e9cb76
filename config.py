import os
import yaml
from dotenv import load_dotenv

load_dotenv()

# Fichier YAML optionnel (les variables d'environnement gagnent)
CONFIG_PATH = os.getenv("CONFIG_PATH", "config.yml")
if os.path.exists(CONFIG_PATH):
    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
else:
    cfg = {}


def _as_bool(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# Shards posts : POSTS_DB_URLS > POSTS_DB_URL > yml > sqlite local
if os.getenv("POSTS_DB_URLS"):
    POSTS_DB_URLS = _split(os.environ["POSTS_DB_URLS"])
elif os.getenv("POSTS_DB_URL"):
    POSTS_DB_URLS = [os.environ["POSTS_DB_URL"]]
else:
    POSTS_DB_URLS = cfg.get("posts_db_urls", ["sqlite+aiosqlite:///posts.sqlite3"])

# Base users externe (lecture seule)
USERS_DB_URL = os.getenv("USERS_DB_URL", cfg.get("users_db_url"))

# Routage
SHARD_MODE  = os.getenv("SHARD_MODE", cfg.get("shard_mode", "hash"))
RING_VNODES = int(os.getenv("RING_VNODES", cfg.get("ring_vnodes", 64)))

# Stores
QUERY_TIMEOUT  = float(os.getenv("QUERY_TIMEOUT", cfg.get("query_timeout", 10)))
INIT_FAIL_FAST = _as_bool(os.getenv("INIT_FAIL_FAST", cfg.get("init_fail_fast", False)))
DB_SSL         = _as_bool(os.getenv("DB_SSL", cfg.get("db_ssl", False)))
KEEPALIVE_CRON = os.getenv("KEEPALIVE_CRON", cfg.get("keepalive_cron", "0 */6 * * *"))

# HTTP
HOST      = os.getenv("HOST", cfg.get("host", "0.0.0.0"))
PORT      = int(os.getenv("PORT", cfg.get("port", 5000)))
LOG_LEVEL = os.getenv("LOG_LEVEL", cfg.get("log_level", "INFO"))
CORS_ORIGINS = (
    _split(os.environ["CORS_ORIGINS"]) if os.getenv("CORS_ORIGINS")
    else cfg.get("cors_origins", ["https://7930navid.github.io", "http://localhost:8080"])
)

SHARD_MODES = ("single", "round_robin", "hash", "ring")
