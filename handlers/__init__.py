from .main     import main_routes
from .post     import posts_routes
from .settings import settings_routes
from .middleware import cors_middleware, error_middleware
from .router   import health_key, posts_key, users_key

__all__ = [
    "main_routes", "posts_routes", "settings_routes",
    "cors_middleware", "error_middleware",
    "health_key", "posts_key", "users_key",
]
