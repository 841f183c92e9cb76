# handlers/middleware.py
from __future__ import annotations

import logging

from aiohttp import web

from database.errors import PostsError, StoreError

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Erreurs métier → JSON ; détail dans les logs, jamais au client."""
    try:
        return await handler(request)
    except StoreError as exc:
        logger.error("%s %s failed: %s", request.method, request.path, exc)
        return web.json_response({"message": exc.public_message}, status=exc.status)
    except PostsError as exc:
        return web.json_response({"message": exc.public_message}, status=exc.status)
    except web.HTTPException as exc:
        if exc.status >= 400:
            return web.json_response({"message": exc.reason}, status=exc.status)
        raise
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response({"message": "Server error"}, status=500)


def cors_middleware(origins: list[str]):
    allowed = set(origins)

    @web.middleware
    async def middleware(request: web.Request, handler):
        origin = request.headers.get("Origin")
        if request.method == "OPTIONS" and origin:
            resp = web.Response(status=204)
        else:
            resp = await handler(request)
        if origin and origin in allowed:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Vary"] = "Origin"
            if request.method == "OPTIONS":
                resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
                resp.headers["Access-Control-Allow-Headers"] = request.headers.get(
                    "Access-Control-Request-Headers", "Content-Type")
        for name, value in SECURITY_HEADERS.items():
            resp.headers.setdefault(name, value)
        return resp

    return middleware
