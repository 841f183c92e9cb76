# handlers/main.py
from aiohttp import web

from handlers.router import health_key

main_routes = web.RouteTableDef()


@main_routes.get("/")
async def index(request: web.Request) -> web.Response:
    return web.json_response({"message": "Backend is working ✅"})


@main_routes.get("/health")
async def health(request: web.Request) -> web.Response:
    snap = request.app[health_key].snapshot()
    return web.json_response(snap, status=200 if snap["status"] == "ok" else 503)
