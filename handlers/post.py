# handlers/post.py
from __future__ import annotations

from aiohttp import web

from database.errors import ValidationError
from database.utils import content_from
from handlers.router import posts_key, read_json, required_email

posts_routes = web.RouteTableDef()


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


# ──────────── création ─────────────
@posts_routes.post("/post")
async def create_post(request: web.Request) -> web.Response:
    body = await read_json(request)
    user = body.get("user") or {}
    if not isinstance(user, dict):
        raise ValidationError("Missing user")
    username = _clean(user.get("username"))
    email = _clean(user.get("email"))
    if not username or not email:
        raise ValidationError("Missing user")

    content = content_from(body)
    if content is None:
        raise ValidationError("Please write a post first")

    avatar = body.get("avatar") or ""
    if not isinstance(avatar, str):
        raise ValidationError("Invalid avatar")

    post = await request.app[posts_key].create_post(username, email, avatar, content)
    return web.json_response({"message": "Post Created", "post": post})


# ──────────── lecture ─────────────
@posts_routes.get("/post")
async def list_posts(request: web.Request) -> web.Response:
    return web.json_response(await request.app[posts_key].list_posts())


@posts_routes.get("/posts")
async def list_user_posts(request: web.Request) -> web.Response:
    email = required_email(request.query.get("email"))
    return web.json_response(await request.app[posts_key].list_user_posts(email))


# ──────────── édition / suppression (id + email) ─────────────
@posts_routes.put("/post/{email}/{id}")
async def update_post(request: web.Request) -> web.Response:
    email = required_email(request.match_info["email"])
    content = content_from(await read_json(request))
    if content is None:
        raise ValidationError("Please write a post first")

    post = await request.app[posts_key].update_post(email, request.match_info["id"], content)
    return web.json_response({"message": "Post updated successfully", "post": post})


@posts_routes.delete("/post/{email}/{id}")
async def delete_post(request: web.Request) -> web.Response:
    email = required_email(request.match_info["email"])
    await request.app[posts_key].delete_post(email, request.match_info["id"])
    return web.json_response({"message": "Post deleted successfully"})
