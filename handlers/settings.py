# handlers/settings.py
"""Profil : pseudo/avatar dénormalisés sur les posts, suppression des posts
d'un compte, vérification du mot de passe avant une action sensible."""

from aiohttp import web

from database.errors import ValidationError
from handlers.router import posts_key, read_json, required_email, users_key

settings_routes = web.RouteTableDef()


# ─────────────────────────────── pseudo + avatar ───────────────────────────────
@settings_routes.put("/edituserposts/{email}")
async def edit_user_posts(request: web.Request) -> web.Response:
    email = required_email(request.match_info["email"])
    body = await read_json(request)
    username = body.get("username")
    username = username.strip() if isinstance(username, str) else ""
    avatar = body.get("avatar")
    if not username or not isinstance(avatar, str) or not avatar.strip():
        raise ValidationError("Username and avatar are required")

    updated = await request.app[posts_key].edit_user_posts(email, username, avatar)
    return web.json_response({
        "message": f"Updated {len(updated)} posts",
        "updatedPosts": updated,
    })


# ─────────────────────────────── suppression compte ───────────────────────────────
@settings_routes.delete("/deleteuserposts/{email}")
async def delete_user_posts(request: web.Request) -> web.Response:
    email = required_email(request.match_info["email"])
    count = await request.app[posts_key].delete_user_posts(email)
    return web.json_response({
        "message": f"All posts of {email} have been deleted",
        "deletedCount": count,
    })


# ─────────────────────────────── mot de passe ───────────────────────────────
@settings_routes.post("/verify-password")
async def verify_password(request: web.Request) -> web.Response:
    body = await read_json(request)
    email = body.get("email")
    password = body.get("password")
    if not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError("Missing data")
    await request.app[users_key].verify_password(email.strip(), password)
    return web.json_response({"message": "Password verified"})
