# handlers/router.py
from __future__ import annotations

from aiohttp import web

from database.errors import ValidationError
from database.health import HealthMonitor
from database.utils import PostRepository, UserDirectory

# Clés partagées de l'application
posts_key  = web.AppKey("posts", PostRepository)
users_key  = web.AppKey("users", UserDirectory)
health_key = web.AppKey("health", HealthMonitor)


async def read_json(request: web.Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError et UnicodeDecodeError
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return body


def required_email(value: str | None) -> str:
    email = (value or "").strip()
    if not email:
        raise ValidationError("Email is required")
    return email
