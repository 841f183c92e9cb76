# database/errors.py
from __future__ import annotations


class PostsError(Exception):
    """Base de toutes les erreurs métier du service."""

    status = 500
    public_message = "Server error"


class ValidationError(PostsError):
    status = 400

    def __init__(self, message: str = "Missing data"):
        super().__init__(message)
        self.public_message = message


class NotFoundOrUnauthorized(PostsError):
    # 0 ligne touchée : inexistant OU mauvais propriétaire, on ne distingue pas
    status = 404

    def __init__(self, message: str = "Post not found or unauthorized"):
        super().__init__(message)
        self.public_message = message


class Unauthorized(PostsError):
    status = 401

    def __init__(self, message: str = "Wrong password"):
        super().__init__(message)
        self.public_message = message


class StoreError(PostsError):
    """Échec d'une requête sur un shard (driver, réseau, timeout).

    Le détail reste dans les logs, le client ne voit que ``public_message``.
    """

    status = 500

    def __init__(self, detail: str, shard: int | None = None, public_message: str = "Server error"):
        super().__init__(detail)
        self.detail = detail
        self.shard = shard
        self.public_message = public_message

    def __str__(self) -> str:
        where = f"shard {self.shard}" if self.shard is not None else "store"
        return f"{where}: {self.detail}"
