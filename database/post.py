# database/post.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite rend des datetimes naïfs
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Post(Base):
    """Un post ; ``email`` est la clé de partition et ne change jamais."""

    __tablename__ = "posts"

    id:         Mapped[str]      = mapped_column(String(36), primary_key=True, default=_new_id)
    username:   Mapped[str]      = mapped_column(Text, nullable=False)
    email:      Mapped[str]      = mapped_column(Text, nullable=False, index=True)
    avatar:     Mapped[str]      = mapped_column(Text, nullable=False, default="")
    post:       Mapped[dict]     = mapped_column(JSON, nullable=False)
    # horodaté côté appli : comparable entre shards indépendants
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "avatar": self.avatar,
            "post": self.post,
            "created_at": as_utc(self.created_at).isoformat(),
        }
