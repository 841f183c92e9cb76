# database/user.py
from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UsersBase(DeclarativeBase):
    """Metadata séparée : la base users est externe, jamais créée ici."""


class User(UsersBase):
    __tablename__ = "users"

    email:    Mapped[str] = mapped_column(Text, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)   # hash bcrypt
