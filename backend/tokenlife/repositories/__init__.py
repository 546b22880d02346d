"""Repository package exposing persistence-layer access for the models."""

from __future__ import annotations

from tokenlife.repositories.base import BaseRepository
from tokenlife.repositories.refresh_token import RefreshTokenRepository
from tokenlife.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
