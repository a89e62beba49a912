"""SQL repositories, one per resource family."""

from __future__ import annotations

from .assets import AssetRepository
from .base import SqlRepository
from .demos import DemoRepository
from .forum import ForumRepository
from .users import RoleRepository, UserRepository

__all__ = [
    "AssetRepository",
    "DemoRepository",
    "ForumRepository",
    "RoleRepository",
    "SqlRepository",
    "UserRepository",
]
