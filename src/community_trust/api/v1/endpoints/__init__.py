# src/community_trust/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .communities import router as communities_router
from .vouches import router as vouches_router

__all__ = [
    "communities_router",
    "vouches_router",
]
