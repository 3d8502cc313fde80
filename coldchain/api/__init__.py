# coldchain/api/__init__.py
"""API routes package."""

from .routes_packages import router as packages_router

__all__ = [
    "packages_router",
]
