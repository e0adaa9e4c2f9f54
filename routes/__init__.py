"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.packing_sessions import router as packing_sessions_router
from routes.holds import router as holds_router

__all__ = [
    "packing_sessions_router",
    "holds_router",
]
