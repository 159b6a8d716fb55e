"""FastAPI routers for API endpoints.

Each router module defines endpoints for a specific resource (health, tools).
"""

from mochi_tools.routers import health, tools

__all__ = [
    "health",
    "tools",
]
