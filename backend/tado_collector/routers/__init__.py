"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .login import router as login_router, set_session

__all__ = [
    "login_router",
    "set_session",
]
