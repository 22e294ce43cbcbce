"""HTTP controllers for web API endpoints.

All operations are read-only; no transaction is signed or broadcast here.
"""

from crosspay.web.controllers.quotes import router as quotes_router

__all__ = [
    "quotes_router",
]
