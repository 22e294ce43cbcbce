"""Web services for read-only route quoting."""

from crosspay.web.services.quote_service import RouteService

__all__ = [
    "RouteService",
]
