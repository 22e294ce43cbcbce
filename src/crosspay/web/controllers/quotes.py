"""Route quote API endpoints."""

from fastapi import APIRouter

from crosspay.web.contracts.quotes import (
    ProvidersResponse,
    RouteQuoteRequest,
    RouteQuoteResponse,
)
from crosspay.web.services.quote_service import RouteService

router = APIRouter(prefix="/routes", tags=["routes"])

# Service instance
_route_service = RouteService()


@router.post("/quote", response_model=RouteQuoteResponse)
async def get_route_quote(request: RouteQuoteRequest) -> RouteQuoteResponse:
    """Get ranked cross-chain routes.

    Queries every enabled provider concurrently and returns the
    recommended, fastest and cheapest routes plus all candidates.
    This is a READ-ONLY operation - no transactions are executed.
    """
    return await _route_service.get_routes(request)


@router.get("/providers", response_model=ProvidersResponse)
async def get_providers() -> ProvidersResponse:
    """List enabled routing providers in tie-break order."""
    return _route_service.get_providers()
