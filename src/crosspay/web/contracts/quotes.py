"""Route quote request and response contracts."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class RouteQuoteRequest(BaseModel):
    """Request for cross-chain routes."""

    from_chain: int = Field(..., description="Source chain id (e.g., 8453 for Base)")
    from_token: str = Field(..., description="Source token address (native sentinel for gas token)")
    from_decimals: Optional[int] = Field(
        None, ge=0, le=36, description="Source token decimals (looked up when omitted)"
    )
    to_chain: int = Field(..., description="Destination chain id")
    to_token: str = Field(..., description="Destination token address")
    to_decimals: Optional[int] = Field(None, ge=0, le=36, description="Destination token decimals")
    amount: Decimal = Field(..., gt=0, description="Amount to send, human-readable")
    sender_address: str = Field(..., description="Sending wallet address")
    recipient_address: Optional[str] = Field(
        None, description="Receiving address (defaults to sender)"
    )


class RouteStepResponse(BaseModel):
    type: str
    chain: int
    protocol: str
    description: str
    estimated_time: Optional[int] = None


class RouteResponse(BaseModel):
    """One normalized route."""

    id: str
    provider: str
    provider_name: str
    from_chain: int
    from_token: str
    from_amount: str = Field(..., description="Smallest-unit integer string")
    to_chain: int
    to_token: str
    to_amount: str = Field(..., description="Smallest-unit integer string")
    to_amount_min: str
    steps: list[RouteStepResponse] = Field(default_factory=list)
    total_gas_usd: float
    total_fee_usd: float
    estimated_time: int = Field(..., description="Seconds")
    price_impact: Optional[float] = None
    requires_approval: bool
    transaction_count: int = 0
    tags: list[str] = Field(default_factory=list)
    is_recommended: bool = False
    is_fastest: bool = False
    is_cheapest: bool = False


class ComparisonSummaryResponse(BaseModel):
    time_difference: int = Field(..., description="Fastest minus recommended, seconds")
    cost_difference: float = Field(..., description="Recommended minus cheapest, USD")
    output_difference: str = Field(..., description="Recommended minus cheapest, smallest unit")


class RouteQuoteResponse(BaseModel):
    """Ranked routes for one payment."""

    success: bool = Field(..., description="Whether any route was found")
    recommended: Optional[RouteResponse] = None
    fastest: Optional[RouteResponse] = None
    cheapest: Optional[RouteResponse] = None
    routes: list[RouteResponse] = Field(default_factory=list)
    summary: Optional[ComparisonSummaryResponse] = None
    errors: dict[str, str] = Field(
        default_factory=dict, description="Per-provider failure messages"
    )
    error: Optional[str] = Field(None, description="Error message if failed")


class ProviderInfo(BaseModel):
    id: str
    name: str


class ProvidersResponse(BaseModel):
    success: bool = True
    providers: list[ProviderInfo] = Field(default_factory=list)
