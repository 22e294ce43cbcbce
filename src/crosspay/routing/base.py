"""Canonical routing model and the abstract routing provider interface.

Every provider adapter turns its own quote payload into a ``UnifiedRoute``;
the aggregator and the transaction executor only ever see these types.
"""

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

import httpx

from crosspay.chains import is_native_token

logger = logging.getLogger(__name__)


class ProviderId(str, Enum):
    """Closed set of routing providers, in default declaration order."""

    SQUID = "squid"
    LIFI = "lifi"
    ACROSS = "across"
    SOCKET = "socket"
    ONEINCH = "1inch"


class StepType(str, Enum):
    """Logical operation a route performs."""

    APPROVAL = "approval"
    SWAP = "swap"
    BRIDGE = "bridge"
    TRANSFER = "transfer"


# ======================
# Errors
# ======================


class RoutingError(Exception):
    """Base class for quoting and normalization errors."""

    pass


class ProviderAPIError(RoutingError):
    """A provider HTTP endpoint returned a non-success response."""

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"{provider} API error {status_code}: {message}")


class ProviderQuoteError(RoutingError):
    """One adapter failed to produce a quote."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class NormalizationError(RoutingError):
    """A provider response could not be mapped to the canonical model."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} normalization failed: {message}")


class NoRoutesFoundError(RoutingError):
    """Every adapter failed or none supports the requested pair."""

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None):
        self.errors = errors or {}
        super().__init__(message)


# ======================
# Payment intent
# ======================


@dataclass(frozen=True)
class TokenRef:
    """Token identity plus the decimals needed to rescale amounts."""

    address: str
    chain_id: int
    symbol: str = ""
    decimals: int = 18


@dataclass(frozen=True)
class SenderInfo:
    address: str
    token: TokenRef
    chain: int
    amount: str  # human-readable, e.g. "100.5"
    balance: Optional[str] = None


@dataclass(frozen=True)
class RecipientInfo:
    address: str
    token: TokenRef
    chain: int
    expected_amount: Optional[str] = None


@dataclass(frozen=True)
class IntentMetadata:
    message: Optional[str] = None
    reference: Optional[str] = None
    memo: Optional[str] = None


@dataclass(frozen=True)
class PaymentIntent:
    """The caller's request to move value, possibly across chains."""

    sender: SenderInfo
    recipient: RecipientInfo
    metadata: Optional[IntentMetadata] = None
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None

    @property
    def is_cross_chain(self) -> bool:
        return self.sender.chain != self.recipient.chain

    @property
    def base_amount(self) -> str:
        """Sender amount in the token's smallest unit."""
        return to_base_units(self.sender.amount, self.sender.token.decimals)


def to_base_units(amount: Any, decimals: int) -> str:
    """Rescale a human-readable decimal amount to an integer string.

    Excess fractional precision is truncated, never rounded up.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Unparseable amount: {amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount must be a non-negative number: {amount!r}")
    scaled = value.scaleb(decimals)
    return str(int(scaled))


def from_base_units(amount: str, decimals: int) -> Decimal:
    """Convert an integer smallest-unit string back to a Decimal."""
    return Decimal(int(amount)).scaleb(-decimals)


# ======================
# Unified route
# ======================


@dataclass(frozen=True)
class RouteStep:
    """One logical operation of a route, in execution order."""

    type: StepType
    chain: int
    protocol: str
    description: str
    from_token: Optional[str] = None
    to_token: Optional[str] = None
    estimated_time: Optional[int] = None


@dataclass(frozen=True)
class RouteTransaction:
    """A raw chain call needed to realize a route."""

    chain_id: int
    to: str
    data: str
    value: str = "0"
    gas_limit: Optional[str] = None
    gas_price: Optional[str] = None
    max_fee_per_gas: Optional[str] = None
    max_priority_fee_per_gas: Optional[str] = None

    @property
    def has_calldata(self) -> bool:
        return bool(self.to) and bool(self.data) and self.data not in ("0x", "0X")


@dataclass(frozen=True)
class ProviderRawData:
    """Base for the per-provider payload retained on a route.

    Each adapter subclasses this with its own parsed response model so the
    executor can destructure it without casting.
    """

    payload: dict


_UINT_RE = re.compile(r"[0-9]+")


def _is_uint_string(value: str) -> bool:
    return isinstance(value, str) and _UINT_RE.fullmatch(value) is not None


@dataclass(frozen=True)
class UnifiedRoute:
    """Provider-agnostic quote."""

    id: str
    provider: ProviderId
    provider_name: str
    from_chain: int
    from_token: str
    from_amount: str
    to_chain: int
    to_token: str
    to_amount: str
    to_amount_min: str
    steps: tuple[RouteStep, ...]
    total_gas_usd: float
    total_fee_usd: float
    estimated_time: int
    transactions: tuple[RouteTransaction, ...]
    requires_approval: bool
    raw_data: ProviderRawData
    price_impact: Optional[float] = None
    tags: tuple[str, ...] = ()
    is_recommended: bool = False
    is_fastest: bool = False
    is_cheapest: bool = False

    def __post_init__(self):
        for name in ("from_amount", "to_amount", "to_amount_min"):
            if not _is_uint_string(getattr(self, name)):
                raise ValueError(f"{name} must be a non-negative integer string, got {getattr(self, name)!r}")
        if int(self.to_amount_min) > int(self.to_amount):
            raise ValueError(
                f"to_amount_min {self.to_amount_min} exceeds to_amount {self.to_amount}"
            )
        if not self.steps:
            raise ValueError("Route must have at least one step")
        if self.total_gas_usd < 0 or self.total_fee_usd < 0:
            raise ValueError("USD costs must be non-negative")

    @property
    def total_cost_usd(self) -> float:
        return self.total_gas_usd + self.total_fee_usd

    @property
    def is_cross_chain(self) -> bool:
        return self.from_chain != self.to_chain

    @property
    def is_native_source(self) -> bool:
        return is_native_token(self.from_token)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary (raw payload excluded)."""
        return {
            "id": self.id,
            "provider": self.provider.value,
            "provider_name": self.provider_name,
            "from_chain": self.from_chain,
            "from_token": self.from_token,
            "from_amount": self.from_amount,
            "to_chain": self.to_chain,
            "to_token": self.to_token,
            "to_amount": self.to_amount,
            "to_amount_min": self.to_amount_min,
            "steps": [
                {
                    "type": s.type.value,
                    "chain": s.chain,
                    "protocol": s.protocol,
                    "description": s.description,
                    "estimated_time": s.estimated_time,
                }
                for s in self.steps
            ],
            "total_gas_usd": self.total_gas_usd,
            "total_fee_usd": self.total_fee_usd,
            "estimated_time": self.estimated_time,
            "price_impact": self.price_impact,
            "requires_approval": self.requires_approval,
            "transaction_count": len(self.transactions),
            "tags": list(self.tags),
            "is_recommended": self.is_recommended,
            "is_fastest": self.is_fastest,
            "is_cheapest": self.is_cheapest,
        }


def new_route_id(provider: ProviderId) -> str:
    """Generate a unique route id for a provider."""
    return f"{provider.value}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ComparisonSummary:
    time_difference: int  # fastest - recommended, seconds
    cost_difference: float  # recommended - cheapest, USD
    output_difference: str  # recommended - cheapest, smallest unit


@dataclass(frozen=True)
class RouteComparison:
    """Read-only ranking view over the routes found for one intent."""

    recommended: UnifiedRoute
    fastest: UnifiedRoute
    cheapest: UnifiedRoute
    all_routes: tuple[UnifiedRoute, ...]
    summary: ComparisonSummary


# ======================
# Settlement status
# ======================


class SettlementState(str, Enum):
    """Normalized cross-chain status reported by a provider."""

    PENDING = "pending"
    NOT_FOUND = "not_found"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SettlementState.SUCCESS, SettlementState.FAILED)


@dataclass
class SettlementStatus:
    state: SettlementState
    detail: str = ""
    destination_tx_hash: Optional[str] = None
    raw: Optional[dict] = None


# ======================
# Provider interface
# ======================


class RouteProvider(ABC):
    """Abstract base class for routing providers.

    Adapters speak to one external quoting API. All HTTP goes through
    ``_request`` so tests can inject an ``httpx`` transport.
    """

    provider_id: ProviderId
    base_url: str = ""
    timeout: float = 30.0

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider display name."""
        pass

    @abstractmethod
    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        """Quote an intent and return normalized routes (possibly empty).

        Raises:
            ProviderQuoteError, ProviderAPIError, NormalizationError
        """
        pass

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        """Spender address for the approval, read from the route's raw payload."""
        return None

    async def resolve_spender(self, route: UnifiedRoute) -> str:
        """Resolve the allowance spender for a route."""
        spender = self.get_spender(route)
        if not spender:
            raise ProviderQuoteError(self.name, "Route carries no approval spender address")
        return spender

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        """Materialize call data just in time, for routes quoted without it."""
        return None

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        """Query the provider's cross-chain status endpoint."""
        raise NotImplementedError(f"{self.name} does not report cross-chain status")

    def _headers(self) -> dict:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> httpx.Response:
        """Send one request and raise ProviderAPIError on non-2xx responses."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method, path, params=params, json=json, headers=self._headers()
            )

        if response.status_code >= 400:
            message = response.reason_phrase or "error"
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error") or message
            except ValueError:
                if response.text:
                    message = response.text[:200]
            raise ProviderAPIError(self.name, response.status_code, str(message))

        return response

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        response = await self._request("GET", path, params=params)
        return response.json()

    async def _post_json(self, path: str, json: dict) -> Any:
        response = await self._request("POST", path, json=json)
        return response.json()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider_id.value})"
