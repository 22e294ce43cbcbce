"""1inch DEX aggregator integration.

Same-chain swaps only, via the 1inch Swap API v6.
API docs: https://portal.1inch.dev/documentation/apis/swap/introduction
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pydantic import Field

from crosspay.routing.base import (
    PaymentIntent,
    ProviderId,
    ProviderQuoteError,
    ProviderRawData,
    RouteProvider,
    RouteStep,
    RouteTransaction,
    StepType,
    UnifiedRoute,
)
from crosspay.routing.normalize import (
    ProviderModel,
    build_route,
    parse_model,
    parse_quantity,
)

logger = logging.getLogger(__name__)

# 1inch API endpoints
ONEINCH_API_V6 = "https://api.1inch.dev/swap/v6.0"

# Chains the swap API serves
SUPPORTED_CHAIN_IDS = {1, 10, 56, 100, 137, 250, 8453, 42161, 43114}

# ~2 blocks on Ethereum
ESTIMATED_SWAP_SECONDS = 30


class OneInchQuote(ProviderModel):
    dst_amount: str = Field(alias="dstAmount")
    gas: Optional[str] = None
    protocols: Optional[list] = None


class OneInchTx(ProviderModel):
    to: str = ""
    data: str = ""
    value: Optional[str] = None
    gas: Optional[str] = None
    gas_price: Optional[str] = Field(default=None, alias="gasPrice")


class OneInchSwap(ProviderModel):
    dst_amount: Optional[str] = Field(default=None, alias="dstAmount")
    tx: OneInchTx


@dataclass(frozen=True)
class OneInchRawData(ProviderRawData):
    """1inch quote and the slippage it was requested with."""

    quote: Optional[OneInchQuote] = None
    slippage: float = 0.005


def normalize_oneinch_route(
    payload: dict, intent: PaymentIntent, slippage: float = 0.005
) -> UnifiedRoute:
    """Map a ``/quote`` response onto a UnifiedRoute."""
    quote = parse_model(OneInchQuote, payload, ProviderId.ONEINCH)
    chain = intent.sender.chain

    try:
        to_amount = int(quote.dst_amount)
    except ValueError:
        # let build_route report the malformed amount
        to_amount_min = quote.dst_amount
    else:
        to_amount_min = str(int(Decimal(to_amount) * (1 - Decimal(str(slippage)))))

    symbol_in = intent.sender.token.symbol or "token"
    symbol_out = intent.recipient.token.symbol or "token"

    return build_route(
        ProviderId.ONEINCH,
        "1inch Swap",
        from_chain=chain,
        from_token=intent.sender.token.address,
        from_amount=intent.base_amount,
        to_chain=chain,
        to_token=intent.recipient.token.address,
        to_amount=quote.dst_amount,
        to_amount_min=to_amount_min,
        steps=[
            RouteStep(
                type=StepType.SWAP,
                chain=chain,
                protocol="1inch",
                description=f"Swap {symbol_in} to {symbol_out}",
                from_token=intent.sender.token.address,
                to_token=intent.recipient.token.address,
                estimated_time=ESTIMATED_SWAP_SECONDS,
            )
        ],
        # 1inch quotes gas units, not USD
        total_gas_usd=0.0,
        total_fee_usd=0.0,
        estimated_time=ESTIMATED_SWAP_SECONDS,
        transactions=[],
        raw_data=OneInchRawData(payload=payload, quote=quote, slippage=slippage),
        protocol="1inch",
    )


class OneInchProvider(RouteProvider):
    """1inch DEX aggregator provider.

    Supports swaps on Ethereum and other EVM chains using 1inch's
    aggregation protocol. Cross-chain intents yield no routes.
    """

    provider_id = ProviderId.ONEINCH
    base_url = ONEINCH_API_V6

    def __init__(
        self,
        api_key: Optional[str] = None,
        slippage: float = 0.005,
        timeout: float = 30.0,
        transport=None,
    ):
        """Initialize 1inch provider.

        Args:
            api_key: 1inch API key (required for production)
            slippage: Max slippage as a fraction (0.005 = 0.5%)
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(transport=transport)
        self.api_key = api_key
        self.slippage = slippage
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "1inch"

    def _headers(self) -> dict:
        """Get API headers with authorization."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        """Get a swap quote from 1inch.

        Returns:
            A single route, or an empty list for cross-chain or
            unsupported-chain intents.
        """
        chain_id = intent.sender.chain
        if intent.is_cross_chain or chain_id not in SUPPORTED_CHAIN_IDS:
            logger.debug(f"1inch skipped: chain {chain_id} -> {intent.recipient.chain}")
            return []

        data = await self._get_json(
            f"/{chain_id}/quote",
            params={
                "src": intent.sender.token.address,
                "dst": intent.recipient.token.address,
                "amount": intent.base_amount,
                "includeGas": "true",
            },
        )
        return [normalize_oneinch_route(data, intent, slippage=self.slippage)]

    async def resolve_spender(self, route: UnifiedRoute) -> str:
        """The 1inch router address, from the approve/spender endpoint."""
        data = await self._get_json(f"/{route.from_chain}/approve/spender")
        spender = data.get("address") if isinstance(data, dict) else None
        if not spender:
            raise ProviderQuoteError(self.name, "approve/spender returned no address")
        return spender

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        """Build swap call data for the wallet to sign."""
        raw = route.raw_data
        slippage = raw.slippage if isinstance(raw, OneInchRawData) else self.slippage

        data = await self._get_json(
            f"/{route.from_chain}/swap",
            params={
                "src": route.from_token,
                "dst": route.to_token,
                "amount": route.from_amount,
                "from": from_address,
                "origin": from_address,
                "receiver": recipient_address,
                # 1inch takes slippage in percent
                "slippage": str(round(slippage * 100, 4)),
                "disableEstimate": "true",
            },
        )
        swap = parse_model(OneInchSwap, data, ProviderId.ONEINCH)
        if not swap.tx.to or not swap.tx.data:
            return None

        return RouteTransaction(
            chain_id=route.from_chain,
            to=swap.tx.to,
            data=swap.tx.data,
            value=parse_quantity(swap.tx.value) or "0",
            gas_limit=parse_quantity(swap.tx.gas),
            gas_price=parse_quantity(swap.tx.gas_price),
        )
