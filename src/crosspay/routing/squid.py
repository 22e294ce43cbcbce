"""Squid Router integration (cross-chain swaps & bridges over Axelar/CCTP).

API docs: https://docs.squidrouter.com/

Squid returns a single route per request. The ``x-request-id`` response
header identifies the quote and is required later by ``/status`` for
cross-chain settlement tracking, so it is kept on the route's raw data.

Action mapping: ``swap``/``wrap``/``unwrap``/``rfq`` -> swap,
``bridge``/``ibc`` -> bridge; anything else falls back by chain span.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from pydantic import Field

from crosspay.routing.base import (
    PaymentIntent,
    ProviderAPIError,
    ProviderId,
    ProviderQuoteError,
    ProviderRawData,
    RouteProvider,
    RouteStep,
    RouteTransaction,
    SettlementState,
    SettlementStatus,
    StepType,
    UnifiedRoute,
)
from crosspay.routing.normalize import (
    ProviderModel,
    as_int,
    build_route,
    classify_step,
    parse_model,
    parse_quantity,
    sum_usd,
)

logger = logging.getLogger(__name__)

SQUID_MAINNET_URL = "https://v2.api.squidrouter.com/v2"
SQUID_TESTNET_URL = "https://testnet.api.squidrouter.com/v1"

ACTION_TYPES = {
    "swap": StepType.SWAP,
    "wrap": StepType.SWAP,
    "unwrap": StepType.SWAP,
    "rfq": StepType.SWAP,
    "bridge": StepType.BRIDGE,
    "ibc": StepType.BRIDGE,
}

SUCCESS_STATUSES = {"success", "partial_success"}
FAILED_STATUSES = {"refund", "refunded", "failed"}


# ======================
# Response schema
# ======================


class SquidCost(ProviderModel):
    amount_usd: Optional[str] = Field(default=None, alias="amountUsd")


class SquidAction(ProviderModel):
    type: str = ""
    from_chain: Optional[str] = Field(default=None, alias="fromChain")
    to_chain: Optional[str] = Field(default=None, alias="toChain")
    provider: Optional[str] = None
    description: Optional[str] = None


class SquidEstimate(ProviderModel):
    from_amount: str = Field(alias="fromAmount")
    to_amount: str = Field(alias="toAmount")
    to_amount_min: Optional[str] = Field(default=None, alias="toAmountMin")
    aggregate_price_impact: Optional[str] = Field(default=None, alias="aggregatePriceImpact")
    estimated_route_duration: Optional[float] = Field(default=None, alias="estimatedRouteDuration")
    actions: list[SquidAction] = Field(default_factory=list)
    fee_costs: list[SquidCost] = Field(default_factory=list, alias="feeCosts")
    gas_costs: list[SquidCost] = Field(default_factory=list, alias="gasCosts")


class SquidTransactionRequest(ProviderModel):
    target: str = ""
    data: str = ""
    value: Optional[str] = "0"
    gas_limit: Optional[str] = Field(default=None, alias="gasLimit")
    gas_price: Optional[str] = Field(default=None, alias="gasPrice")
    max_fee_per_gas: Optional[str] = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[str] = Field(default=None, alias="maxPriorityFeePerGas")


class SquidRoute(ProviderModel):
    estimate: SquidEstimate
    transaction_request: Optional[SquidTransactionRequest] = Field(
        default=None, alias="transactionRequest"
    )


class SquidRouteResponse(ProviderModel):
    route: SquidRoute


@dataclass(frozen=True)
class SquidRawData(ProviderRawData):
    """Squid quote plus the identifiers needed to execute and track it."""

    route: Optional[SquidRoute] = None
    request_id: Optional[str] = None
    params: dict = field(default_factory=dict)


# ======================
# Normalizer
# ======================


def _transactions_from_request(
    tx: Optional[SquidTransactionRequest], chain_id: int
) -> list[RouteTransaction]:
    if tx is None or not tx.target or not tx.data:
        return []
    return [
        RouteTransaction(
            chain_id=chain_id,
            to=tx.target,
            data=tx.data,
            value=parse_quantity(tx.value) or "0",
            gas_limit=parse_quantity(tx.gas_limit),
            gas_price=parse_quantity(tx.gas_price),
            max_fee_per_gas=parse_quantity(tx.max_fee_per_gas),
            max_priority_fee_per_gas=parse_quantity(tx.max_priority_fee_per_gas),
        )
    ]


def normalize_squid_route(
    payload: dict,
    intent: PaymentIntent,
    request_id: Optional[str] = None,
    params: Optional[dict] = None,
) -> UnifiedRoute:
    """Map a Squid ``/route`` response body onto a UnifiedRoute."""
    parsed = parse_model(SquidRouteResponse, payload, ProviderId.SQUID)
    route = parsed.route
    estimate = route.estimate
    from_chain = intent.sender.chain
    to_chain = intent.recipient.chain

    steps = []
    for action in estimate.actions:
        action_from = as_int(action.from_chain, from_chain)
        action_to = as_int(action.to_chain, action_from)
        step_type = classify_step(action.type, action_from, action_to, ACTION_TYPES)
        steps.append(
            RouteStep(
                type=step_type,
                chain=action_from,
                protocol=action.provider or "squid",
                description=action.description or f"{action.type or step_type.value} via Squid",
            )
        )

    transactions = _transactions_from_request(route.transaction_request, from_chain)

    price_impact = None
    if estimate.aggregate_price_impact not in (None, ""):
        try:
            price_impact = float(estimate.aggregate_price_impact)
        except ValueError:
            price_impact = None

    return build_route(
        ProviderId.SQUID,
        "Squid Router",
        from_chain=from_chain,
        from_token=intent.sender.token.address,
        from_amount=estimate.from_amount,
        to_chain=to_chain,
        to_token=intent.recipient.token.address,
        to_amount=estimate.to_amount,
        to_amount_min=estimate.to_amount_min,
        steps=steps,
        total_gas_usd=sum_usd(g.amount_usd for g in estimate.gas_costs),
        total_fee_usd=sum_usd(f.amount_usd for f in estimate.fee_costs),
        estimated_time=estimate.estimated_route_duration,
        transactions=transactions,
        raw_data=SquidRawData(
            payload=payload,
            route=route,
            request_id=request_id,
            params=dict(params or {}),
        ),
        price_impact=price_impact,
        protocol="squid",
    )


# ======================
# Adapter
# ======================


class SquidProvider(RouteProvider):
    """Squid Router provider."""

    provider_id = ProviderId.SQUID

    def __init__(
        self,
        integrator_id: str = "",
        testnet: bool = False,
        slippage: float = 0.01,
        timeout: float = 30.0,
        transport=None,
    ):
        super().__init__(transport=transport)
        self.integrator_id = integrator_id
        self.testnet = testnet
        self.slippage = slippage
        self.timeout = timeout
        self.base_url = SQUID_TESTNET_URL if testnet else SQUID_MAINNET_URL

        if not integrator_id:
            logger.warning("Squid integrator id not configured, quotes will be rejected")

    @property
    def name(self) -> str:
        return "Squid Router"

    def _headers(self) -> dict:
        headers = super()._headers()
        if self.integrator_id:
            headers["x-integrator-id"] = self.integrator_id
        return headers

    def _build_params(self, intent: PaymentIntent) -> dict:
        return {
            "fromAddress": intent.sender.address,
            "fromChain": str(intent.sender.chain),
            "fromToken": intent.sender.token.address,
            "fromAmount": intent.base_amount,
            "toChain": str(intent.recipient.chain),
            "toToken": intent.recipient.token.address,
            "toAddress": intent.recipient.address or intent.sender.address,
            # Squid takes slippage in percent
            "slippage": round(self.slippage * 100, 4),
            "enableBoost": False,
            "quoteOnly": False,
        }

    async def _fetch_route(self, params: dict) -> tuple[dict, Optional[str]]:
        if not self.integrator_id:
            raise ProviderQuoteError(self.name, "Squid integrator id is required")

        response = await self._request("POST", "/route", json=params)
        request_id = response.headers.get("x-request-id")
        return response.json(), request_id

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        params = self._build_params(intent)
        payload, request_id = await self._fetch_route(params)

        if intent.is_cross_chain and not request_id:
            logger.warning("Squid quote returned without x-request-id; status tracking will fail")

        route = normalize_squid_route(payload, intent, request_id=request_id, params=params)
        logger.info(
            f"Squid quote: {route.from_amount} -> {route.to_amount} "
            f"({route.from_chain} -> {route.to_chain}, ~{route.estimated_time}s)"
        )
        return [route]

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        # Squid's router is both the approval spender and the call target
        for tx in route.transactions:
            if tx.to:
                return tx.to
        raw = route.raw_data
        if isinstance(raw, SquidRawData) and raw.route and raw.route.transaction_request:
            return raw.route.transaction_request.target or None
        return None

    async def requote(self, route: UnifiedRoute, from_address: str) -> UnifiedRoute:
        """Request a fresh route with the parameters of an earlier quote."""
        raw = route.raw_data
        if not isinstance(raw, SquidRawData) or not raw.params:
            raise ProviderQuoteError(self.name, "Route has no stored Squid request parameters")

        params = dict(raw.params)
        params["fromAddress"] = from_address
        payload, request_id = await self._fetch_route(params)

        # The fresh quote keeps the original route's token context
        parsed = parse_model(SquidRouteResponse, payload, ProviderId.SQUID)
        transactions = _transactions_from_request(
            parsed.route.transaction_request, route.from_chain
        )

        return replace(
            route,
            transactions=tuple(transactions) or route.transactions,
            raw_data=SquidRawData(
                payload=payload,
                route=parsed.route,
                request_id=request_id,
                params=params,
            ),
        )

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        refreshed = await self.requote(route, from_address)
        return refreshed.transactions[0] if refreshed.transactions else None

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        raw = route.raw_data
        request_id = raw.request_id if isinstance(raw, SquidRawData) else None

        try:
            data = await self._get_json(
                "/status",
                params={
                    "transactionId": tx_hash,
                    "requestId": request_id,
                    "fromChainId": str(route.from_chain),
                    "toChainId": str(route.to_chain),
                },
            )
        except ProviderAPIError as e:
            if e.status_code == 404:
                return SettlementStatus(state=SettlementState.NOT_FOUND, detail=e.message)
            raise

        return parse_squid_status(data)


def parse_squid_status(data: dict) -> SettlementStatus:
    """Map a Squid ``/status`` body to a SettlementStatus."""
    status = str(data.get("squidTransactionStatus") or data.get("status") or "").lower()
    to_chain = data.get("toChain") or {}
    destination_hash = to_chain.get("transactionId") if isinstance(to_chain, dict) else None

    if status in SUCCESS_STATUSES:
        state = SettlementState.SUCCESS
    elif status in FAILED_STATUSES:
        state = SettlementState.FAILED
    elif status == "not_found":
        state = SettlementState.NOT_FOUND
    else:
        state = SettlementState.PENDING

    return SettlementStatus(
        state=state,
        detail=status,
        destination_tx_hash=destination_hash,
        raw=data,
    )
