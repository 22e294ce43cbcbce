"""LI.FI bridge/DEX aggregator integration.

API docs: https://docs.li.fi/li.fi-api/li.fi-api

Routes come from ``/advanced/routes`` without call data; the transaction
for the first step is built just in time via ``/advanced/stepTransaction``.
The API key is optional and only raises rate limits.

Step mapping: ``swap``/``protocol`` -> swap, ``cross`` -> bridge; composite
``lifi`` steps are classified by the chains their action spans.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

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
    parse_usd,
    sum_usd,
)

logger = logging.getLogger(__name__)

LIFI_BASE_URL = "https://li.quest/v1"

STEP_TYPES = {
    "swap": StepType.SWAP,
    "protocol": StepType.SWAP,
    "cross": StepType.BRIDGE,
}


# ======================
# Response schema
# ======================


class LiFiToken(ProviderModel):
    address: str
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    symbol: str = ""
    decimals: int = 18


class LiFiGasCost(ProviderModel):
    amount_usd: Optional[str] = Field(default=None, alias="amountUSD")


class LiFiFeeCost(ProviderModel):
    name: str = ""
    amount_usd: Optional[str] = Field(default=None, alias="amountUSD")
    included: Optional[bool] = None


class LiFiEstimate(ProviderModel):
    approval_address: Optional[str] = Field(default=None, alias="approvalAddress")
    execution_duration: Optional[float] = Field(default=None, alias="executionDuration")
    gas_costs: list[LiFiGasCost] = Field(default_factory=list, alias="gasCosts")
    fee_costs: list[LiFiFeeCost] = Field(default_factory=list, alias="feeCosts")


class LiFiAction(ProviderModel):
    from_chain_id: Optional[int] = Field(default=None, alias="fromChainId")
    to_chain_id: Optional[int] = Field(default=None, alias="toChainId")


class LiFiToolDetails(ProviderModel):
    name: str = ""


class LiFiIncludedStep(ProviderModel):
    type: str = ""
    tool: str = ""
    action: Optional[LiFiAction] = None
    estimate: Optional[LiFiEstimate] = None
    tool_details: Optional[LiFiToolDetails] = Field(default=None, alias="toolDetails")


class LiFiStep(ProviderModel):
    id: Optional[str] = None
    type: str = ""
    tool: str = ""
    action: Optional[LiFiAction] = None
    estimate: LiFiEstimate = Field(default_factory=LiFiEstimate)
    tool_details: Optional[LiFiToolDetails] = Field(default=None, alias="toolDetails")
    included_steps: list[LiFiIncludedStep] = Field(default_factory=list, alias="includedSteps")


class LiFiRoute(ProviderModel):
    id: str = ""
    from_chain_id: int = Field(alias="fromChainId")
    from_amount: str = Field(alias="fromAmount")
    from_amount_usd: Optional[str] = Field(default=None, alias="fromAmountUSD")
    from_token: LiFiToken = Field(alias="fromToken")
    to_chain_id: int = Field(alias="toChainId")
    to_amount: str = Field(alias="toAmount")
    to_amount_min: Optional[str] = Field(default=None, alias="toAmountMin")
    to_amount_usd: Optional[str] = Field(default=None, alias="toAmountUSD")
    to_token: LiFiToken = Field(alias="toToken")
    gas_cost_usd: Optional[str] = Field(default=None, alias="gasCostUSD")
    steps: list[LiFiStep]
    tags: list[str] = Field(default_factory=list)


class LiFiRoutesResponse(ProviderModel):
    routes: list[LiFiRoute] = Field(default_factory=list)


class LiFiTransactionRequest(ProviderModel):
    to: str = ""
    data: str = ""
    value: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    gas_limit: Optional[str] = Field(default=None, alias="gasLimit")
    gas_price: Optional[str] = Field(default=None, alias="gasPrice")
    max_fee_per_gas: Optional[str] = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[str] = Field(default=None, alias="maxPriorityFeePerGas")


class LiFiStepTransaction(ProviderModel):
    transaction_request: Optional[LiFiTransactionRequest] = Field(
        default=None, alias="transactionRequest"
    )


@dataclass(frozen=True)
class LiFiRawData(ProviderRawData):
    """LI.FI route plus the bridge tool that ``/status`` is keyed by."""

    route: Optional[LiFiRoute] = None
    tool: str = ""

    @property
    def first_step(self) -> Optional[dict]:
        steps = self.payload.get("steps") or []
        return steps[0] if steps else None


# ======================
# Normalizer
# ======================


def _route_steps(route: LiFiRoute) -> list[RouteStep]:
    steps = []
    for step in route.steps:
        parts: list[Any] = step.included_steps or [step]
        for part in parts:
            action = part.action or step.action or LiFiAction()
            from_chain = action.from_chain_id or route.from_chain_id
            to_chain = action.to_chain_id or from_chain
            step_type = classify_step(part.type, from_chain, to_chain, STEP_TYPES)
            label = part.tool_details.name if part.tool_details and part.tool_details.name else part.tool
            duration = part.estimate.execution_duration if part.estimate else None
            steps.append(
                RouteStep(
                    type=step_type,
                    chain=from_chain,
                    protocol=part.tool or "lifi",
                    description=f"{step_type.value.capitalize()} via {label or 'LI.FI'}",
                    estimated_time=int(duration) if duration is not None else None,
                )
            )
    return steps


def normalize_lifi_route(payload: dict, intent: Optional[PaymentIntent] = None) -> UnifiedRoute:
    """Map one entry of an ``/advanced/routes`` response onto a UnifiedRoute."""
    route = parse_model(LiFiRoute, payload, ProviderId.LIFI)

    gas_usd = sum_usd(g.amount_usd for s in route.steps for g in s.estimate.gas_costs)
    if gas_usd == 0.0:
        gas_usd = parse_usd(route.gas_cost_usd)
    fee_usd = max(0.0, parse_usd(route.from_amount_usd) - parse_usd(route.to_amount_usd))
    duration = sum(as_int(s.estimate.execution_duration, 0) for s in route.steps)

    return build_route(
        ProviderId.LIFI,
        "LI.FI",
        from_chain=route.from_chain_id,
        from_token=route.from_token.address,
        from_amount=route.from_amount,
        to_chain=route.to_chain_id,
        to_token=route.to_token.address,
        to_amount=route.to_amount,
        to_amount_min=route.to_amount_min,
        steps=_route_steps(route),
        total_gas_usd=gas_usd,
        total_fee_usd=fee_usd,
        estimated_time=duration,
        transactions=[],
        raw_data=LiFiRawData(
            payload=payload,
            route=route,
            tool=route.steps[0].tool if route.steps else "",
        ),
        tags=route.tags,
        protocol="lifi",
    )


def parse_lifi_status(data: dict) -> SettlementStatus:
    """Map a LI.FI ``/status`` body to a SettlementStatus."""
    status = str(data.get("status") or "").upper()
    substatus = str(data.get("substatus") or "").upper()
    receiving = data.get("receiving") or {}
    destination_hash = receiving.get("txHash") if isinstance(receiving, dict) else None

    if status == "DONE":
        state = SettlementState.FAILED if substatus == "REFUNDED" else SettlementState.SUCCESS
    elif status in ("FAILED", "INVALID"):
        state = SettlementState.FAILED
    elif status == "NOT_FOUND":
        state = SettlementState.NOT_FOUND
    else:
        state = SettlementState.PENDING

    detail = f"{status}/{substatus}" if substatus else status
    return SettlementStatus(
        state=state,
        detail=detail,
        destination_tx_hash=destination_hash,
        raw=data,
    )


# ======================
# Adapter
# ======================


class LiFiProvider(RouteProvider):
    """LI.FI provider."""

    provider_id = ProviderId.LIFI
    base_url = LIFI_BASE_URL

    def __init__(
        self,
        api_key: str = "",
        integrator: str = "crosspay",
        slippage: float = 0.005,
        max_routes: int = 3,
        timeout: float = 30.0,
        transport=None,
    ):
        super().__init__(transport=transport)
        self.api_key = api_key
        self.integrator = integrator
        self.slippage = slippage
        self.max_routes = max_routes
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "LI.FI"

    def _headers(self) -> dict:
        headers = super()._headers()
        if self.api_key:
            headers["x-lifi-api-key"] = self.api_key
        return headers

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        body = {
            "fromChainId": intent.sender.chain,
            "toChainId": intent.recipient.chain,
            "fromTokenAddress": intent.sender.token.address,
            "toTokenAddress": intent.recipient.token.address,
            "fromAmount": intent.base_amount,
            "fromAddress": intent.sender.address,
            "toAddress": intent.recipient.address or intent.sender.address,
            "options": {
                "slippage": self.slippage,
                "integrator": self.integrator,
                "order": "CHEAPEST",
                "maxPriceImpact": 0.1,
                "allowSwitchChain": False,
            },
        }

        data = await self._post_json("/advanced/routes", json=body)
        if not isinstance(data, dict):
            raise ProviderQuoteError(self.name, "Unexpected /advanced/routes response")

        routes = []
        for payload in data.get("routes") or []:
            if len(payload.get("steps") or []) != 1:
                # Multi-transaction routes need per-step signing
                logger.debug(f"Skipping LI.FI route {payload.get('id')} with multiple steps")
                continue
            routes.append(normalize_lifi_route(payload, intent))
            if len(routes) >= self.max_routes:
                break

        logger.info(f"LI.FI returned {len(routes)} route(s)")
        return routes

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        raw = route.raw_data
        if not isinstance(raw, LiFiRawData) or raw.route is None or not raw.route.steps:
            return None
        return raw.route.steps[0].estimate.approval_address

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        raw = route.raw_data
        step = raw.first_step if isinstance(raw, LiFiRawData) else None
        if step is None:
            raise ProviderQuoteError(self.name, "Route has no step to build a transaction for")

        data = await self._post_json("/advanced/stepTransaction", json=step)
        parsed = parse_model(LiFiStepTransaction, data, ProviderId.LIFI)
        tx = parsed.transaction_request
        if tx is None or not tx.to or not tx.data:
            return None

        return RouteTransaction(
            chain_id=tx.chain_id or route.from_chain,
            to=tx.to,
            data=tx.data,
            value=parse_quantity(tx.value) or "0",
            gas_limit=parse_quantity(tx.gas_limit),
            gas_price=parse_quantity(tx.gas_price),
            max_fee_per_gas=parse_quantity(tx.max_fee_per_gas),
            max_priority_fee_per_gas=parse_quantity(tx.max_priority_fee_per_gas),
        )

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        raw = route.raw_data
        tool = raw.tool if isinstance(raw, LiFiRawData) else None

        try:
            data = await self._get_json(
                "/status",
                params={
                    "txHash": tx_hash,
                    "bridge": tool or None,
                    "fromChain": route.from_chain,
                    "toChain": route.to_chain,
                },
            )
        except ProviderAPIError as e:
            if e.status_code == 404:
                return SettlementStatus(state=SettlementState.NOT_FOUND, detail=e.message)
            raise

        return parse_lifi_status(data)
