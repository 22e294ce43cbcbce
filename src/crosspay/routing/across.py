"""Across Protocol integration (intent-based bridge).

API docs: https://docs.across.to/reference/api-reference

``/swap/approval`` returns a single executable quote including the
``swapTx`` call data and the allowance spender. Approval transactions the
API suggests are kept on the raw data only; the executor performs its own
allowance check against ``checks.allowance.spender``.

Step mapping by ``crossSwapType``: an origin swap for ``ANY_TO_*`` quotes,
always one bridge, and a destination swap when ``steps.destinationSwap`` is
present.
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
    build_route,
    parse_model,
    parse_quantity,
    sum_usd,
)

logger = logging.getLogger(__name__)

ACROSS_MAINNET_URL = "https://app.across.to/api"
ACROSS_TESTNET_URL = "https://testnet.across.to/api"

ORIGIN_SWAP_TYPES = {"ANY_TO_BRIDGEABLE", "ANY_TO_ANY"}


# ======================
# Response schema
# ======================


class AcrossToken(ProviderModel):
    address: str
    chain_id: int = Field(alias="chainId")
    symbol: str = ""
    decimals: int = 18


class AcrossFeeAmount(ProviderModel):
    amount: Optional[str] = None
    amount_usd: Optional[str] = Field(default=None, alias="amountUsd")


class AcrossFees(ProviderModel):
    origin_gas: Optional[AcrossFeeAmount] = Field(default=None, alias="originGas")
    destination_gas: Optional[AcrossFeeAmount] = Field(default=None, alias="destinationGas")
    relayer_total: Optional[AcrossFeeAmount] = Field(default=None, alias="relayerTotal")
    lp_fee: Optional[AcrossFeeAmount] = Field(default=None, alias="lpFee")


class AcrossAllowanceCheck(ProviderModel):
    token: Optional[str] = None
    spender: Optional[str] = None
    actual: Optional[str] = None
    expected: Optional[str] = None


class AcrossChecks(ProviderModel):
    allowance: Optional[AcrossAllowanceCheck] = None


class AcrossSwapProvider(ProviderModel):
    name: str = ""


class AcrossDestinationSwap(ProviderModel):
    swap_provider: Optional[AcrossSwapProvider] = Field(default=None, alias="swapProvider")


class AcrossSteps(ProviderModel):
    destination_swap: Optional[AcrossDestinationSwap] = Field(
        default=None, alias="destinationSwap"
    )


class AcrossSwapTx(ProviderModel):
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    to: str = ""
    data: str = ""
    value: Optional[str] = None
    gas: Optional[str] = None
    max_fee_per_gas: Optional[str] = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[str] = Field(default=None, alias="maxPriorityFeePerGas")


class AcrossApprovalTx(ProviderModel):
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    to: str = ""
    data: str = ""


class AcrossSwapQuote(ProviderModel):
    id: Optional[str] = None
    cross_swap_type: Optional[str] = Field(default=None, alias="crossSwapType")
    checks: Optional[AcrossChecks] = None
    steps: Optional[AcrossSteps] = None
    input_token: AcrossToken = Field(alias="inputToken")
    output_token: AcrossToken = Field(alias="outputToken")
    fees: AcrossFees = Field(default_factory=AcrossFees)
    input_amount: str = Field(alias="inputAmount")
    expected_output_amount: str = Field(alias="expectedOutputAmount")
    min_output_amount: Optional[str] = Field(default=None, alias="minOutputAmount")
    expected_fill_time: Optional[float] = Field(default=None, alias="expectedFillTime")
    swap_tx: Optional[AcrossSwapTx] = Field(default=None, alias="swapTx")
    approval_txns: list[AcrossApprovalTx] = Field(default_factory=list, alias="approvalTxns")


@dataclass(frozen=True)
class AcrossRawData(ProviderRawData):
    """Across quote, its suggested approvals and the query it came from."""

    quote: Optional[AcrossSwapQuote] = None
    params: dict = field(default_factory=dict)

    @property
    def spender(self) -> Optional[str]:
        if self.quote and self.quote.checks and self.quote.checks.allowance:
            return self.quote.checks.allowance.spender
        return None


# ======================
# Normalizer
# ======================


def _fee_usd(fee: Optional[AcrossFeeAmount]) -> Optional[str]:
    return fee.amount_usd if fee is not None else None


def _swap_transaction(quote: AcrossSwapQuote, default_chain: int) -> list[RouteTransaction]:
    tx = quote.swap_tx
    if tx is None or not tx.to or not tx.data:
        return []
    return [
        RouteTransaction(
            chain_id=tx.chain_id or default_chain,
            to=tx.to,
            data=tx.data,
            value=parse_quantity(tx.value) or "0",
            gas_limit=parse_quantity(tx.gas),
            max_fee_per_gas=parse_quantity(tx.max_fee_per_gas),
            max_priority_fee_per_gas=parse_quantity(tx.max_priority_fee_per_gas),
        )
    ]


def normalize_across_route(
    payload: dict,
    intent: Optional[PaymentIntent] = None,
    params: Optional[dict] = None,
) -> UnifiedRoute:
    """Map a ``/swap/approval`` response onto a UnifiedRoute."""
    quote = parse_model(AcrossSwapQuote, payload, ProviderId.ACROSS)
    from_chain = quote.input_token.chain_id
    to_chain = quote.output_token.chain_id
    fill_time = int(quote.expected_fill_time) if quote.expected_fill_time is not None else None

    steps = []
    if quote.cross_swap_type in ORIGIN_SWAP_TYPES:
        steps.append(
            RouteStep(
                type=StepType.SWAP,
                chain=from_chain,
                protocol="Across",
                description=f"Swap {quote.input_token.symbol or 'input token'} to bridgeable token",
            )
        )
    steps.append(
        RouteStep(
            type=StepType.BRIDGE,
            chain=from_chain,
            protocol="Across",
            description=f"Bridge from chain {from_chain} to {to_chain}",
            from_token=quote.input_token.address,
            to_token=quote.output_token.address,
            estimated_time=fill_time,
        )
    )
    destination_swap = quote.steps.destination_swap if quote.steps else None
    if destination_swap is not None:
        provider_name = destination_swap.swap_provider.name if destination_swap.swap_provider else ""
        steps.append(
            RouteStep(
                type=StepType.SWAP,
                chain=to_chain,
                protocol=provider_name or "Across",
                description=f"Swap to {quote.output_token.symbol or 'output token'}",
            )
        )

    return build_route(
        ProviderId.ACROSS,
        "Across Protocol",
        from_chain=from_chain,
        from_token=intent.sender.token.address if intent else quote.input_token.address,
        from_amount=quote.input_amount,
        to_chain=to_chain,
        to_token=intent.recipient.token.address if intent else quote.output_token.address,
        to_amount=quote.expected_output_amount,
        to_amount_min=quote.min_output_amount,
        steps=steps,
        total_gas_usd=sum_usd(
            [_fee_usd(quote.fees.origin_gas), _fee_usd(quote.fees.destination_gas)]
        ),
        total_fee_usd=sum_usd([_fee_usd(quote.fees.relayer_total), _fee_usd(quote.fees.lp_fee)]),
        estimated_time=quote.expected_fill_time,
        transactions=_swap_transaction(quote, from_chain),
        raw_data=AcrossRawData(payload=payload, quote=quote, params=dict(params or {})),
        protocol="across",
    )


def parse_across_status(data: dict) -> SettlementStatus:
    """Map an Across ``/deposit/status`` body to a SettlementStatus."""
    status = str(data.get("status") or "").lower()

    if status == "filled":
        state = SettlementState.SUCCESS
    elif status in ("expired", "refunded"):
        state = SettlementState.FAILED
    else:
        # pending, slowFillRequested
        state = SettlementState.PENDING

    return SettlementStatus(
        state=state,
        detail=status,
        destination_tx_hash=data.get("fillTxnRef"),
        raw=data,
    )


# ======================
# Adapter
# ======================


class AcrossProvider(RouteProvider):
    """Across Protocol provider."""

    provider_id = ProviderId.ACROSS

    def __init__(
        self,
        integrator_id: str = "",
        testnet: bool = False,
        slippage: float = 0.005,
        timeout: float = 30.0,
        transport=None,
    ):
        super().__init__(transport=transport)
        self.integrator_id = integrator_id
        self.testnet = testnet
        self.slippage = slippage
        self.timeout = timeout
        self.base_url = ACROSS_TESTNET_URL if testnet else ACROSS_MAINNET_URL

    @property
    def name(self) -> str:
        return "Across Protocol"

    def _build_params(self, intent: PaymentIntent) -> dict:
        return {
            "tradeType": "exactInput",
            "amount": intent.base_amount,
            "inputToken": intent.sender.token.address,
            "outputToken": intent.recipient.token.address,
            "originChainId": intent.sender.chain,
            "destinationChainId": intent.recipient.chain,
            "depositor": intent.sender.address,
            "recipient": intent.recipient.address or intent.sender.address,
            "integratorId": self.integrator_id or None,
            "refundOnOrigin": "true",
            "slippage": self.slippage,
            "skipOriginTxEstimation": "true",
        }

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        if not intent.is_cross_chain:
            # Across only bridges
            return []

        params = self._build_params(intent)
        payload = await self._get_json("/swap/approval", params=params)
        route = normalize_across_route(payload, intent, params=params)
        logger.info(
            f"Across quote: {route.from_amount} -> {route.to_amount} "
            f"(fill ~{route.estimated_time}s)"
        )
        return [route]

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        raw = route.raw_data
        if isinstance(raw, AcrossRawData):
            return raw.spender
        return None

    async def requote(self, route: UnifiedRoute, from_address: str) -> UnifiedRoute:
        """Fetch fresh ``swapTx`` call data for an earlier quote."""
        raw = route.raw_data
        if not isinstance(raw, AcrossRawData) or not raw.params:
            raise ProviderQuoteError(self.name, "Route has no stored Across query parameters")

        params = dict(raw.params)
        params["depositor"] = from_address
        payload = await self._get_json("/swap/approval", params=params)
        quote = parse_model(AcrossSwapQuote, payload, ProviderId.ACROSS)
        transactions = _swap_transaction(quote, route.from_chain)
        return replace(
            route,
            transactions=tuple(transactions) or route.transactions,
            raw_data=AcrossRawData(payload=payload, quote=quote, params=params),
        )

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        refreshed = await self.requote(route, from_address)
        return refreshed.transactions[0] if refreshed.transactions else None

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        try:
            data = await self._get_json(
                "/deposit/status",
                params={"depositTxnRef": tx_hash, "originChainId": route.from_chain},
            )
        except ProviderAPIError as e:
            # Deposits are not indexed for the first few blocks
            if e.status_code == 404:
                return SettlementStatus(state=SettlementState.NOT_FOUND, detail=e.message)
            raise

        return parse_across_status(data)
