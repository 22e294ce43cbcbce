"""Socket (Bungee) multi-bridge aggregator integration.

API docs: https://docs.socket.tech/socket-api/v2

``/quote`` returns up to one route per bridge. Call data is produced by
``/build-tx`` when the route is executed. Socket folds its own fees into
``toAmount``, so routes carry a zero USD fee and only the reported gas.

Step mapping by ``userTxType``: ``fund-movr`` -> bridge, ``dex-swap`` -> swap,
``claim`` -> transfer; anything else falls back by chain span.
"""

import json
import logging
from dataclasses import dataclass
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
    parse_usd,
)

logger = logging.getLogger(__name__)

SOCKET_BASE_URL = "https://api.socket.tech/v2"

USER_TX_TYPES = {
    "fund-movr": StepType.BRIDGE,
    "dex-swap": StepType.SWAP,
    "claim": StepType.TRANSFER,
}


# ======================
# Response schema
# ======================


class SocketAsset(ProviderModel):
    address: str
    symbol: str = ""
    decimals: int = 18


class SocketApprovalData(ProviderModel):
    allowance_target: Optional[str] = Field(default=None, alias="allowanceTarget")
    approval_token_address: Optional[str] = Field(default=None, alias="approvalTokenAddress")
    minimum_approval_amount: Optional[str] = Field(default=None, alias="minimumApprovalAmount")


class SocketUserTx(ProviderModel):
    user_tx_type: str = Field(default="", alias="userTxType")
    tx_type: str = Field(default="", alias="txType")
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    to_chain_id: Optional[int] = Field(default=None, alias="toChainId")
    approval_data: Optional[SocketApprovalData] = Field(default=None, alias="approvalData")
    service_time: Optional[float] = Field(default=None, alias="serviceTime")
    protocol: Optional[dict] = None


class SocketRoute(ProviderModel):
    route_id: str = Field(default="", alias="routeId")
    from_amount: str = Field(alias="fromAmount")
    to_amount: str = Field(alias="toAmount")
    user_txs: list[SocketUserTx] = Field(default_factory=list, alias="userTxs")
    total_gas_fees_in_usd: Optional[float] = Field(default=None, alias="totalGasFeesInUsd")
    service_time: Optional[float] = Field(default=None, alias="serviceTime")
    used_bridge_names: list[str] = Field(default_factory=list, alias="usedBridgeNames")


class SocketQuoteResult(ProviderModel):
    routes: list[dict] = Field(default_factory=list)
    from_chain_id: Optional[int] = Field(default=None, alias="fromChainId")
    to_chain_id: Optional[int] = Field(default=None, alias="toChainId")
    from_asset: Optional[SocketAsset] = Field(default=None, alias="fromAsset")
    to_asset: Optional[SocketAsset] = Field(default=None, alias="toAsset")


class SocketQuoteResponse(ProviderModel):
    success: bool = True
    result: SocketQuoteResult


class SocketBuildTxResult(ProviderModel):
    tx_target: str = Field(default="", alias="txTarget")
    tx_data: str = Field(default="", alias="txData")
    value: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    approval_data: Optional[SocketApprovalData] = Field(default=None, alias="approvalData")


class SocketBuildTxResponse(ProviderModel):
    success: bool = True
    result: SocketBuildTxResult


@dataclass(frozen=True)
class SocketRawData(ProviderRawData):
    """Socket route, kept verbatim because ``/build-tx`` takes it back."""

    route: Optional[SocketRoute] = None

    @property
    def allowance_target(self) -> Optional[str]:
        if self.route is None:
            return None
        for tx in self.route.user_txs:
            if tx.approval_data and tx.approval_data.allowance_target:
                return tx.approval_data.allowance_target
        return None


# ======================
# Normalizer
# ======================


def normalize_socket_route(payload: dict, intent: PaymentIntent) -> UnifiedRoute:
    """Map one ``result.routes`` entry of a ``/quote`` response onto a UnifiedRoute."""
    route = parse_model(SocketRoute, payload, ProviderId.SOCKET)
    from_chain = intent.sender.chain
    to_chain = intent.recipient.chain

    steps = []
    for user_tx in route.user_txs:
        tx_chain = as_int(user_tx.chain_id, from_chain)
        tx_to_chain = as_int(user_tx.to_chain_id, tx_chain)
        step_type = classify_step(user_tx.user_tx_type, tx_chain, tx_to_chain, USER_TX_TYPES)
        protocol_name = (user_tx.protocol or {}).get("displayName") or user_tx.tx_type or "socket"
        steps.append(
            RouteStep(
                type=step_type,
                chain=tx_chain,
                protocol=protocol_name,
                description=f"{user_tx.user_tx_type or step_type.value} via {protocol_name}",
                estimated_time=int(user_tx.service_time) if user_tx.service_time else None,
            )
        )

    return build_route(
        ProviderId.SOCKET,
        "Socket",
        from_chain=from_chain,
        from_token=intent.sender.token.address,
        from_amount=route.from_amount,
        to_chain=to_chain,
        to_token=intent.recipient.token.address,
        to_amount=route.to_amount,
        # Socket quotes carry no separate minimum output
        to_amount_min=route.to_amount,
        steps=steps,
        total_gas_usd=parse_usd(route.total_gas_fees_in_usd),
        total_fee_usd=0.0,
        estimated_time=route.service_time,
        transactions=[],
        raw_data=SocketRawData(payload=payload, route=route),
        tags=route.used_bridge_names,
        protocol="socket",
    )


def parse_socket_status(data: dict) -> SettlementStatus:
    """Map a Socket ``/bridge-status`` body to a SettlementStatus."""
    result = data.get("result") or {}
    source = str(result.get("sourceTxStatus") or "").upper()
    destination = str(result.get("destinationTxStatus") or "").upper()

    if destination == "COMPLETED":
        state = SettlementState.SUCCESS
    elif "FAILED" in (source, destination):
        state = SettlementState.FAILED
    else:
        state = SettlementState.PENDING

    return SettlementStatus(
        state=state,
        detail=f"source={source or '?'} destination={destination or '?'}",
        destination_tx_hash=result.get("destinationTransactionHash"),
        raw=data,
    )


# ======================
# Adapter
# ======================


class SocketProvider(RouteProvider):
    """Socket provider."""

    provider_id = ProviderId.SOCKET
    base_url = SOCKET_BASE_URL

    def __init__(
        self,
        api_key: str = "",
        max_routes: int = 3,
        timeout: float = 30.0,
        transport=None,
    ):
        super().__init__(transport=transport)
        self.api_key = api_key
        self.max_routes = max_routes
        self.timeout = timeout

        if not api_key:
            logger.warning("Socket API key not configured, quotes will be rejected")

    @property
    def name(self) -> str:
        return "Socket"

    def _headers(self) -> dict:
        headers = super()._headers()
        if self.api_key:
            headers["API-KEY"] = self.api_key
        return headers

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        if not self.api_key:
            raise ProviderQuoteError(self.name, "Socket API key is required")

        data = await self._get_json(
            "/quote",
            params={
                "fromChainId": intent.sender.chain,
                "fromTokenAddress": intent.sender.token.address,
                "toChainId": intent.recipient.chain,
                "toTokenAddress": intent.recipient.token.address,
                "fromAmount": intent.base_amount,
                "userAddress": intent.sender.address,
                "recipient": intent.recipient.address or intent.sender.address,
                "uniqueRoutesPerBridge": "true",
                "sort": "output",
                "singleTxOnly": "true",
            },
        )
        response = parse_model(SocketQuoteResponse, data, ProviderId.SOCKET)

        routes = [
            normalize_socket_route(payload, intent)
            for payload in response.result.routes[: self.max_routes]
        ]
        logger.info(f"Socket returned {len(routes)} route(s)")
        return routes

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        raw = route.raw_data
        if isinstance(raw, SocketRawData):
            return raw.allowance_target
        return None

    async def build_transaction(
        self, route: UnifiedRoute, from_address: str, recipient_address: Optional[str] = None
    ) -> Optional[RouteTransaction]:
        raw = route.raw_data
        if not isinstance(raw, SocketRawData):
            raise ProviderQuoteError(self.name, "Route carries no Socket payload")

        data = await self._get_json("/build-tx", params={"route": json.dumps(raw.payload)})
        result = parse_model(SocketBuildTxResponse, data, ProviderId.SOCKET).result
        if not result.tx_target or not result.tx_data:
            return None

        return RouteTransaction(
            chain_id=result.chain_id or route.from_chain,
            to=result.tx_target,
            data=result.tx_data,
            value=parse_quantity(result.value) or "0",
        )

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        try:
            data = await self._get_json(
                "/bridge-status",
                params={
                    "transactionHash": tx_hash,
                    "fromChainId": route.from_chain,
                    "toChainId": route.to_chain,
                },
            )
        except ProviderAPIError as e:
            if e.status_code == 404:
                return SettlementStatus(state=SettlementState.NOT_FOUND, detail=e.message)
            raise

        return parse_socket_status(data)
