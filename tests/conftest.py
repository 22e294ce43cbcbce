"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Any, Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["SQUID_INTEGRATOR_ID"] = "test-integrator"
os.environ["SOCKET_API_KEY"] = "test-socket-key"

from crosspay.chains import NATIVE_TOKEN_ADDRESS
from crosspay.execution.base import ChainClient
from crosspay.routing.base import (
    PaymentIntent,
    ProviderId,
    ProviderRawData,
    RecipientInfo,
    RouteProvider,
    RouteStep,
    RouteTransaction,
    SenderInfo,
    SettlementState,
    SettlementStatus,
    StepType,
    TokenRef,
    UnifiedRoute,
)

BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
ETH_USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
BASE_WETH = "0x4200000000000000000000000000000000000006"
SENDER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"
ROUTER = "0x3333333333333333333333333333333333333333"


def make_intent(
    amount: str = "100",
    from_chain: int = 8453,
    from_token: str = BASE_USDC,
    from_decimals: int = 6,
    to_chain: int = 1,
    to_token: str = ETH_USDC,
    to_decimals: int = 6,
) -> PaymentIntent:
    """100 USDC on Base -> USDC on Ethereum, unless overridden."""
    return PaymentIntent(
        sender=SenderInfo(
            address=SENDER,
            token=TokenRef(address=from_token, chain_id=from_chain, symbol="USDC", decimals=from_decimals),
            chain=from_chain,
            amount=amount,
        ),
        recipient=RecipientInfo(
            address=RECIPIENT,
            token=TokenRef(address=to_token, chain_id=to_chain, symbol="USDC", decimals=to_decimals),
            chain=to_chain,
        ),
    )


def make_route(
    provider: ProviderId = ProviderId.SQUID,
    to_amount: str = "99500000",
    estimated_time: int = 60,
    gas_usd: float = 0.5,
    fee_usd: float = 0.5,
    from_chain: int = 8453,
    to_chain: int = 1,
    from_token: str = BASE_USDC,
    requires_approval: Optional[bool] = None,
    transactions: tuple = (),
    raw_data: Optional[ProviderRawData] = None,
    route_id: Optional[str] = None,
) -> UnifiedRoute:
    """Build a canonical route directly, without any provider payload."""
    if requires_approval is None:
        requires_approval = from_token.lower() != NATIVE_TOKEN_ADDRESS
    return UnifiedRoute(
        id=route_id or f"{provider.value}-test",
        provider=provider,
        provider_name=provider.value,
        from_chain=from_chain,
        from_token=from_token,
        from_amount="100000000",
        to_chain=to_chain,
        to_token=ETH_USDC,
        to_amount=to_amount,
        to_amount_min=to_amount,
        steps=(RouteStep(type=StepType.BRIDGE, chain=from_chain, protocol="test", description="Bridge"),),
        total_gas_usd=gas_usd,
        total_fee_usd=fee_usd,
        estimated_time=estimated_time,
        transactions=transactions,
        requires_approval=requires_approval,
        raw_data=raw_data or ProviderRawData(payload={}),
    )


def quoted_tx(**overrides) -> RouteTransaction:
    fields = {"chain_id": 8453, "to": ROUTER, "data": "0xdeadbeef", "value": "0", "gas_limit": "250000"}
    fields.update(overrides)
    return RouteTransaction(**fields)


class FakeProvider(RouteProvider):
    """In-memory provider returning canned routes or raising."""

    def __init__(
        self,
        provider_id: ProviderId,
        routes: Optional[list[UnifiedRoute]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        spender: Optional[str] = ROUTER,
        statuses: Optional[list] = None,
        built_tx: Optional[RouteTransaction] = None,
    ):
        super().__init__()
        self.provider_id = provider_id
        self.routes = routes or []
        self.error = error
        self.delay = delay
        self.spender = spender
        self.statuses = list(statuses or [])
        self.built_tx = built_tx
        self.status_calls = 0
        self.build_calls = 0

    @property
    def name(self) -> str:
        return f"Fake {self.provider_id.value}"

    async def get_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.routes)

    def get_spender(self, route: UnifiedRoute) -> Optional[str]:
        return self.spender

    async def build_transaction(self, route, from_address, recipient_address=None):
        self.build_calls += 1
        return self.built_tx

    async def get_settlement_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        self.status_calls += 1
        if self.statuses:
            item = self.statuses.pop(0)
        else:
            item = SettlementState.PENDING
        if isinstance(item, Exception):
            raise item
        if isinstance(item, SettlementStatus):
            return item
        return SettlementStatus(state=item, detail=item.value)


class FakeChainClient(ChainClient):
    """Records every chain call; receipts and allowances are configurable."""

    def __init__(self, allowance: int = 0, receipt_status: Any = 1, fail_send: Optional[Exception] = None):
        self.allowance = allowance
        self.receipt_status = receipt_status
        self.fail_send = fail_send
        self.chain_id: Optional[int] = None
        self.switches: list[int] = []
        self.sent: list[dict] = []
        self.reads: list[tuple] = []

    async def switch_chain(self, chain_id: int) -> None:
        self.switches.append(chain_id)
        self.chain_id = chain_id

    async def send_transaction(self, to, data, value, gas=None, fee_fields=None) -> str:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(
            {"to": to, "data": data, "value": value, "gas": gas, "fee_fields": fee_fields, "chain_id": self.chain_id}
        )
        return "0x" + f"{len(self.sent):064x}"

    async def wait_for_receipt(self, tx_hash: str) -> dict:
        return {"transactionHash": tx_hash, "status": self.receipt_status, "blockNumber": 1}

    async def read_contract(self, address, abi, fn, args):
        self.reads.append((address, fn, tuple(args)))
        return self.allowance


@pytest.fixture
def intent() -> PaymentIntent:
    return make_intent()


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def sleeps() -> list:
    """Captures sleep durations instead of waiting."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
