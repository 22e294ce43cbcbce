"""Transaction executor: drives a chosen route from approval to settlement.

State machine:
    pending -> approving -> executing -> bridging -> completed
    pending -> executing                 (native source / allowance not needed)
    executing -> completed               (same-chain)
    any non-terminal state -> failed

Nothing submitted on-chain is ever retried; a failure marks the step and
the transaction failed and propagates with the transaction attached.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from eth_abi import encode
from eth_utils import to_checksum_address

from crosspay.chains import get_token, is_native_token
from crosspay.config import Settings, get_settings
from crosspay.execution.base import (
    ERC20_ABI,
    ApprovalFailedError,
    ChainClient,
    CrossChainTransaction,
    ExecutionError,
    SettlementFailedError,
    SubmissionFailedError,
    TransactionStatus,
)
from crosspay.execution.settlement import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    SettlementPoller,
)
from crosspay.execution.strategies import ExecutionStrategy, get_strategy
from crosspay.routing.base import (
    PaymentIntent,
    ProviderId,
    RecipientInfo,
    RouteProvider,
    RouteTransaction,
    SenderInfo,
    TokenRef,
    UnifiedRoute,
    from_base_units,
)

logger = logging.getLogger(__name__)

# keccak("approve(address,uint256)")[:4]
APPROVE_SELECTOR = "0x095ea7b3"

APPROVAL_STEP_NAME = "Token Approval"
SETTLEMENT_STEP_NAME = "Cross-Chain Settlement"


def encode_approve(spender: str, amount: int) -> str:
    """ABI-encode an ERC-20 ``approve(spender, amount)`` call."""
    args = encode(["address", "uint256"], [to_checksum_address(spender), amount])
    return APPROVE_SELECTOR + args.hex()


def select_fee_fields(tx: RouteTransaction) -> Optional[dict[str, int]]:
    """Pick EIP-1559 fields when the quote has both, else a legacy gas price.

    Never returns both pricing schemes.
    """
    if tx.max_fee_per_gas and tx.max_priority_fee_per_gas:
        return {
            "maxFeePerGas": int(tx.max_fee_per_gas),
            "maxPriorityFeePerGas": int(tx.max_priority_fee_per_gas),
        }
    if tx.gas_price:
        return {"gasPrice": int(tx.gas_price)}
    if tx.max_fee_per_gas:
        # a lone fee cap is used as the legacy price
        return {"gasPrice": int(tx.max_fee_per_gas)}
    return None


def _receipt_failed(receipt: dict) -> bool:
    return receipt.get("status") in (0, "0x0")


def intent_from_route(
    route: UnifiedRoute, user_address: str, recipient_address: Optional[str] = None
) -> PaymentIntent:
    """Reconstruct the payment intent a route answers, for the execution record."""
    sender_info = get_token(route.from_chain, route.from_token)
    recipient_info = get_token(route.to_chain, route.to_token)

    if sender_info is not None:
        from_token = TokenRef(
            address=route.from_token,
            chain_id=route.from_chain,
            symbol=sender_info.symbol,
            decimals=sender_info.decimals,
        )
        amount = format(from_base_units(route.from_amount, sender_info.decimals), "f")
    else:
        # Unknown token: keep the amount in base units
        from_token = TokenRef(address=route.from_token, chain_id=route.from_chain, decimals=0)
        amount = route.from_amount

    to_token = TokenRef(
        address=route.to_token,
        chain_id=route.to_chain,
        symbol=recipient_info.symbol if recipient_info else "",
        decimals=recipient_info.decimals if recipient_info else 0,
    )

    return PaymentIntent(
        sender=SenderInfo(
            address=user_address,
            token=from_token,
            chain=route.from_chain,
            amount=amount,
        ),
        recipient=RecipientInfo(
            address=recipient_address or user_address,
            token=to_token,
            chain=route.to_chain,
            expected_amount=route.to_amount,
        ),
    )


class TransactionExecutor:
    """Executes routes through the caller's chain client."""

    def __init__(
        self,
        chain_client: ChainClient,
        providers: Iterable[RouteProvider],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.chain = chain_client
        self.providers: dict[ProviderId, RouteProvider] = {p.provider_id: p for p in providers}
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _strategy_for(self, route: UnifiedRoute) -> ExecutionStrategy:
        provider = self.providers.get(route.provider)
        if provider is None:
            raise SubmissionFailedError(f"Provider {route.provider.value} is not configured")
        return get_strategy(provider)

    async def execute(
        self,
        route: UnifiedRoute,
        user_address: str,
        recipient_address: Optional[str] = None,
        intent: Optional[PaymentIntent] = None,
    ) -> CrossChainTransaction:
        """Execute a route end to end.

        Returns:
            The completed transaction record

        Raises:
            ApprovalFailedError, SubmissionFailedError, SettlementFailedError,
            SettlementTimeoutError: with ``error.transaction`` set
        """
        transaction = CrossChainTransaction(
            route=route,
            intent=intent or intent_from_route(route, user_address, recipient_address),
        )
        logger.info(
            f"Executing {route.provider_name} route {route.id} as {transaction.id}: "
            f"chain {route.from_chain} -> chain {route.to_chain}"
        )

        try:
            strategy = self._strategy_for(route)
            strategy.validate(route)

            if route.requires_approval and not is_native_token(route.from_token):
                transaction.transition(TransactionStatus.APPROVING)
                await self._approve(transaction, strategy, user_address)

            transaction.transition(TransactionStatus.EXECUTING)
            tracked_route, tx_hash = await self._submit(
                transaction, strategy, user_address, recipient_address
            )

            if route.is_cross_chain:
                transaction.transition(TransactionStatus.BRIDGING)
                await self._settle(transaction, strategy, tracked_route, tx_hash)

            transaction.transition(TransactionStatus.COMPLETED)
        except ExecutionError as e:
            transaction.mark_failed(e.message)
            e.transaction = transaction
            logger.error(f"Transaction {transaction.id} failed: {e.message}")
            raise

        logger.info(
            f"Transaction {transaction.id} completed: {', '.join(transaction.transaction_hashes)}"
        )
        return transaction

    async def _approve(
        self,
        transaction: CrossChainTransaction,
        strategy: ExecutionStrategy,
        user_address: str,
    ) -> None:
        route = transaction.route
        step = transaction.add_step(APPROVAL_STEP_NAME, chain_id=route.from_chain)
        step.start()

        try:
            await self.chain.switch_chain(route.from_chain)
            spender = to_checksum_address(await strategy.resolve_spender(route))
            token = to_checksum_address(route.from_token)
            owner = to_checksum_address(user_address)
            amount = int(route.from_amount)

            allowance = int(
                await self.chain.read_contract(token, ERC20_ABI, "allowance", [owner, spender])
            )
            if allowance >= amount:
                logger.info(f"Allowance {allowance} for {spender} already covers {amount}")
                step.complete()
                return

            tx_hash = await self.chain.send_transaction(
                to=token, data=encode_approve(spender, amount), value=0
            )
            transaction.record_hash(tx_hash)
            step.transaction_hash = tx_hash
            logger.info(f"Token approval tx: {tx_hash}")

            receipt = await self.chain.wait_for_receipt(tx_hash)
            if _receipt_failed(receipt):
                raise ApprovalFailedError(f"Approval transaction {tx_hash} reverted")
            step.complete(tx_hash)
        except ApprovalFailedError as e:
            step.fail(e.message)
            raise
        except Exception as e:
            step.fail(str(e))
            raise ApprovalFailedError(f"Token approval failed: {e}") from e

    async def _submit(
        self,
        transaction: CrossChainTransaction,
        strategy: ExecutionStrategy,
        user_address: str,
        recipient_address: Optional[str],
    ) -> tuple[UnifiedRoute, str]:
        route = transaction.route
        step = transaction.add_step(f"Execute on Chain {route.from_chain}", chain_id=route.from_chain)
        step.start()

        try:
            tracked_route, tx = await strategy.prepare(route, user_address, recipient_address)
            transaction.submitted_route = tracked_route
            if tracked_route is not route:
                logger.info(f"Route {route.id} was re-quoted before submission")
            await self.chain.switch_chain(route.from_chain)

            tx_hash = await self.chain.send_transaction(
                to=tx.to,
                data=tx.data,
                value=int(tx.value or 0),
                gas=int(tx.gas_limit) if tx.gas_limit else None,
                fee_fields=select_fee_fields(tx),
            )
            transaction.record_hash(tx_hash)
            step.transaction_hash = tx_hash
            logger.info(f"Submitted {route.provider_name} transaction: {tx_hash}")

            receipt = await self.chain.wait_for_receipt(tx_hash)
            if _receipt_failed(receipt):
                raise SubmissionFailedError(f"Transaction {tx_hash} reverted")
            step.complete(tx_hash)
            return tracked_route, tx_hash
        except SubmissionFailedError as e:
            step.fail(e.message)
            raise
        except Exception as e:
            step.fail(str(e))
            raise SubmissionFailedError(f"Transaction submission failed: {e}") from e

    async def _settle(
        self,
        transaction: CrossChainTransaction,
        strategy: ExecutionStrategy,
        route: UnifiedRoute,
        tx_hash: str,
    ) -> None:
        step = transaction.add_step(SETTLEMENT_STEP_NAME, chain_id=route.to_chain)
        step.start()

        poller = SettlementPoller(
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            sleep=self._sleep,
        )
        try:
            status = await poller.wait(lambda: strategy.check_status(route, tx_hash), tx_hash)
            step.complete(status.destination_tx_hash)
        except ExecutionError as e:
            step.fail(e.message)
            raise
        except Exception as e:
            step.fail(str(e))
            raise SettlementFailedError(f"Settlement tracking failed: {e}") from e


def create_executor(
    chain_client: ChainClient,
    providers: Iterable[RouteProvider],
    settings: Optional[Settings] = None,
) -> TransactionExecutor:
    """Create an executor with the configured settlement polling budget."""
    settings = settings or get_settings()
    return TransactionExecutor(
        chain_client,
        providers,
        poll_interval=settings.settlement_poll_interval,
        max_attempts=settings.settlement_max_attempts,
    )
