"""Execution data model, chain-client interface and execution errors.

Execution flow for one route:
1. Approval (ERC-20 sources only): read allowance, approve when short
2. Submission: send the route's primary transaction on the source chain
3. Confirmation: wait for the receipt
4. Settlement (cross-chain only): poll the provider until the bridge fills
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from crosspay.routing.base import PaymentIntent, UnifiedRoute

logger = logging.getLogger(__name__)


ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionStatus(str, Enum):
    """Lifecycle state of a cross-chain transaction."""

    PENDING = "pending"
    APPROVING = "approving"
    EXECUTING = "executing"
    BRIDGING = "bridging"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.COMPLETED, TransactionStatus.FAILED)


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Legal moves; any non-terminal state may also move to FAILED
ALLOWED_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {TransactionStatus.APPROVING, TransactionStatus.EXECUTING},
    TransactionStatus.APPROVING: {TransactionStatus.EXECUTING},
    TransactionStatus.EXECUTING: {TransactionStatus.BRIDGING, TransactionStatus.COMPLETED},
    TransactionStatus.BRIDGING: {TransactionStatus.COMPLETED},
    TransactionStatus.COMPLETED: set(),
    TransactionStatus.FAILED: set(),
}


# ======================
# Errors
# ======================


class InvalidTransitionError(Exception):
    """Attempted status change not allowed by the lifecycle."""

    def __init__(self, current: TransactionStatus, target: TransactionStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move transaction from {current.value} to {target.value}")


class ExecutionError(Exception):
    """Base class for execution failures.

    ``transaction`` is attached by the executor before the error propagates,
    so callers can inspect the step log of the failed attempt.
    """

    def __init__(self, message: str, transaction: Optional["CrossChainTransaction"] = None):
        self.message = message
        self.transaction = transaction
        super().__init__(message)


class ApprovalFailedError(ExecutionError):
    """Token approval could not be completed."""

    pass


class SubmissionFailedError(ExecutionError):
    """The primary transaction could not be built, sent or confirmed."""

    pass


class SettlementFailedError(ExecutionError):
    """The provider reported the cross-chain transfer as failed."""

    pass


class SettlementTimeoutError(ExecutionError):
    """Settlement polling budget exhausted without a terminal status."""

    pass


# ======================
# Transaction model
# ======================


@dataclass
class TransactionStep:
    """One entry in a transaction's step log."""

    name: str
    status: StepStatus = StepStatus.PENDING
    chain_id: Optional[int] = None
    transaction_hash: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def start(self) -> None:
        self.status = StepStatus.IN_PROGRESS
        self.started_at = _utcnow()

    def complete(self, transaction_hash: Optional[str] = None) -> None:
        self.status = StepStatus.COMPLETED
        if transaction_hash:
            self.transaction_hash = transaction_hash
        self.completed_at = _utcnow()

    def fail(self, error: str) -> None:
        self.status = StepStatus.FAILED
        self.error = error
        self.completed_at = _utcnow()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "chain_id": self.chain_id,
            "transaction_hash": self.transaction_hash,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class CrossChainTransaction:
    """Execution record of one route.

    ``status`` must only be changed through ``transition``; ``steps`` and
    ``transaction_hashes`` are append-only.
    """

    route: UnifiedRoute
    intent: Optional[PaymentIntent] = None
    # Route actually submitted; differs from ``route`` after a re-quote
    submitted_route: Optional[UnifiedRoute] = None
    id: str = field(default_factory=lambda: f"tx-{uuid.uuid4().hex[:16]}")
    status: TransactionStatus = TransactionStatus.PENDING
    steps: list[TransactionStep] = field(default_factory=list)
    transaction_hashes: list[str] = field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    def transition(self, target: TransactionStatus) -> None:
        """Move to ``target`` or raise InvalidTransitionError."""
        current = self.status
        if current.is_terminal:
            raise InvalidTransitionError(current, target)
        if target != TransactionStatus.FAILED and target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)

        self.status = target
        if target.is_terminal:
            self.completed_at = _utcnow()
        logger.debug(f"Transaction {self.id}: {current.value} -> {target.value}")

    def add_step(self, name: str, chain_id: Optional[int] = None) -> TransactionStep:
        step = TransactionStep(name=name, chain_id=chain_id)
        self.steps.append(step)
        return step

    def record_hash(self, tx_hash: str) -> None:
        self.transaction_hashes.append(tx_hash)

    def mark_failed(self, error: str) -> None:
        self.error = error
        if not self.status.is_terminal:
            self.transition(TransactionStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_id": self.route.id,
            "provider": self.route.provider.value,
            "status": self.status.value,
            "steps": [s.to_dict() for s in self.steps],
            "transaction_hashes": list(self.transaction_hashes),
            "submitted_route": self.submitted_route.to_dict() if self.submitted_route else None,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


# ======================
# Chain access
# ======================


class ChainClient(ABC):
    """Signing and submission capability supplied by the caller's wallet."""

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Make ``chain_id`` the active chain for subsequent calls."""
        pass

    @abstractmethod
    async def send_transaction(
        self,
        to: str,
        data: str,
        value: int,
        gas: Optional[int] = None,
        fee_fields: Optional[dict[str, int]] = None,
    ) -> str:
        """Sign and broadcast a transaction, returning its hash.

        ``fee_fields`` holds either ``gasPrice`` or the EIP-1559 pair
        ``maxFeePerGas``/``maxPriorityFeePerGas``, never both.
        """
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> dict:
        """Wait for inclusion; the receipt's ``status`` is 0 when reverted."""
        pass

    @abstractmethod
    async def read_contract(self, address: str, abi: list, fn: str, args: list) -> Any:
        """Call a view function on the active chain."""
        pass
