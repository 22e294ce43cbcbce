"""Route execution: approvals, submission and cross-chain settlement tracking."""

from crosspay.execution.base import (
    ApprovalFailedError,
    ChainClient,
    CrossChainTransaction,
    ExecutionError,
    InvalidTransitionError,
    SettlementFailedError,
    SettlementTimeoutError,
    StepStatus,
    SubmissionFailedError,
    TransactionStatus,
    TransactionStep,
)
from crosspay.execution.executor import TransactionExecutor, create_executor
from crosspay.execution.settlement import SettlementPoller

__all__ = [
    "ChainClient",
    "CrossChainTransaction",
    "TransactionStep",
    "TransactionStatus",
    "StepStatus",
    "TransactionExecutor",
    "create_executor",
    "SettlementPoller",
    "ExecutionError",
    "ApprovalFailedError",
    "SubmissionFailedError",
    "SettlementFailedError",
    "SettlementTimeoutError",
    "InvalidTransitionError",
]
