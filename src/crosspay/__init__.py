"""crosspay: cross-chain route aggregation and execution engine."""

__version__ = "0.1.0"
