"""Web boundary layer for read-only route quoting.

This layer MUST NOT import from execution/ or hold signing material.
Routes are quoted here and executed client-side, where the wallet lives.
"""

__all__ = [
    "contracts",
    "services",
    "controllers",
]
