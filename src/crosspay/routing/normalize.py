"""Helpers shared by the per-provider route normalizers.

Each adapter parses its payload into a pydantic model and then maps it onto
``UnifiedRoute`` using the functions here, so unit handling, native-token
detection and USD accounting behave identically across providers.
"""

import logging
import re
from typing import Any, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from crosspay.chains import is_native_token
from crosspay.routing.base import (
    NormalizationError,
    ProviderId,
    ProviderRawData,
    RouteStep,
    RouteTransaction,
    StepType,
    UnifiedRoute,
    new_route_id,
    to_base_units,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_UINT_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")

__all__ = [
    "ProviderModel",
    "as_int",
    "approval_step",
    "build_route",
    "classify_step",
    "ensure_base_units",
    "is_native_token",
    "parse_model",
    "parse_quantity",
    "parse_usd",
    "sum_usd",
    "to_base_units",
    "with_approval",
]


class ProviderModel(BaseModel):
    """Base for provider response schemas: camelCase aliases, extra keys kept."""

    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="allow",
    )


def as_int(value: Any, default: int) -> int:
    """Best-effort int conversion for chain ids and durations."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_model(model: type[ModelT], payload: Any, provider: ProviderId) -> ModelT:
    """Validate a provider payload, converting schema errors to NormalizationError."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise NormalizationError(provider.value, f"unexpected response shape: {e}") from e


def ensure_base_units(value: Any, provider: ProviderId, field_name: str) -> str:
    """Coerce a provider amount to a non-negative integer string.

    Accepts ints, decimal digit strings and 0x-prefixed hex. Anything with a
    fractional part is rejected: providers must be rescaled with
    ``to_base_units`` before they reach here.
    """
    if isinstance(value, bool) or value is None:
        raise NormalizationError(provider.value, f"{field_name} is missing")
    if isinstance(value, int):
        if value < 0:
            raise NormalizationError(provider.value, f"{field_name} is negative")
        return str(value)
    text = str(value).strip()
    if text.lower().startswith("0x"):
        if not _HEX_RE.fullmatch(text):
            raise NormalizationError(provider.value, f"{field_name} is not valid hex: {text!r}")
        return str(int(text, 16))
    if not _UINT_RE.fullmatch(text):
        raise NormalizationError(
            provider.value, f"{field_name} is not an integer amount: {text!r}"
        )
    return str(int(text))


def parse_quantity(value: Any) -> Optional[str]:
    """Parse an optional hex/decimal chain quantity (gas, fees, value).

    Missing, malformed and zero quantities all come back as None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip()
        if _HEX_RE.fullmatch(text):
            number = int(text, 16)
        elif _UINT_RE.fullmatch(text):
            number = int(text)
        else:
            logger.debug(f"Ignoring unparseable quantity: {value!r}")
            return None
    if number <= 0:
        return None
    return str(number)


def parse_usd(value: Any) -> float:
    """Parse a USD figure; missing or malformed values are 0.0."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def sum_usd(values: Iterable[Any]) -> float:
    """Sum USD figures, treating missing entries as zero."""
    return max(0.0, sum(parse_usd(v) for v in values))


def classify_step(
    kind: Optional[str],
    from_chain: int,
    to_chain: int,
    mapping: dict[str, StepType],
) -> StepType:
    """Map a provider action kind to a StepType.

    Unknown kinds fall back to ``swap`` for same-chain actions and ``bridge``
    for chain-crossing ones.
    """
    if kind:
        step_type = mapping.get(kind.lower())
        if step_type is not None:
            return step_type
    return StepType.BRIDGE if from_chain != to_chain else StepType.SWAP


def approval_step(chain: int, token: str, protocol: str) -> RouteStep:
    return RouteStep(
        type=StepType.APPROVAL,
        chain=chain,
        protocol=protocol,
        description="Approve token spending",
        from_token=token,
    )


def with_approval(
    steps: list[RouteStep], from_token: str, from_chain: int, protocol: str
) -> tuple[tuple[RouteStep, ...], bool]:
    """Prepend an approval step for ERC-20 sources.

    Returns the final steps and the ``requires_approval`` flag.
    """
    if is_native_token(from_token):
        return tuple(steps), False
    return (approval_step(from_chain, from_token, protocol), *steps), True


def build_route(
    provider: ProviderId,
    provider_name: str,
    *,
    from_chain: int,
    from_token: str,
    from_amount: Any,
    to_chain: int,
    to_token: str,
    to_amount: Any,
    to_amount_min: Any,
    steps: list[RouteStep],
    total_gas_usd: float,
    total_fee_usd: float,
    estimated_time: Any,
    transactions: list[RouteTransaction],
    raw_data: ProviderRawData,
    price_impact: Optional[float] = None,
    tags: Iterable[str] = (),
    protocol: Optional[str] = None,
) -> UnifiedRoute:
    """Assemble a UnifiedRoute, enforcing the canonical invariants."""
    from_amount = ensure_base_units(from_amount, provider, "from_amount")
    to_amount = ensure_base_units(to_amount, provider, "to_amount")
    if to_amount_min is None or to_amount_min == "":
        to_amount_min = to_amount
    to_amount_min = ensure_base_units(to_amount_min, provider, "to_amount_min")

    if not steps:
        kind = StepType.BRIDGE if from_chain != to_chain else StepType.SWAP
        steps = [
            RouteStep(
                type=kind,
                chain=from_chain,
                protocol=protocol or provider.value,
                description=f"{kind.value.capitalize()} via {provider_name}",
                from_token=from_token,
                to_token=to_token,
            )
        ]
    final_steps, requires_approval = with_approval(
        steps, from_token, from_chain, protocol or provider.value
    )

    try:
        seconds = max(0, int(float(estimated_time or 0)))
    except (TypeError, ValueError):
        seconds = 0

    try:
        return UnifiedRoute(
            id=new_route_id(provider),
            provider=provider,
            provider_name=provider_name,
            from_chain=from_chain,
            from_token=from_token,
            from_amount=from_amount,
            to_chain=to_chain,
            to_token=to_token,
            to_amount=to_amount,
            to_amount_min=to_amount_min,
            steps=final_steps,
            total_gas_usd=max(0.0, total_gas_usd),
            total_fee_usd=max(0.0, total_fee_usd),
            estimated_time=seconds,
            transactions=tuple(transactions),
            requires_approval=requires_approval,
            raw_data=raw_data,
            price_impact=price_impact,
            tags=tuple(tags),
        )
    except ValueError as e:
        raise NormalizationError(provider.value, str(e)) from e
