"""Tests for the canonical route model and shared normalization helpers."""

from decimal import Decimal

import pytest

from conftest import BASE_USDC, ETH_USDC, make_intent, make_route
from crosspay.chains import NATIVE_TOKEN_ADDRESS, NATIVE_TOKEN_ADDRESS_ALT, get_token, is_native_token
from crosspay.routing.base import (
    NormalizationError,
    ProviderId,
    ProviderRawData,
    RouteStep,
    StepType,
    from_base_units,
    to_base_units,
)
from crosspay.routing.normalize import (
    build_route,
    classify_step,
    ensure_base_units,
    parse_quantity,
    parse_usd,
    sum_usd,
    with_approval,
)


class TestUnits:
    """Tests for decimal <-> smallest-unit conversion."""

    def test_usdc_amount_scaled_by_decimals(self):
        """100 USDC with 6 decimals is 100000000 base units."""
        assert to_base_units("100", 6) == "100000000"

    def test_fractional_amount(self):
        assert to_base_units("100.5", 6) == "100500000"

    def test_excess_precision_truncated(self):
        """Extra decimals are truncated, never rounded up."""
        assert to_base_units("1.0000009", 6) == "1000000"

    def test_eighteen_decimals(self):
        assert to_base_units("0.01", 18) == "10000000000000000"

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_base_units("abc", 6)

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            to_base_units("-1", 6)

    def test_from_base_units(self):
        assert from_base_units("100500000", 6) == Decimal("100.5")

    def test_intent_base_amount(self):
        assert make_intent(amount="25.25").base_amount == "25250000"


class TestEnsureBaseUnits:
    """Tests for provider amount coercion."""

    def test_digit_string(self):
        assert ensure_base_units("99500000", ProviderId.SQUID, "to_amount") == "99500000"

    def test_int(self):
        assert ensure_base_units(42, ProviderId.SQUID, "to_amount") == "42"

    def test_hex(self):
        assert ensure_base_units("0x10", ProviderId.SQUID, "to_amount") == "16"

    def test_decimal_string_rejected(self):
        with pytest.raises(NormalizationError):
            ensure_base_units("99.5", ProviderId.LIFI, "to_amount")

    def test_missing_rejected(self):
        with pytest.raises(NormalizationError):
            ensure_base_units(None, ProviderId.LIFI, "to_amount")

    def test_negative_int_rejected(self):
        with pytest.raises(NormalizationError):
            ensure_base_units(-1, ProviderId.LIFI, "to_amount")

    @pytest.mark.parametrize("value", ["\u00b2", "\u0663\u0664", "1_000", "0x\u0663", "0x1_0"])
    def test_non_ascii_or_separated_digits_rejected(self, value):
        with pytest.raises(NormalizationError):
            ensure_base_units(value, ProviderId.SQUID, "to_amount")


class TestQuantitiesAndUsd:
    """Tests for optional gas quantities and USD figures."""

    def test_parse_quantity_hex(self):
        assert parse_quantity("0x5208") == "21000"

    def test_parse_quantity_zero_is_none(self):
        assert parse_quantity("0") is None
        assert parse_quantity("0x0") is None

    def test_parse_quantity_missing_or_bad(self):
        assert parse_quantity(None) is None
        assert parse_quantity("") is None
        assert parse_quantity("lots") is None
        assert parse_quantity("\u00b2") is None
        assert parse_quantity("\u0663") is None

    def test_parse_usd(self):
        assert parse_usd("1.25") == 1.25
        assert parse_usd(None) == 0.0
        assert parse_usd("n/a") == 0.0
        assert parse_usd("-3") == 0.0
        assert parse_usd("nan") == 0.0

    def test_sum_usd_skips_missing(self):
        assert sum_usd(["0.5", None, "1.5", ""]) == pytest.approx(2.0)


class TestSteps:
    """Tests for step classification and approval insertion."""

    def test_classify_known_kind(self):
        mapping = {"cross": StepType.BRIDGE, "swap": StepType.SWAP}
        assert classify_step("CROSS", 1, 1, mapping) == StepType.BRIDGE

    def test_classify_unknown_kind_falls_back_by_chain(self):
        assert classify_step("mystery", 8453, 1, {}) == StepType.BRIDGE
        assert classify_step("mystery", 8453, 8453, {}) == StepType.SWAP
        assert classify_step(None, 1, 1, {}) == StepType.SWAP

    def test_erc20_source_gets_approval_first(self):
        bridge = RouteStep(type=StepType.BRIDGE, chain=8453, protocol="x", description="Bridge")
        steps, requires_approval = with_approval([bridge], BASE_USDC, 8453, "squid")

        assert requires_approval is True
        assert steps[0].type == StepType.APPROVAL
        assert steps[0].chain == 8453
        assert steps[1] is bridge

    @pytest.mark.parametrize("native", [NATIVE_TOKEN_ADDRESS, NATIVE_TOKEN_ADDRESS_ALT, NATIVE_TOKEN_ADDRESS_ALT.lower()])
    def test_native_source_never_gets_approval(self, native):
        bridge = RouteStep(type=StepType.BRIDGE, chain=8453, protocol="x", description="Bridge")
        steps, requires_approval = with_approval([bridge], native, 8453, "squid")

        assert requires_approval is False
        assert all(s.type != StepType.APPROVAL for s in steps)


class TestBuildRoute:
    """Tests for route assembly and the canonical invariants."""

    def _build(self, **overrides):
        fields = dict(
            from_chain=8453,
            from_token=BASE_USDC,
            from_amount="100000000",
            to_chain=1,
            to_token=ETH_USDC,
            to_amount="99500000",
            to_amount_min="99000000",
            steps=[],
            total_gas_usd=0.4,
            total_fee_usd=0.1,
            estimated_time=95.7,
            transactions=[],
            raw_data=ProviderRawData(payload={}),
        )
        fields.update(overrides)
        return build_route(ProviderId.SQUID, "Squid Router", **fields)

    def test_defaults_step_when_provider_reports_none(self):
        route = self._build()

        assert [s.type for s in route.steps] == [StepType.APPROVAL, StepType.BRIDGE]
        assert route.requires_approval is True
        assert route.estimated_time == 95
        assert route.id.startswith("squid-")

    def test_missing_minimum_defaults_to_expected(self):
        route = self._build(to_amount_min=None)
        assert route.to_amount_min == route.to_amount

    def test_minimum_above_expected_rejected(self):
        with pytest.raises(NormalizationError):
            self._build(to_amount_min="99600000")

    def test_total_cost(self):
        assert self._build().total_cost_usd == pytest.approx(0.5)

    def test_ids_unique(self):
        assert self._build().id != self._build().id

    def test_to_dict_excludes_raw_payload(self):
        data = self._build().to_dict()

        assert data["provider"] == "squid"
        assert data["steps"][0]["type"] == "approval"
        assert "raw_data" not in data


class TestUnifiedRouteInvariants:
    """Direct construction must reject malformed routes."""

    def test_empty_steps_rejected(self):
        route = make_route()
        with pytest.raises(ValueError):
            type(route)(**{**route.__dict__, "steps": ()})

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError):
            make_route(gas_usd=-1.0)

    def test_non_integer_amount_rejected(self):
        with pytest.raises(ValueError):
            make_route(to_amount="1.5")

    def test_unicode_digit_amount_rejected(self):
        with pytest.raises(ValueError):
            make_route(to_amount="\u00b2")


class TestChains:
    """Tests for static chain/token lookups."""

    def test_known_usdc(self):
        token = get_token(8453, BASE_USDC.lower())
        assert token is not None
        assert token.symbol == "USDC"
        assert token.decimals == 6

    def test_native_resolves_to_chain_asset(self):
        token = get_token(1, NATIVE_TOKEN_ADDRESS_ALT)
        assert token.symbol == "ETH"
        assert token.decimals == 18

    def test_is_native_token(self):
        assert is_native_token(NATIVE_TOKEN_ADDRESS)
        assert is_native_token(NATIVE_TOKEN_ADDRESS_ALT.upper().replace("0X", "0x"))
        assert not is_native_token(BASE_USDC)
        assert not is_native_token(None)
