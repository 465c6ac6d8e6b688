"""
Tests for the structure aggregation layer and data-quality gate.
"""

import pytest

from dealerstructure.layers.aggregation import StructureAggregator, put_call_ratio, quality_gate
from dealerstructure.models import OptionsStatus

from tests.conftest import contract


class TestPutCallRatio:
    """Tests for put_call_ratio()."""

    def test_rounded_to_two_decimals(self):
        assert put_call_ratio(1000, 3000) == 0.33

    def test_none_without_call_oi(self):
        assert put_call_ratio(500, 0) is None


class TestQualityGate:
    """Tests for quality_gate()."""

    def test_zero_contracts_pending(self):
        assert quality_gate(0, 0) == OptionsStatus.PENDING

    def test_below_threshold_ok(self):
        assert quality_gate(100, 19) == OptionsStatus.OK

    def test_at_threshold_pending(self):
        assert quality_gate(100, 20) == OptionsStatus.PENDING


class TestStructureAggregator:
    """Tests for StructureAggregator.aggregate()."""

    def test_sorted_unique_strikes_and_equal_lengths(self):
        contracts = [
            contract(110, "call", 1000),
            contract(90, "put", 300),
            contract(100, "call", 500),
            contract(100, "put", 200),
        ]
        result = StructureAggregator().aggregate(contracts)

        assert result.strikes == [90.0, 100.0, 110.0]
        assert len(result.calls_oi) == len(result.puts_oi) == len(result.strikes)
        assert result.calls_oi == [0, 500, 1000]
        assert result.puts_oi == [300, 200, 0]

    def test_totals_and_pcr(self):
        contracts = [
            contract(100, "call", 500),
            contract(110, "call", 1000),
            contract(90, "put", 300),
        ]
        result = StructureAggregator().aggregate(contracts)

        assert result.total_call_oi == 1500
        assert result.total_put_oi == 300
        assert result.put_call_ratio == 0.2
        assert result.status == OptionsStatus.OK

    def test_null_oi_excluded_from_clean_set(self):
        contracts = [contract(100, "call", None), contract(100, "put", 50)]
        result = StructureAggregator().aggregate(contracts)

        assert result.null_oi_count == 1
        assert len(result.clean_contracts) == 1
        assert result.calls_oi == [None]
        assert result.puts_oi == [50]

    def test_high_null_ratio_keeps_raw_arrays(self):
        """25 contracts, 6 without OI (24%) -> PENDING with nulls at those strikes."""
        null_strikes = {92, 95, 99, 103, 108, 111}
        contracts = [
            contract(strike, "call", None if strike in null_strikes else 100)
            for strike in range(90, 115)
        ]
        result = StructureAggregator().aggregate(contracts)

        assert result.total_contracts == 25
        assert result.null_oi_ratio == pytest.approx(0.24)
        assert result.status == OptionsStatus.PENDING
        assert len(result.strikes) == 25
        null_positions = [k for k, oi in zip(result.strikes, result.calls_oi) if oi is None]
        assert null_positions == sorted(float(s) for s in null_strikes)
        assert all(oi == 0 for oi in result.puts_oi)

    def test_empty_chain(self):
        result = StructureAggregator().aggregate([])

        assert result.strikes == []
        assert result.status == OptionsStatus.PENDING
        assert result.put_call_ratio is None

    def test_zero_oi_is_not_null(self):
        result = StructureAggregator().aggregate([contract(100, "call", 0)])

        assert result.calls_oi == [0]
        assert result.null_oi_count == 0
        assert result.status == OptionsStatus.OK
