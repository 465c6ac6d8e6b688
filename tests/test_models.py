"""
Tests for DealerStructure data models.
"""

import pytest

from dealerstructure.models import (
    AggregatedStructure, Confidence, Diagnostics, ExtendedQuote,
    GammaFlipType, OptionContract, OptionsStatus, OptionType,
    Session, SourceGrade, StructureLevels, StructureResult, Validation
)


class TestOptionContract:
    """Tests for OptionContract model."""

    def test_creation(self):
        contract = OptionContract(strike=450.0, option_type=OptionType.PUT, open_interest=1200, gamma=0.01)
        assert contract.strike == 450.0
        assert contract.is_call == False
        assert contract.implied_volatility is None

    def test_is_call(self):
        assert OptionContract(strike=1.0, option_type=OptionType.CALL).is_call == True


class TestAggregatedStructure:
    """Tests for AggregatedStructure model."""

    def test_null_oi_ratio(self):
        structure = AggregatedStructure(total_contracts=50, null_oi_count=10)
        assert structure.null_oi_ratio == 0.2

    def test_null_oi_ratio_empty(self):
        assert AggregatedStructure().null_oi_ratio == 0.0
        assert AggregatedStructure().status == OptionsStatus.PENDING


class TestValidation:
    """Tests for Validation model."""

    def test_incomplete(self):
        validation = Validation.incomplete()
        assert validation.is_valid == False
        assert validation.confidence == Confidence.LOW
        assert validation.failures == ["incomplete_data"]
        assert not any(validation.checks.values())

    def test_to_dict(self):
        validation = Validation(is_valid=True, confidence=Confidence.HIGH, checks={"pcr": True})
        assert validation.to_dict() == {
            "isValid": True,
            "confidence": "HIGH",
            "checks": {"pcr": True},
            "failures": [],
        }


class TestExtendedQuote:
    """Tests for ExtendedQuote model."""

    def test_only_set_fields_rendered(self):
        quote = ExtendedQuote(pre_price=101.0, pre_change_pct=0.01)
        assert quote.to_dict() == {"prePrice": 101.0, "preChangePct": 0.01}


class TestDiagnostics:
    """Tests for Diagnostics model."""

    def test_notes_joined(self):
        diag = Diagnostics(notes=["chain truncated at 10 pages", "HIGH confidence (coverage: 95%)"])
        payload = diag.to_dict()
        assert payload["notes"] == "chain truncated at 10 pages; HIGH confidence (coverage: 95%)"
        assert payload["multiplierUsed"] == 100
        assert payload["apiStatus"] == 200


class TestStructureResult:
    """Tests for StructureResult model."""

    def test_defaults_are_pending(self):
        result = StructureResult(ticker="SPY", expiration="2026-03-06")
        assert result.options_status == OptionsStatus.PENDING
        assert result.gamma_flip_type == GammaFlipType.NO_DATA
        assert result.source_grade == SourceGrade.C
        assert result.session == Session.CLOSED
        assert result.cached == False

    def test_to_dict_keys(self):
        result = StructureResult(
            ticker="SPY",
            expiration="2026-03-06",
            strikes=[90.0, 100.0],
            calls_oi=[None, 500.0],
            puts_oi=[300.0, 0],
            levels=StructureLevels(call_wall=110.0),
        )
        payload = result.to_dict()

        assert payload["structure"] == {
            "strikes": [90.0, 100.0],
            "callsOI": [None, 500.0],
            "putsOI": [300.0, 0],
        }
        assert payload["levels"]["callWall"] == 110.0
        assert payload["options_status"] == "PENDING"
        assert payload["extended"] is None
        assert payload["validation"]["failures"] == ["incomplete_data"]
        for key in ("maxPain", "netGex", "gammaFlipLevel", "atmIv", "pcr", "debug", "sourceGrade"):
            assert key in payload


class TestEnums:
    """Tests for enum types."""

    def test_flip_types(self):
        assert GammaFlipType.EXACT.value == "EXACT"
        assert GammaFlipType.ALL_SHORT.value == "ALL_SHORT"

    def test_option_type(self):
        assert OptionType("put") == OptionType.PUT


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
