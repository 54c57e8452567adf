"""Tests for severity normalization."""

import pytest

from oversight.tools.severity import SEVERITY_LEVELS, normalize_severity, severity_rank


class TestNormalizeSeverity:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("CRITICAL", "critical"),
            ("error", "critical"),
            ("Severe", "critical"),
            ("HIGH", "high"),
            ("medium", "medium"),
            ("WARNING", "medium"),
            ("moderate", "medium"),
            ("LOW", "low"),
            ("note", "low"),
            ("minor", "low"),
            ("INFO", "low"),
            ("informational", "low"),
        ],
    )
    def test_known_vocabularies(self, raw: str, expected: str) -> None:
        assert normalize_severity(raw) == expected

    def test_trims_whitespace(self) -> None:
        assert normalize_severity("  High\n") == "high"

    @pytest.mark.parametrize("raw", [None, "", "   ", "bogus", "crit", 3, ["high"]])
    def test_everything_else_is_unknown(self, raw) -> None:
        assert normalize_severity(raw) == "unknown"

    @pytest.mark.parametrize("raw", ["ERROR", "warning", "Info", "nonsense", None, "HIGH"])
    def test_idempotent(self, raw) -> None:
        once = normalize_severity(raw)
        assert normalize_severity(once) == once

    def test_output_always_in_closed_set(self) -> None:
        for raw in ["x", "Critical ", "", None, "LOW", "note"]:
            assert normalize_severity(raw) in SEVERITY_LEVELS


class TestSeverityRank:
    def test_orders_critical_first(self) -> None:
        values = ["low", "unknown", "CRITICAL", "warning", "high"]
        ordered = sorted(values, key=severity_rank)
        assert ordered == ["CRITICAL", "high", "warning", "low", "unknown"]

    def test_unknown_is_last(self) -> None:
        assert severity_rank("???") == len(SEVERITY_LEVELS) - 1
