"""
Cash-Up Engine - Reconciliation Evaluator Tests
===============================================
"""

import dataclasses

import pytest

from services.reconciliation.reconciliation_evaluator import evaluate


class TestEvaluate:
    def test_exact_match_is_balanced(self):
        result = evaluate(120.0, 120.0)
        assert result.balanced is True
        assert result.delta == 0

    def test_half_unit_short_is_unbalanced(self):
        result = evaluate(120.0, 119.5)
        assert result.balanced is False
        assert result.delta == pytest.approx(0.5)
        assert result.net_total == 120.0
        assert result.cashup_total == 119.5

    def test_within_tolerance(self):
        assert evaluate(100.0, 100.005).balanced is True
        assert evaluate(100.0, 99.995).balanced is True
        assert evaluate(100.0, 99.98).balanced is False

    def test_missing_declared_total_counts_as_zero(self):
        result = evaluate(42.0, None)
        assert result.cashup_total == 0
        assert result.delta == 42.0
        assert result.balanced is False

    def test_zero_net_and_no_declared_total_balances(self):
        assert evaluate(0.0).balanced is True

    def test_over_declared_gives_negative_delta(self):
        result = evaluate(100.0, 150.0)
        assert result.delta == -50.0
        assert result.balanced is False

    def test_custom_tolerance(self):
        assert evaluate(100.0, 99.0, tolerance=1.0).balanced is True

    def test_result_is_frozen(self):
        result = evaluate(1.0, 1.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.balanced = False
