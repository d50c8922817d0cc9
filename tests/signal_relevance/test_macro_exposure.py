"""
Tests for macro exposure: distinct categories and time decay.
"""

import uuid
from datetime import timedelta

import pytest

from signal_relevance import EDGE_MACRO_TIMESTAMP_MISSING, MacroSignal, compute_macro_exposure


def signal(signal_type, created_at=None):
    return MacroSignal.create(uuid.uuid4(), signal_type, created_at=created_at)


class TestMacroExposure:

    def test_categories_count_once(self, now):
        signals = [
            signal("Credit Risk", now),
            signal("Credit Risk", now - timedelta(days=2)),
            signal("Pricing", now),
        ]
        exposure = compute_macro_exposure(signals, now=now)

        assert exposure.linked_category_count == 2
        assert exposure.linked_signal_count == 3
        assert exposure.categories == ["Credit Risk", "Pricing"]
        assert exposure.decayed_weight is None

    def test_same_signal_linked_twice_counts_once(self, now):
        credit = signal("Credit Risk", now)
        exposure = compute_macro_exposure([credit, credit], now=now)

        assert exposure.linked_signal_count == 1

    def test_empty(self, now):
        exposure = compute_macro_exposure([], half_life_days=14, now=now)

        assert exposure.linked_category_count == 0
        assert exposure.decayed_weight is None

    def test_decay_uses_most_recent_signal_per_category(self, now):
        signals = [
            signal("Credit Risk", now - timedelta(days=28)),
            signal("Credit Risk", now - timedelta(days=14)),
            signal("Pricing", now),
        ]
        exposure = compute_macro_exposure(signals, half_life_days=14, now=now)

        assert exposure.decayed_weight == pytest.approx(1.5)
        assert exposure.edge_flags == []

    def test_future_timestamps_do_not_exceed_full_weight(self, now):
        exposure = compute_macro_exposure(
            [signal("Pricing", now + timedelta(days=3))], half_life_days=14, now=now
        )
        assert exposure.decayed_weight == pytest.approx(1.0)

    def test_undated_signal_weighs_full_and_is_flagged(self, now):
        exposure = compute_macro_exposure(
            [signal("Liquidity"), signal("Pricing", now - timedelta(days=14))],
            half_life_days=14,
            now=now,
        )

        assert exposure.decayed_weight == pytest.approx(1.5)
        assert exposure.edge_flags == [EDGE_MACRO_TIMESTAMP_MISSING]

    def test_naive_timestamps_read_as_utc(self, now):
        naive = (now - timedelta(days=14)).replace(tzinfo=None)
        exposure = compute_macro_exposure([signal("Pricing", naive)], half_life_days=14, now=now)

        assert exposure.decayed_weight == pytest.approx(0.5)
