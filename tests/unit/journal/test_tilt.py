"""Tests for TiltAnalyzer: streak samples, score and category."""

import pytest

from journal_analytics.core.config import TiltConfig
from journal_analytics.journal.tilt import (
    TiltAnalyzer,
    after_losses,
    after_win,
    tilt_category,
    tilt_score,
)

from .conftest import make_pairs


class TestStreakSamples:
    def test_at_least_k_semantic(self):
        pnls = [-1, -1, -1, 5]
        assert after_losses(pnls, 1) == [-1, -1, 5]
        assert after_losses(pnls, 2) == [-1, 5]
        assert after_losses(pnls, 3) == [5]
        assert after_losses(pnls, 4) == []

    def test_breakeven_breaks_a_streak(self):
        assert after_losses([-1, 0, 5], 1) == [0]
        assert after_losses([-1, 0, 5], 2) == []

    def test_after_win(self):
        assert after_win([3, -1, 2, 2]) == [-1, 2]


class TestScore:
    def test_maximum(self):
        score = tilt_score(
            baseline_win_rate=0.6,
            win_rate_after_loss=0.1,
            avg_loss_normally=-10,
            avg_loss_after_loss=-20,
            prob_loss_after_loss=0.9,
            baseline_loss_rate=0.4,
        )
        assert score == pytest.approx(10.0)

    def test_no_degradation(self):
        score = tilt_score(0.5, 0.6, -10, -8, 0.3, 0.5)
        assert score == 0.0

    def test_categories(self):
        assert tilt_category(0.0) == "Low Tilt"
        assert tilt_category(3.0) == "Low Tilt"
        assert tilt_category(3.01) == "Moderate Tilt"
        assert tilt_category(7.0) == "Moderate Tilt"
        assert tilt_category(7.5) == "High Tilt"


class TestAnalyze:
    def test_insufficient_history(self):
        stats = TiltAnalyzer(TiltConfig(min_history=10)).analyze(make_pairs([-1, -1, 5]))

        assert stats.tilt_category == "Insufficient Data"
        assert stats.tilt_score == 0.0
        assert stats.total_trades == 3
        assert [s.sample_size for s in stats.streak_stats] == [2, 1, 0, 0]
        assert stats.recommended_streak is None

    def test_empty(self):
        stats = TiltAnalyzer().analyze([])
        assert stats.tilt_category == "Insufficient Data"
        assert stats.baseline_win_rate == 0.0
        assert len(stats.streak_stats) == 4

    def test_disciplined_trader(self):
        stats = TiltAnalyzer().analyze(make_pairs([10, -5] * 10))

        assert stats.win_rate_after_loss == 1.0
        assert stats.prob_loss_after_loss == 0.0
        assert stats.tilt_score == 0.0
        assert stats.tilt_category == "Low Tilt"
        assert stats.recommended_streak is None

    def test_losses_cluster(self):
        # Three wins then three losses, four times over
        pnls = [10, 10, 10, -10, -10, -10] * 4
        stats = TiltAnalyzer(TiltConfig(min_sample_size=5)).analyze(make_pairs(pnls))

        assert stats.baseline_win_rate == 0.5
        assert stats.win_rate_after_loss == pytest.approx(3 / 11)
        assert stats.win_rate_after_2_losses == pytest.approx(3 / 7)
        assert stats.win_rate_after_win == pytest.approx(8 / 12)
        assert stats.prob_loss_after_loss == pytest.approx(8 / 11)
        assert stats.avg_loss_after_loss == pytest.approx(-10.0)
        assert stats.tilt_score == pytest.approx(35 / 11)
        assert stats.tilt_category == "Moderate Tilt"

        by_k = {s.k: s for s in stats.streak_stats}
        assert by_k[1].sample_size == 11
        assert by_k[1].is_reliable
        assert by_k[3].sample_size == 3
        assert by_k[3].win_rate_after_k_losses == 1.0
        assert not by_k[3].is_reliable
        assert by_k[4].sample_size == 0
        assert stats.recommended_streak == 1
        assert stats.coaching_lines

    def test_to_dict(self):
        data = TiltAnalyzer().analyze(make_pairs([1, -1] * 6)).to_dict()
        assert data["tilt_category"] in {"Low Tilt", "Moderate Tilt", "High Tilt"}
        assert len(data["streak_stats"]) == 4
        assert "baseline_loss_rate" in data
