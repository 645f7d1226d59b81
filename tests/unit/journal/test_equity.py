"""Tests for EquityCurveAnalyzer."""

from datetime import timedelta
from zoneinfo import ZoneInfo

import pytest

from journal_analytics.journal.equity import EquityCurveAnalyzer

from .conftest import BASE_TIME, make_pair, make_pairs


class TestDailyPnl:
    def test_groups_by_exit_date(self):
        pairs = [
            make_pair(10, index=0),
            make_pair(-4, index=1, exit_time=BASE_TIME + timedelta(hours=2)),
            make_pair(7, index=2, exit_time=BASE_TIME + timedelta(days=1)),
        ]
        days = EquityCurveAnalyzer().daily_pnl(pairs)

        assert [d.date for d in days] == [BASE_TIME.date(), (BASE_TIME + timedelta(days=1)).date()]
        assert days[0].profit_loss == pytest.approx(6.0)
        assert days[0].trade_count == 2

    def test_timezone_boundary(self):
        exit_time = BASE_TIME.replace(hour=2) + timedelta(days=1)  # 21:00 New York, previous day
        days = EquityCurveAnalyzer(ZoneInfo("America/New_York")).daily_pnl([make_pair(5, exit_time=exit_time)])
        assert days[0].date == BASE_TIME.date()

    def test_to_dict(self):
        data = EquityCurveAnalyzer().daily_pnl(make_pairs([3]))[0].to_dict()
        assert data == {"date": "2024-01-02", "profit_loss": 3.0, "trade_count": 1}


class TestEquityCurve:
    @pytest.fixture
    def curve(self):
        return EquityCurveAnalyzer().equity_curve(make_pairs([100, -50, -30, 200]))

    def test_cumulative(self, curve):
        assert [p.cumulative_pnl for p in curve.points] == pytest.approx([100, 50, 20, 220])
        assert [p.peak_equity for p in curve.points] == pytest.approx([100, 100, 100, 220])
        assert [p.drawdown for p in curve.points] == pytest.approx([0, 50, 80, 0])

    def test_max_drawdown_period(self, curve):
        dd = curve.drawdown
        assert dd.max_drawdown == pytest.approx(80.0)
        assert dd.max_drawdown_pct == pytest.approx(80.0)
        assert dd.max_drawdown_start == curve.points[0].date
        assert dd.max_drawdown_end == curve.points[2].date
        assert [p.is_max_drawdown for p in curve.points] == [True, True, True, False]

    def test_longest_and_average_drawdown(self, curve):
        dd = curve.drawdown
        assert dd.longest_drawdown_days == 2
        assert dd.longest_drawdown_start == curve.points[1].date
        assert dd.longest_drawdown_end == curve.points[2].date
        assert dd.avg_drawdown == pytest.approx(65.0)

    def test_best_surge(self, curve):
        assert curve.best_surge_value == pytest.approx(220.0)
        assert curve.best_surge_start == curve.points[0].date
        assert curve.best_surge_end == curve.points[3].date

    def test_surge_measured_from_trough(self):
        curve = EquityCurveAnalyzer().equity_curve(make_pairs([-40, -10, 30, 60]))
        assert curve.best_surge_value == pytest.approx(90.0)
        assert curve.best_surge_start == curve.points[1].date

    def test_empty(self):
        curve = EquityCurveAnalyzer().equity_curve([])
        assert curve.points == []
        assert curve.drawdown.max_drawdown == 0.0
        assert curve.to_dict()["best_surge_start"] is None
