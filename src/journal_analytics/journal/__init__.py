"""Trade pairing and performance analytics.

Turns independent buy/sell executions into matched round trips and
computes the statistics over them.  Every analyzer is a pure function
of the pair set it is given.

Key components
--------------
LotMatcher            FIFO/LIFO matching into pairs + open lots
MetricsAggregator     Portfolio-level scalar metrics
SegmentationAnalyzer  Weekday / day / hour / symbol / strategy breakdown
DistributionAnalyzer  Histogram, concentration and stability score
TiltAnalyzer          Streak-conditional behaviour after losses
EquityCurveAnalyzer   Daily P&L, equity curve and drawdown periods
PairExporter          CSV/JSON export of paired trades
"""

from .distribution import DistributionAnalyzer, DistributionReport
from .equity import EquityCurve, EquityCurveAnalyzer
from .export import PairExporter
from .matcher import LotMatcher, MatchResult
from .metrics import Metrics, MetricsAggregator
from .record import OpenLot, PairedTrade
from .segmentation import EvaluationMetrics, SegmentationAnalyzer
from .tilt import TiltAnalyzer, TiltStats

__all__ = [
    "DistributionAnalyzer",
    "DistributionReport",
    "EquityCurve",
    "EquityCurveAnalyzer",
    "EvaluationMetrics",
    "LotMatcher",
    "MatchResult",
    "Metrics",
    "MetricsAggregator",
    "OpenLot",
    "PairExporter",
    "PairedTrade",
    "SegmentationAnalyzer",
    "TiltAnalyzer",
    "TiltStats",
]
