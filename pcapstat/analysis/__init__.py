"""Target-relative traffic aggregation over decoded capture frames."""

from .engine import Analyzer, analyze, parse_target
from .result import DEFAULT_TOP_PEERS, AnalysisResult, merge_results, top_peers

__all__ = [
    "AnalysisResult",
    "Analyzer",
    "DEFAULT_TOP_PEERS",
    "analyze",
    "merge_results",
    "parse_target",
    "top_peers",
]
