"""Per-host traffic statistics from pcap and pcapng captures."""

from .analysis import Analyzer, AnalysisResult, analyze, merge_results, top_peers
from .errors import AnalysisError, FormatError, InvalidAddressError

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "AnalysisResult",
    "Analyzer",
    "FormatError",
    "InvalidAddressError",
    "analyze",
    "merge_results",
    "top_peers",
]
