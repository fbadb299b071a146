"""
Round metrics for RoundSim.

This module provides:
- Per-round fill, fee and equity-curve tracking
- Round summaries and session history export
"""

from .round_metrics import (
    RoundMetrics, RoundSummary, summaries_to_dataframe, save_summaries, describe_history,
)

__all__ = [
    'RoundMetrics', 'RoundSummary',
    'summaries_to_dataframe', 'save_summaries', 'describe_history',
]
