"""
Synthetic market for RoundSim.

This module handles:
- Price path generation with drift, shocks and edge mean reversion
- The regime-switching market event overlay
- Fixed-interval OHLC candle aggregation
"""

from .price_process import PriceProcess, PriceBand
from .events import MarketEvent, ActiveEvent, EventRegime, EventTransition
from .candles import Candle, CandleAggregator

__all__ = [
    'PriceProcess', 'PriceBand',
    'MarketEvent', 'ActiveEvent', 'EventRegime', 'EventTransition',
    'Candle', 'CandleAggregator',
]
