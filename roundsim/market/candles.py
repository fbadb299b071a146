"""
OHLC candle aggregation for RoundSim.

Buckets price samples into fixed-width windows keyed by elapsed round time,
independent of any chart rendering.
"""

from collections import deque
from dataclasses import dataclass, asdict
from typing import Deque, List, Optional

import pandas as pd


@dataclass
class Candle:
    """One OHLC record. ``bucket_start`` is an absolute timestamp in ms."""
    bucket_start: float
    open: float
    high: float
    low: float
    close: float

    def update(self, price: float) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price


class CandleAggregator:
    """
    Fixed-interval OHLC aggregator.

    Keeps one open bucket plus a bounded sequence of completed candles;
    the oldest completed candle is evicted once ``max_candles`` is exceeded.
    """

    def __init__(self, interval_ms: int = 15000, max_candles: int = 100):
        if interval_ms <= 0:
            raise ValueError("Candle interval must be positive")

        self.interval_ms = interval_ms
        self.max_candles = max_candles
        self.origin_ms: float = 0.0

        self.completed: Deque[Candle] = deque(maxlen=max_candles)
        self.current: Optional[Candle] = None
        self._current_key: Optional[int] = None

    def bucket_key(self, elapsed_ms: float) -> int:
        return int(elapsed_ms // self.interval_ms) * self.interval_ms

    def reset(self, origin_ms: float = 0.0) -> None:
        """Drop all candles and anchor buckets at ``origin_ms``."""
        self.origin_ms = origin_ms
        self.completed.clear()
        self.current = None
        self._current_key = None

    def update(self, elapsed_ms: float, price: float) -> Optional[Candle]:
        """
        Feed one price sample.

        Returns the candle that was completed by this sample, if any.
        """
        key = self.bucket_key(elapsed_ms)

        if self.current is not None and key == self._current_key:
            self.current.update(price)
            return None

        finished = self._finalize()
        self.current = Candle(
            bucket_start=self.origin_ms + key,
            open=price, high=price, low=price, close=price,
        )
        self._current_key = key
        return finished

    def close(self) -> Optional[Candle]:
        """Finalize the open bucket, e.g. when the round ends."""
        return self._finalize()

    def _finalize(self) -> Optional[Candle]:
        if self.current is None:
            return None
        finished = self.current
        self.completed.append(finished)
        self.current = None
        self._current_key = None
        return finished

    def candles(self, include_open: bool = True) -> List[Candle]:
        """Completed candles, oldest first, optionally followed by the open one."""
        result = list(self.completed)
        if include_open and self.current is not None:
            result.append(self.current)
        return result

    def to_dataframe(self, include_open: bool = True) -> pd.DataFrame:
        """Candles as a DataFrame indexed by bucket start time."""
        rows = [asdict(c) for c in self.candles(include_open)]
        df = pd.DataFrame(rows, columns=['bucket_start', 'open', 'high', 'low', 'close'])
        df['time'] = pd.to_datetime(df['bucket_start'], unit='ms', utc=True)
        return df.set_index('time')

    def __len__(self) -> int:
        return len(self.completed)
