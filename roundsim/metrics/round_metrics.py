"""
Per-round performance metrics for RoundSim.

Tracks fills, fees, the equity curve and drawdown over one round and
produces a flat RoundSummary at settlement.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path
import logging

import numpy as np
import pandas as pd

from ..core.position_ledger import Fill, TradeSide

logger = logging.getLogger(__name__)


@dataclass
class RoundSummary:
    """Flat record of one settled round."""
    round_number: int
    round_id: str
    seed: str
    started_at_ms: float
    ended_at_ms: float
    starting_balance: float
    final_cash: float
    pnl: float
    leverage: int
    buys: int
    sells: int
    forced_sells: int
    total_fees: float
    realized_pnl: float
    max_drawdown: float
    peak_equity: float
    liquidated: bool
    bankrupt: bool
    events: int
    final_price: float
    price_high: float
    price_low: float


class RoundMetrics:
    """
    Metrics collector for a single round.

    Drawdown is measured on the tick-by-tick equity curve as the largest
    fall from a running peak, expressed as a negative fraction of that peak.
    """

    def __init__(self, starting_cash: float):
        self.starting_cash = starting_cash

        self.fills: List[Fill] = []
        self.equity_curve: List[Tuple[float, float]] = []
        self.prices: List[float] = []
        self.event_names: List[str] = []

        self.total_fees = 0.0
        self.realized_pnl = 0.0

    def record_fill(self, fill: Fill) -> None:
        self.fills.append(fill)
        self.total_fees += fill.fee
        self.realized_pnl += fill.realized_pnl

    def record_tick(self, timestamp_ms: float, price: float, equity: float) -> None:
        self.prices.append(price)
        self.equity_curve.append((timestamp_ms, equity))

    def record_event(self, name: str) -> None:
        self.event_names.append(name)

    def count(self, side: TradeSide, forced: Optional[bool] = None) -> int:
        return sum(1 for f in self.fills
                   if f.side is side and (forced is None or f.forced == forced))

    @property
    def peak_equity(self) -> float:
        if not self.equity_curve:
            return self.starting_cash
        return float(max(self.starting_cash, np.max([e for _, e in self.equity_curve])))

    @property
    def max_drawdown(self) -> float:
        if not self.equity_curve:
            return 0.0
        equity = np.array([self.starting_cash] + [e for _, e in self.equity_curve], dtype=float)
        peaks = np.maximum.accumulate(equity)
        with np.errstate(divide='ignore', invalid='ignore'):
            drawdowns = np.where(peaks > 0, (equity - peaks) / peaks, 0.0)
        return float(np.min(drawdowns))

    def summary(self, **fields: Any) -> RoundSummary:
        """Build the round summary; ``fields`` supplies round identity and outcome."""
        prices = self.prices or [fields.get('final_price', 0.0)]
        return RoundSummary(
            buys=self.count(TradeSide.BUY),
            sells=self.count(TradeSide.SELL),
            forced_sells=self.count(TradeSide.SELL, forced=True),
            total_fees=self.total_fees,
            realized_pnl=self.realized_pnl,
            max_drawdown=self.max_drawdown,
            peak_equity=self.peak_equity,
            events=len(self.event_names),
            price_high=float(np.max(prices)),
            price_low=float(np.min(prices)),
            **fields,
        )


def summaries_to_dataframe(summaries: List[RoundSummary]) -> pd.DataFrame:
    columns = list(RoundSummary.__dataclass_fields__)
    return pd.DataFrame([asdict(s) for s in summaries], columns=columns)


def save_summaries(summaries: List[RoundSummary], output_path) -> Path:
    """Save round history as Parquet (``.parquet``) or CSV."""
    df = summaries_to_dataframe(summaries)

    output_path = Path(output_path)
    if output_path.suffix == '.parquet':
        df.to_parquet(output_path)
    else:
        df.to_csv(output_path, index=False)

    logger.info(f"Round history saved to {output_path}")
    return output_path


def describe_history(summaries: List[RoundSummary]) -> Dict[str, Any]:
    """Aggregate statistics across settled rounds."""
    if not summaries:
        return {}

    pnls = np.array([s.pnl for s in summaries])
    return {
        "rounds": len(summaries),
        "bankruptcies": sum(1 for s in summaries if s.bankrupt),
        "liquidations": sum(1 for s in summaries if s.liquidated),
        "pnl_statistics": {
            "mean": float(np.mean(pnls)),
            "std": float(np.std(pnls)),
            "min": float(np.min(pnls)),
            "max": float(np.max(pnls)),
            "total": float(np.sum(pnls)),
        },
        "total_fees": float(sum(s.total_fees for s in summaries)),
        "worst_drawdown": float(min(s.max_drawdown for s in summaries)),
    }
