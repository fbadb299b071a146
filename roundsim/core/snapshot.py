"""
Read model published to UI collaborators after every tick and command.
"""

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from ..market.candles import Candle


def format_remaining(remaining_ms: float) -> str:
    """Format a duration in ms as ``MM:SS``."""
    total_seconds = int(max(0.0, remaining_ms) // 1000)
    return f"{total_seconds // 60:02d}:{total_seconds % 60:02d}"


@dataclass
class EngineSnapshot:
    """Immutable view of engine state at one instant."""
    timestamp_ms: float
    phase: str

    # Round
    round_number: int = 0
    round_seed: Optional[str] = None
    price: float = 0.0
    round_cash: float = 0.0
    position_size: float = 0.0
    avg_entry_price: float = 0.0
    leverage: int = 1
    unrealized_pnl: float = 0.0
    unrealized_pnl_pct: float = 0.0
    margin_used: float = 0.0
    equity: float = 0.0
    liquidation_price: Optional[float] = None
    max_buy_quantity: float = 0.0
    is_liquidated: bool = False
    remaining_ms: float = 0.0
    active_event: Optional[str] = None

    # Account
    account_balance: float = 0.0
    all_time_high: float = 0.0
    bankrupt_count: int = 0
    last_round_pnl: float = 0.0

    # Rescue and scheduling
    rescue_cooldown_ms: float = 0.0
    rescue_pending: bool = False
    next_round_in_ms: Optional[float] = None

    # Chart
    candles: List[Candle] = field(default_factory=list)
    open_candle: Optional[Candle] = None

    @property
    def remaining_label(self) -> str:
        return format_remaining(self.remaining_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['remaining_label'] = self.remaining_label
        return data
