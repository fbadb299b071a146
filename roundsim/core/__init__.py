"""
Core round engine for RoundSim.

This module contains the round orchestration components:
- RoundEngine: Session controller driving rounds, trades and rescues
- PositionLedger: Leveraged single-position cash and margin book
- LiquidationMonitor: Equity check forcing position wipe-out
- Scheduler / RandomSource: Explicit time and randomness sources
"""

from .random_source import RandomSource
from .scheduler import Scheduler, ScheduledCall
from .position_ledger import (
    PositionLedger, Position, Fill, TradeResult, TradeSide, RejectReason,
)
from .liquidation import LiquidationMonitor
from .snapshot import EngineSnapshot
from .round_engine import RoundEngine, RoundPhase, RoundState, RescueRequest, create_engine

__all__ = [
    'RoundEngine', 'RoundPhase', 'RoundState', 'RescueRequest', 'create_engine',
    'PositionLedger', 'Position', 'Fill', 'TradeResult', 'TradeSide', 'RejectReason',
    'LiquidationMonitor', 'EngineSnapshot',
    'RandomSource', 'Scheduler', 'ScheduledCall',
]
