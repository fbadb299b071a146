"""
RoundSim - Leveraged Trading Round Simulator

Simulates short leveraged-trading rounds against a synthetic, event-perturbed
price path, tracking cash, position, margin, liquidation and account-level
bankruptcy across rounds.
"""

__version__ = "0.1.0"
__author__ = "RoundSim Team"
__license__ = "Apache 2.0"

# Core imports
from .core import RoundEngine, RoundPhase, PositionLedger, LiquidationMonitor, RandomSource
from .market import PriceProcess, EventRegime, MarketEvent, CandleAggregator, Candle
from .account import Account, AccountStore, JsonFileAccountStore, MemoryAccountStore
from .feed import NewsFeed, NewsCategory
from .metrics import RoundMetrics, RoundSummary

def print_system_info():
    """Print version and default game parameters."""
    from .config import create_default_config
    config = create_default_config()

    print(f"RoundSim v{__version__}")
    print("=" * 40)
    print(f"Round duration: {config.round.round_duration_ms / 1000:.0f}s")
    print(f"Tick interval:  {config.round.tick_interval_ms}ms")
    print(f"Price band:     {config.market.min_price:.0f}-{config.market.max_price:.0f}")
    print(f"Leverage:       {config.trading.min_leverage}x-{config.trading.max_leverage}x")
    print("=" * 40)

# Convenience functions
def create_simulation(config_path=None, **kwargs):
    """Create a new engine, optionally from a configuration file."""
    from .core import create_engine
    from .config import load_config

    if config_path:
        kwargs['config'] = load_config(config_path)

    return create_engine(**kwargs)

__all__ = [
    # Version info
    '__version__', '__author__', '__license__',

    # Core components
    'RoundEngine', 'RoundPhase', 'PositionLedger', 'LiquidationMonitor', 'RandomSource',
    'PriceProcess', 'EventRegime', 'MarketEvent', 'CandleAggregator', 'Candle',
    'Account', 'AccountStore', 'JsonFileAccountStore', 'MemoryAccountStore',
    'NewsFeed', 'NewsCategory', 'RoundMetrics', 'RoundSummary',

    # Convenience functions
    'print_system_info', 'create_simulation',
]
