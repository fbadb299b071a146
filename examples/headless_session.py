#!/usr/bin/env python3
"""
Headless RoundSim session example.

This example demonstrates:
- Creating an engine with an in-memory account
- Driving it with synthetic time via advance()
- Trading through the command surface
- Reading snapshots, the news feed and round history
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
import numpy as np

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

def main():
    """Run a short scripted session."""
    print("=" * 60)
    print("RoundSim - Headless Session Example")
    print("=" * 60)

    from roundsim import print_system_info
    from roundsim.config import create_default_config
    from roundsim.core import RoundEngine, RandomSource
    from roundsim.players import RandomPlayer
    from roundsim.metrics import describe_history

    print_system_info()
    print()

    # Shorter rounds for the example
    config = create_default_config()
    config.round.round_duration_ms = 60000

    engine = RoundEngine(config=config, rng=RandomSource(7), clock_ms=0.0)
    player = RandomPlayer(seed=7, activity=0.1, auto_rescue=True)
    player.attach(engine)

    engine.start_round()

    # Manual trades on top of the scripted player
    engine.set_leverage(1)
    engine.buy(10)
    engine.advance(10000)
    snap = engine.snapshot()
    print(f"After 10s: price {snap.price:.2f}, position {snap.position_size:.4f}, "
          f"uPnL ${snap.unrealized_pnl:.2f} ({snap.unrealized_pnl_pct:.2f}%), "
          f"remaining {snap.remaining_label}")

    # Play five rounds
    while len(engine.history) < 5:
        engine.advance(config.round.tick_interval_ms)
        if engine.phase.value == 'bankrupt' and engine.pending_rescue is None:
            break

    print()
    print("Recent news:")
    for item in engine.feed.items()[:10]:
        print(f"  [{item.category.value:>6}] {item.message}")

    print()
    print("=" * 40)
    print("SESSION RESULTS")
    print("=" * 40)
    stats = describe_history(engine.history)
    pnls = [s.pnl for s in engine.history]
    print(f"Rounds settled: {stats.get('rounds', 0)}")
    if pnls:
        print(f"  PnL - Mean: ${np.mean(pnls):.2f}, Min: ${np.min(pnls):.2f}, Max: ${np.max(pnls):.2f}")
    print(f"  Balance: ${engine.account.balance:.2f}, bankruptcies: {engine.account.bankrupt_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
