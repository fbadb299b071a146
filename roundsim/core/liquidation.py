"""
Liquidation monitor for RoundSim.

Checks round equity after every tick and fill and wipes the position once
equity is exhausted.
"""

import logging

from .position_ledger import PositionLedger


class LiquidationMonitor:
    """Forces position closure when equity is non-positive with a position open."""

    def __init__(self):
        self.liquidation_count = 0
        self.logger = logging.getLogger(__name__)

    def should_liquidate(self, ledger: PositionLedger, price: float) -> bool:
        return ledger.position.is_open and ledger.equity(price) <= 0

    def check(self, ledger: PositionLedger, price: float) -> bool:
        """
        Evaluate the ledger at ``price``.

        Returns True if this call liquidated the position. A ledger that is
        already liquidated is left alone.
        """
        if ledger.is_liquidated or not self.should_liquidate(ledger, price):
            return False

        self.logger.info(
            f"Liquidating position of {ledger.position.size:.4f} @ {price:.2f} "
            f"(equity {ledger.equity(price):.2f})"
        )
        ledger.liquidate()
        self.liquidation_count += 1
        return True
