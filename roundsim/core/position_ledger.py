"""
Leveraged position ledger for RoundSim.

Owns a round's cash, single long position, average entry price and
leverage. Buys and sells fill immediately at the current price adjusted
for slippage, pay a proportional fee, and move margin between cash and
the position.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional
import math

from ..config import TradingConfig


class TradeSide(Enum):
    """Order sides."""
    BUY = "buy"
    SELL = "sell"


class RejectReason(Enum):
    """Why a trading command was refused. Values are user-facing."""
    LIQUIDATED = "Trading disabled: position liquidated."
    INVALID_QUANTITY = "Quantity must be a positive number."
    INSUFFICIENT_CASH = "Not enough cash to buy."
    NO_POSITION = "No open position to sell."
    POSITION_OPEN = "Close your position before changing leverage."
    INVALID_LEVERAGE = "Leverage out of range."
    NO_ACTIVE_ROUND = "No active round."


@dataclass
class Position:
    """Single long position. ``size == 0`` implies ``avg_entry_price == 0``."""
    size: float = 0.0
    avg_entry_price: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.size > 0


@dataclass
class Fill:
    """Executed market fill."""
    side: TradeSide
    quantity: float
    price: float
    notional: float
    fee: float
    margin: float
    realized_pnl: float = 0.0
    forced: bool = False


@dataclass
class TradeResult:
    """Outcome of a trading command: either a fill or a rejection reason."""
    fill: Optional[Fill] = None
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.fill is not None


class PositionLedger:
    """
    Cash and position book for one round.

    All commands are total: invalid requests return a rejected TradeResult
    and leave the ledger untouched.
    """

    def __init__(self, cash: float, leverage: int = 1,
                 config: Optional[TradingConfig] = None):
        self.config = config or TradingConfig()
        self.cash = float(cash)
        self.leverage = int(leverage)
        self.position = Position()
        self.is_liquidated = False

    # ------------------ Trading ------------------

    def buy(self, quantity: float, price: float) -> TradeResult:
        """Open or add to the position at ``price`` plus slippage."""
        if self.is_liquidated:
            return TradeResult(reason=RejectReason.LIQUIDATED)
        if not _is_positive(quantity):
            return TradeResult(reason=RejectReason.INVALID_QUANTITY)

        fill_price = price * (1 + self.config.slippage)
        notional = quantity * fill_price
        margin = notional / self.leverage
        fee = notional * self.config.fee_rate

        if self.cash < margin + fee:
            return TradeResult(reason=RejectReason.INSUFFICIENT_CASH)

        self.cash -= margin + fee
        old_size = self.position.size
        self.position.avg_entry_price = (
            (self.position.avg_entry_price * old_size + fill_price * quantity)
            / (old_size + quantity)
        )
        self.position.size = old_size + quantity

        fill = Fill(side=TradeSide.BUY, quantity=quantity, price=fill_price,
                    notional=notional, fee=fee, margin=margin)
        return TradeResult(fill=fill)

    def sell(self, quantity: float, price: float, forced: bool = False) -> TradeResult:
        """Reduce the position at ``price`` minus slippage, realizing P&L."""
        if self.is_liquidated:
            return TradeResult(reason=RejectReason.LIQUIDATED)
        if not _is_positive(quantity):
            return TradeResult(reason=RejectReason.INVALID_QUANTITY)
        if not self.position.is_open:
            return TradeResult(reason=RejectReason.NO_POSITION)

        quantity = min(quantity, self.position.size)
        entry = self.position.avg_entry_price

        fill_price = price * (1 - self.config.slippage)
        notional = quantity * fill_price
        fee = notional * self.config.fee_rate
        pnl = quantity * (fill_price - entry) * self.leverage
        released = quantity * entry / self.leverage

        self.cash += released + pnl - fee
        self.position.size -= quantity
        if self.position.size < self.config.dust_epsilon:
            self.position = Position()

        fill = Fill(side=TradeSide.SELL, quantity=quantity, price=fill_price,
                    notional=notional, fee=fee, margin=released,
                    realized_pnl=pnl, forced=forced)
        return TradeResult(fill=fill)

    def sell_all(self, price: float, forced: bool = False) -> TradeResult:
        return self.sell(self.position.size, price, forced=forced)

    def set_leverage(self, leverage: int) -> Optional[RejectReason]:
        """Change leverage; only allowed while flat. Returns a reason on refusal."""
        if self.position.is_open:
            return RejectReason.POSITION_OPEN
        if not valid_leverage(leverage, self.config):
            return RejectReason.INVALID_LEVERAGE
        self.leverage = int(leverage)
        return None

    def liquidate(self) -> None:
        """Wipe cash and position (total loss of margin) and lock trading."""
        self.cash = 0.0
        self.position = Position()
        self.is_liquidated = True

    # ------------------ Valuation ------------------

    def unrealized_pnl(self, price: float) -> float:
        if not self.position.is_open:
            return 0.0
        return self.position.size * (price - self.position.avg_entry_price) * self.leverage

    def margin_used(self) -> float:
        return self.position.size * self.position.avg_entry_price / self.leverage

    def equity(self, price: float) -> float:
        return self.cash + self.unrealized_pnl(price)

    def unrealized_pnl_pct(self, price: float) -> float:
        """Unrealized P&L as a percent of margin used."""
        margin = self.margin_used()
        if margin == 0:
            return 0.0
        return self.unrealized_pnl(price) / margin * 100

    def liquidation_price(self) -> Optional[float]:
        """Price at which equity reaches zero, or None when flat."""
        if not self.position.is_open:
            return None
        return self.position.avg_entry_price - self.cash / (self.position.size * self.leverage)

    def max_buy_quantity(self, price: float, decimals: int = 4) -> float:
        """Largest quantity a buy at ``price`` can currently afford."""
        if self.is_liquidated or self.cash <= 0:
            return 0.0
        fill_price = price * (1 + self.config.slippage)
        per_unit = fill_price / self.leverage + fill_price * self.config.fee_rate
        scale = 10 ** decimals
        return math.floor(self.cash / per_unit * scale) / scale


def _is_positive(quantity) -> bool:
    try:
        return math.isfinite(quantity) and quantity > 0
    except TypeError:
        return False


def valid_leverage(leverage, config: TradingConfig) -> bool:
    try:
        value = int(leverage)
    except (TypeError, ValueError, OverflowError):
        return False
    return value == leverage and config.min_leverage <= value <= config.max_leverage
