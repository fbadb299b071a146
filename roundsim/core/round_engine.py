"""
Round engine for RoundSim.

The RoundEngine orchestrates a player's session:
- Round lifecycle (start, fixed-period ticks, settlement, restart)
- Trading commands routed to the round's PositionLedger
- Liquidation and bankruptcy handling
- The delayed ad-rescue flow
- Publishing a read-only EngineSnapshot to listeners

Time never comes from the wall clock inside the engine: the host calls
``advance(dt_ms)`` and every tick, restart and rescue runs from the
scheduler at its due time.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Callable, List, Optional, Union
import logging
import math
import time
import uuid

from ..config import Config, create_default_config
from ..account import Account, AccountStore, MemoryAccountStore
from ..feed import NewsFeed, NewsCategory
from ..market.candles import CandleAggregator
from ..market.events import EventRegime
from ..market.price_process import PriceBand, PriceProcess
from ..metrics.round_metrics import RoundMetrics, RoundSummary
from .liquidation import LiquidationMonitor
from .position_ledger import Fill, PositionLedger, RejectReason, TradeResult, TradeSide, valid_leverage
from .random_source import RandomSource
from .scheduler import ScheduledCall, Scheduler
from .snapshot import EngineSnapshot


class RoundPhase(Enum):
    """Engine lifecycle phases."""
    IDLE = "idle"                # No round started yet
    ACTIVE = "active"            # Round running, trading enabled
    LIQUIDATED = "liquidated"    # Round running, position wiped, trading disabled
    ENDING = "ending"            # Round settled, next round scheduled
    BANKRUPT = "bankrupt"        # Settled at zero, waiting for a rescue


@dataclass
class RoundState:
    """State of one round. Discarded when the next round starts."""
    round_id: str
    seed: str
    round_number: int
    started_at_ms: float
    starting_balance: float
    ledger: PositionLedger
    band: PriceBand
    drift: float
    rng: RandomSource
    is_active: bool = True

    @property
    def is_liquidated(self) -> bool:
        return self.ledger.is_liquidated

    @property
    def price(self) -> float:
        return self.band.current


@dataclass
class RescueRequest:
    """A rescue waiting for its external delay to complete."""
    requested_at_ms: float
    due_at_ms: float
    call: ScheduledCall


class RoundEngine:
    """
    Session controller for leveraged trading rounds.

    One instance owns the account, the current round and all timers for a
    player session. Invalid commands never raise; they post an error to
    the news feed and leave state unchanged.
    """

    def __init__(self, config: Optional[Config] = None,
                 store: Optional[AccountStore] = None,
                 rng: Optional[RandomSource] = None,
                 clock_ms: Optional[float] = None):
        """Initialize the engine and load the account."""
        self.config = config or create_default_config()
        self.store = store or MemoryAccountStore()
        self.rng = rng or RandomSource(self.config.round.random_seed)
        self.clock_ms = float(time.time() * 1000 if clock_ms is None else clock_ms)

        # Components
        self.scheduler = Scheduler()
        self.feed = NewsFeed(self.config.feed.max_entries)
        self.price_process = PriceProcess(self.config.market)
        self.events = EventRegime(self.rng, self.config.market.event_probability)
        self.candles = CandleAggregator(self.config.round.candle_interval_ms,
                                        self.config.round.max_candles)
        self.monitor = LiquidationMonitor()

        # Session state
        self.account: Account = self.store.load_or_create(self.config.account.starting_balance)
        self.phase = RoundPhase.IDLE
        self.round: Optional[RoundState] = None
        self.metrics: Optional[RoundMetrics] = None
        self.history: List[RoundSummary] = []
        self.leverage = self.config.trading.min_leverage
        self.pending_rescue: Optional[RescueRequest] = None

        self._tick_call: Optional[ScheduledCall] = None
        self._restart_call: Optional[ScheduledCall] = None

        # Callbacks
        self.tick_callbacks: List[Callable[[EngineSnapshot], None]] = []
        self.settlement_callbacks: List[Callable[[RoundSummary], None]] = []

        # Setup logging
        self.logger = logging.getLogger(__name__)

    # ------------------ Time ------------------

    def advance(self, dt_ms: float) -> None:
        """Move the clock forward, running every scheduled call that falls due."""
        if dt_ms < 0:
            raise ValueError("Cannot advance by a negative duration")

        target = self.clock_ms + dt_ms
        while True:
            call = self.scheduler.pop_due(target)
            if call is None:
                break
            self.clock_ms = max(self.clock_ms, call.due_ms)
            call.callback()
        self.clock_ms = target

    def add_tick_callback(self, callback: Callable[[EngineSnapshot], None]) -> None:
        """Add callback receiving a snapshot after every tick and command."""
        self.tick_callbacks.append(callback)

    def add_settlement_callback(self, callback: Callable[[RoundSummary], None]) -> None:
        """Add callback receiving each round summary at settlement."""
        self.settlement_callbacks.append(callback)

    # ------------------ Lifecycle ------------------

    def start_round(self, seed: Optional[str] = None) -> bool:
        """
        Start a fresh round.

        Refused while a round is running, and while the account is bankrupt
        (zero balance after at least one bankruptcy) until a rescue lands.
        Passing ``seed`` replays that round's drift, price path and events.
        """
        if self.round is not None and self.round.is_active:
            self.logger.warning("start_round called while a round is running")
            return False

        self._cancel_restart()

        if self.account.balance <= 0 and self.account.bankrupt_count > 0:
            self.phase = RoundPhase.BANKRUPT
            self.feed.post("Account bankrupt. Ad Rescue is available.",
                           NewsCategory.SYSTEM, self.clock_ms)
            self._publish()
            return False

        seed = seed or self.rng.token()
        round_rng = RandomSource(seed)
        self.account.round_number += 1

        self.round = RoundState(
            round_id=str(uuid.uuid4())[:8],
            seed=seed,
            round_number=self.account.round_number,
            started_at_ms=self.clock_ms,
            starting_balance=self.account.balance,
            ledger=PositionLedger(self.account.balance, self.leverage, self.config.trading),
            band=self.price_process.new_band(),
            drift=self.price_process.draw_drift(round_rng),
            rng=round_rng,
        )
        self.metrics = RoundMetrics(self.account.balance)
        self.events.reset(round_rng)
        self.candles.reset(origin_ms=self.clock_ms)
        self.phase = RoundPhase.ACTIVE

        self._tick_call = self.scheduler.call_at(
            self.clock_ms + self.config.round.tick_interval_ms, self._tick, 'tick')

        self.logger.info(f"Round {self.round.round_number} started (seed {seed}, "
                         f"cash {self.account.balance:.2f}, leverage {self.leverage}x)")
        self.feed.post("New round started! Good luck!", NewsCategory.SYSTEM, self.clock_ms)
        self._publish()
        return True

    def _tick(self) -> None:
        self._tick_call = None
        current = self.round
        if current is None or not current.is_active:
            return

        elapsed = self.clock_ms - current.started_at_ms
        if elapsed >= self.config.round.round_duration_ms:
            self.end_round()
            return

        # Price, then event regime, then liquidation, then candles
        price = self.price_process.step(current.band, current.drift, current.rng,
                                        self.events.drift_boost,
                                        self.events.volatility_multiplier)

        transition = self.events.step()
        if transition.started is not None:
            self.metrics.record_event(transition.started.name)
            self.feed.post(f"*** {transition.started.name} STARTED ***",
                           NewsCategory.EVENT, self.clock_ms)
        if transition.ended is not None:
            self.feed.post(f"The {transition.ended.label} has ended.",
                           NewsCategory.SYSTEM, self.clock_ms)

        if not current.is_liquidated:
            self._check_liquidation()

        self.candles.update(elapsed, price)
        self.metrics.record_tick(self.clock_ms, price, current.ledger.equity(price))

        self._tick_call = self.scheduler.call_at(
            self.clock_ms + self.config.round.tick_interval_ms, self._tick, 'tick')
        self._publish()

    def _check_liquidation(self) -> bool:
        current = self.round
        if not self.monitor.check(current.ledger, current.price):
            return False

        self.phase = RoundPhase.LIQUIDATED
        self.feed.post("!!! POSITION LIQUIDATED !!!", NewsCategory.ERROR, self.clock_ms)
        return True

    def end_round(self) -> Optional[RoundSummary]:
        """
        Settle the current round into the account.

        Any open position is force-closed at the current price. A settled
        balance at or below zero counts one bankruptcy, clamps the balance
        to zero and does not schedule another round.
        """
        current = self.round
        if current is None or not current.is_active:
            return None

        current.is_active = False
        if self._tick_call is not None:
            self._tick_call.cancel()
            self._tick_call = None

        if current.ledger.position.is_open:
            result = current.ledger.sell_all(current.price, forced=True)
            self._on_fill(result.fill)

        self.candles.close()

        previous_balance = self.account.balance
        final_cash = current.ledger.cash
        self.account.last_round_pnl = final_cash - previous_balance
        self.account.balance = max(final_cash, 0.0)
        if self.account.balance > self.account.all_time_high:
            self.account.all_time_high = self.account.balance

        bankrupt = final_cash <= 0
        if bankrupt:
            self.account.bankrupt_count += 1
            self.phase = RoundPhase.BANKRUPT
            self.feed.post("BANKRUPT! Your account has been wiped out.",
                           NewsCategory.ERROR, self.clock_ms)
        else:
            self.phase = RoundPhase.ENDING
            self.feed.post(f"Round ended. Final cash: ${final_cash:.2f}. Next round starts soon.",
                           NewsCategory.SYSTEM, self.clock_ms)
            self._restart_call = self.scheduler.call_at(
                self.clock_ms + self.config.round.restart_delay_ms, self._auto_restart, 'restart')

        self._persist()

        summary = self.metrics.summary(
            round_number=current.round_number,
            round_id=current.round_id,
            seed=current.seed,
            started_at_ms=current.started_at_ms,
            ended_at_ms=self.clock_ms,
            starting_balance=previous_balance,
            final_cash=final_cash,
            pnl=self.account.last_round_pnl,
            leverage=current.ledger.leverage,
            liquidated=current.is_liquidated,
            bankrupt=bankrupt,
            final_price=current.price,
        )
        self.history.append(summary)
        self.logger.info(f"Round {current.round_number} settled: pnl {summary.pnl:.2f}, "
                         f"balance {self.account.balance:.2f}, bankrupt={bankrupt}")

        for callback in self.settlement_callbacks:
            callback(summary)
        self._publish()
        return summary

    def _auto_restart(self) -> None:
        self._restart_call = None
        self.start_round()

    def _cancel_restart(self) -> None:
        if self._restart_call is not None:
            self._restart_call.cancel()
            self._restart_call = None

    # ------------------ Trading commands ------------------

    def buy(self, quantity: float) -> TradeResult:
        """Buy ``quantity`` at the current price."""
        if not self._round_running():
            return self._reject_trade(RejectReason.NO_ACTIVE_ROUND)

        result = self.round.ledger.buy(quantity, self.round.price)
        if not result.accepted:
            return self._reject_trade(result.reason)

        self._on_fill(result.fill)
        self._check_liquidation()
        self._publish()
        return result

    def sell(self, quantity: float) -> TradeResult:
        """Sell up to ``quantity`` of the open position at the current price."""
        if not self._round_running():
            return self._reject_trade(RejectReason.NO_ACTIVE_ROUND)

        result = self.round.ledger.sell(quantity, self.round.price)
        if not result.accepted:
            return self._reject_trade(result.reason)

        self._on_fill(result.fill)
        self._check_liquidation()
        self._publish()
        return result

    def sell_all(self) -> TradeResult:
        """Panic sell: close the whole position."""
        if not self._round_running():
            return self._reject_trade(RejectReason.NO_ACTIVE_ROUND)
        if self.round.is_liquidated:
            return self._reject_trade(RejectReason.LIQUIDATED)
        if not self.round.ledger.position.is_open:
            return self._reject_trade(RejectReason.NO_POSITION)
        return self.sell(self.round.ledger.position.size)

    def set_leverage(self, leverage: int) -> bool:
        """Set leverage for the current and following rounds; only while flat."""
        if self._round_running():
            reason = self.round.ledger.set_leverage(leverage)
        elif valid_leverage(leverage, self.config.trading):
            reason = None
        else:
            reason = RejectReason.INVALID_LEVERAGE

        if reason is not None:
            self._reject_trade(reason)
            return False

        self.leverage = int(leverage)
        self.feed.post(f"Leverage set to {self.leverage}x", NewsCategory.INFO, self.clock_ms)
        self._publish()
        return True

    def max_buy_quantity(self) -> float:
        if self.phase is not RoundPhase.ACTIVE:
            return 0.0
        return self.round.ledger.max_buy_quantity(self.round.price)

    def _round_running(self) -> bool:
        return self.round is not None and self.round.is_active

    def _on_fill(self, fill: Fill) -> None:
        self.metrics.record_fill(fill)
        if fill.side is TradeSide.BUY:
            self.feed.post(f"Bought {fill.quantity:g} @ ${fill.price:.2f}",
                           NewsCategory.BUY, self.clock_ms)
        else:
            prefix = "Force-closed" if fill.forced else "Sold"
            self.feed.post(f"{prefix} {fill.quantity:g} @ ${fill.price:.2f}",
                           NewsCategory.SELL, self.clock_ms)

    def _reject_trade(self, reason: RejectReason) -> TradeResult:
        self.feed.post(reason.value, NewsCategory.ERROR, self.clock_ms)
        return TradeResult(reason=reason)

    # ------------------ Ad rescue ------------------

    def rescue_cooldown_remaining_ms(self) -> float:
        usage = self.account.ad_rescue
        if usage.count == 0:
            return 0.0
        return max(0.0, usage.last_used_at + self.config.rescue.cooldown_ms - self.clock_ms)

    def _rescue_uses_today(self, now_ms: float) -> int:
        usage = self.account.ad_rescue
        if now_ms - usage.last_used_at > self.config.rescue.reset_window_ms:
            return 0
        return usage.count

    def request_rescue(self) -> bool:
        """
        Ask for an ad rescue.

        Only available once the round has been liquidated or the account is
        bankrupt. On acceptance the rescue completes after the configured
        delay, credits the account and starts a new round.
        """
        if self.pending_rescue is not None:
            return self._reject_rescue("Ad Rescue already in progress.")

        if self.phase not in (RoundPhase.LIQUIDATED, RoundPhase.BANKRUPT):
            return self._reject_rescue("Ad Rescue is only available after a liquidation.")

        cooldown_left = self.rescue_cooldown_remaining_ms()
        if cooldown_left > 0:
            return self._reject_rescue(f"Ad Rescue on cooldown for {math.ceil(cooldown_left / 1000)}s")

        if self._rescue_uses_today(self.clock_ms) >= self.config.rescue.daily_limit:
            return self._reject_rescue("Ad Rescue daily limit reached.")

        due = self.clock_ms + self.config.rescue.delay_ms
        self.pending_rescue = RescueRequest(
            requested_at_ms=self.clock_ms,
            due_at_ms=due,
            call=self.scheduler.call_at(due, self._complete_rescue, 'rescue'),
        )
        self.logger.info(f"Ad rescue requested, completes at {due:.0f}")
        self.feed.post("Watching ad...", NewsCategory.INFO, self.clock_ms)
        self._publish()
        return True

    def cancel_rescue(self) -> bool:
        if self.pending_rescue is None:
            return False
        self.pending_rescue.call.cancel()
        self.pending_rescue = None
        self.feed.post("Ad Rescue cancelled.", NewsCategory.INFO, self.clock_ms)
        self._publish()
        return True

    def _complete_rescue(self) -> None:
        request = self.pending_rescue
        self.pending_rescue = None
        if request is None:
            return

        # A liquidated round still running is settled before the credit
        if self._round_running():
            self.end_round()

        usage = self.account.ad_rescue
        usage.count = self._rescue_uses_today(request.requested_at_ms) + 1
        usage.last_used_at = request.requested_at_ms
        self.account.balance += self.config.rescue.amount
        self._persist()

        self.logger.info(f"Ad rescue credited {self.config.rescue.amount:.2f}")
        self.feed.post(f"Ad Rescue successful! +${self.config.rescue.amount:.0f}",
                       NewsCategory.SYSTEM, self.clock_ms)
        self.start_round()

    def _persist(self) -> None:
        try:
            self.store.save(self.account)
        except Exception as e:
            self.logger.warning(f"Account save failed: {e}")
            self.feed.post("Could not save account. Progress may be lost.",
                           NewsCategory.ERROR, self.clock_ms)

    def _reject_rescue(self, message: str) -> bool:
        self.feed.post(message, NewsCategory.ERROR, self.clock_ms)
        return False

    # ------------------ Read model ------------------

    def snapshot(self) -> EngineSnapshot:
        """Build the current read model."""
        snap = EngineSnapshot(
            timestamp_ms=self.clock_ms,
            phase=self.phase.value,
            leverage=self.leverage,
            account_balance=self.account.balance,
            all_time_high=self.account.all_time_high,
            bankrupt_count=self.account.bankrupt_count,
            last_round_pnl=self.account.last_round_pnl,
            rescue_cooldown_ms=self.rescue_cooldown_remaining_ms(),
            rescue_pending=self.pending_rescue is not None,
            candles=self.candles.candles(include_open=False),
            open_candle=self.candles.current,
        )

        if self._restart_call is not None:
            snap.next_round_in_ms = max(0.0, self._restart_call.due_ms - self.clock_ms)

        current = self.round
        if current is not None:
            ledger = current.ledger
            price = current.price
            snap.round_number = current.round_number
            snap.round_seed = current.seed
            snap.price = price
            snap.round_cash = ledger.cash
            snap.position_size = ledger.position.size
            snap.avg_entry_price = ledger.position.avg_entry_price
            snap.leverage = ledger.leverage
            snap.unrealized_pnl = ledger.unrealized_pnl(price)
            snap.unrealized_pnl_pct = ledger.unrealized_pnl_pct(price)
            snap.margin_used = ledger.margin_used()
            snap.equity = ledger.equity(price)
            snap.liquidation_price = ledger.liquidation_price()
            snap.max_buy_quantity = self.max_buy_quantity()
            snap.is_liquidated = current.is_liquidated
            snap.active_event = self.events.active.name if self.events.active else None
            if current.is_active:
                elapsed = self.clock_ms - current.started_at_ms
                snap.remaining_ms = max(0.0, self.config.round.round_duration_ms - elapsed)

        return snap

    def _publish(self) -> None:
        if not self.tick_callbacks:
            return
        snap = self.snapshot()
        for callback in self.tick_callbacks:
            callback(snap)


def create_engine(config: Optional[Config] = None,
                  storage_path: Optional[Union[str, bool]] = None,
                  **kwargs) -> RoundEngine:
    """
    Create an engine backed by the configured JSON account store.

    ``storage_path=False`` keeps the account in memory.
    """
    from ..account import JsonFileAccountStore

    config = config or create_default_config()
    if storage_path is False:
        store = MemoryAccountStore()
    else:
        store = JsonFileAccountStore(storage_path or config.account.storage_path,
                                     config.account.storage_key)
    return RoundEngine(config=config, store=store, **kwargs)
