"""
Scripted players that drive a RoundEngine through its command surface.

Used by the CLI to run headless sessions and by tests to exercise whole
rounds without a UI.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

from .core.random_source import RandomSource
from .core.snapshot import EngineSnapshot


class Player(ABC):
    """Base class for scripted players."""

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.actions = 0
        self.engine = None
        self.logger = logging.getLogger(__name__)

    def attach(self, engine) -> None:
        """Subscribe to the engine's read model."""
        self.engine = engine
        engine.add_tick_callback(self.on_snapshot)

    @abstractmethod
    def on_snapshot(self, snapshot: EngineSnapshot) -> None:
        """Called after every tick and command."""

    def get_state(self) -> Dict[str, Any]:
        return {'name': self.name, 'actions': self.actions}


class IdlePlayer(Player):
    """Never trades; useful for watching price paths."""

    def on_snapshot(self, snapshot: EngineSnapshot) -> None:
        pass


class RandomPlayer(Player):
    """
    Trades at random.

    On each tick, with probability ``activity``, it buys a random fraction
    of its affordable size or sells a random fraction of its position.
    While flat it occasionally picks a new leverage.
    """

    def __init__(self, seed: Optional[int] = None, activity: float = 0.05,
                 max_fraction: float = 0.5, max_leverage: int = 10,
                 auto_rescue: bool = False, name: Optional[str] = None):
        super().__init__(name)
        self.rng = RandomSource(seed)
        self.activity = activity
        self.max_fraction = max_fraction
        self.max_leverage = max_leverage
        self.auto_rescue = auto_rescue
        self._busy = False

    def on_snapshot(self, snapshot: EngineSnapshot) -> None:
        # Commands publish snapshots too; ignore those re-entrant calls
        if self._busy:
            return
        self._busy = True
        try:
            self._act(snapshot)
        finally:
            self._busy = False

    def _act(self, snapshot: EngineSnapshot) -> None:
        if snapshot.phase == 'bankrupt' or snapshot.is_liquidated:
            if self.auto_rescue and not snapshot.rescue_pending and snapshot.rescue_cooldown_ms == 0:
                if not self.engine.request_rescue():
                    self.logger.info(f"{self.name}: rescue refused, giving up on rescues")
                    self.auto_rescue = False
            return

        if snapshot.phase != 'active' or self.rng.random() >= self.activity:
            return

        self.actions += 1
        if snapshot.position_size == 0 and self.rng.random() < 0.2:
            self.engine.set_leverage(self.rng.integers(1, self.max_leverage))
            return

        fraction = self.rng.uniform(0.05, self.max_fraction)
        if snapshot.position_size > 0 and self.rng.random() < 0.5:
            self.engine.sell(round(snapshot.position_size * fraction, 4) or snapshot.position_size)
        elif snapshot.max_buy_quantity > 0:
            quantity = round(snapshot.max_buy_quantity * fraction, 4)
            if quantity > 0:
                self.engine.buy(quantity)
