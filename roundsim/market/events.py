"""
Event regime overlay for the synthetic price process.

Market events bias drift and amplify volatility for a random number of
ticks. At most one event is active at a time; activation attempts are
skipped while one is running.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from ..core.random_source import RandomSource


class MarketEvent(Enum):
    """Fixed catalog of market events.

    Each member carries (label, drift boost, volatility multiplier,
    inclusive duration range in ticks).
    """
    WHALE_PUMP = ("Whale Pump", 0.0005, 1.8, (12, 25))
    RUG_FEAR_DUMP = ("Rug Fear Dump", -0.0006, 2.2, (12, 25))
    EXCHANGE_LAG = ("Exchange Lag", 0.0, 4.0, (8, 15))
    INFLUENCER_FOMO = ("Influencer FOMO", 0.0008, 2.5, (15, 30))
    LIQUIDATION_CASCADE = ("Liquidation Cascade", -0.0009, 3.5, (10, 20))

    def __init__(self, label: str, drift_boost: float,
                 volatility_multiplier: float, duration_range: Tuple[int, int]):
        self.label = label
        self.drift_boost = drift_boost
        self.volatility_multiplier = volatility_multiplier
        self.duration_range = duration_range


@dataclass
class ActiveEvent:
    """An event currently perturbing the price process."""
    event: MarketEvent
    ticks_remaining: int

    @property
    def name(self) -> str:
        return self.event.label

    @property
    def drift_boost(self) -> float:
        return self.event.drift_boost

    @property
    def volatility_multiplier(self) -> float:
        return self.event.volatility_multiplier


@dataclass
class EventTransition:
    """Result of one regime step: which event started or ended, if any."""
    started: Optional[ActiveEvent] = None
    ended: Optional[MarketEvent] = None


class EventRegime:
    """
    Regime-switching overlay.

    Each tick either counts down the active event or, with a fixed
    probability, activates a uniformly chosen event from the catalog.
    """

    def __init__(self, rng: RandomSource, activation_probability: float = 0.015):
        self.rng = rng
        self.activation_probability = activation_probability
        self.active: Optional[ActiveEvent] = None
        self.logger = logging.getLogger(__name__)

    @property
    def drift_boost(self) -> float:
        return self.active.drift_boost if self.active else 0.0

    @property
    def volatility_multiplier(self) -> float:
        return self.active.volatility_multiplier if self.active else 1.0

    def step(self) -> EventTransition:
        """Advance the regime by one tick."""
        if self.active is not None:
            self.active.ticks_remaining -= 1
            if self.active.ticks_remaining <= 0:
                ended = self.active.event
                self.active = None
                self.logger.debug(f"Event ended: {ended.label}")
                return EventTransition(ended=ended)
            return EventTransition()

        if self.rng.random() < self.activation_probability:
            catalog = list(MarketEvent)
            event = catalog[self.rng.index(len(catalog))]
            low, high = event.duration_range
            self.active = ActiveEvent(event=event, ticks_remaining=self.rng.integers(low, high))
            self.logger.debug(f"Event started: {event.label} for {self.active.ticks_remaining} ticks")
            return EventTransition(started=self.active)

        return EventTransition()

    def reset(self, rng: Optional[RandomSource] = None) -> None:
        """Clear any active event, optionally rebinding the random source."""
        self.active = None
        if rng is not None:
            self.rng = rng
