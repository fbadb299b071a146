"""
Synthetic price process for RoundSim.

Generates one price sample per tick from a uniform shock, a per-round
drift, the active event's adjustments and a mean-reversion pull near the
edges of the round's price band.
"""

from dataclasses import dataclass

from ..config import MarketConfig
from ..core.random_source import RandomSource


@dataclass
class PriceBand:
    """Price state of a round. ``current`` always lies in [min_price, max_price]."""
    start: float = 100.0
    min_price: float = 50.0
    max_price: float = 150.0
    current: float = 100.0

    def clamp(self, price: float) -> float:
        return max(self.min_price, min(price, self.max_price))

    @property
    def change_pct(self) -> float:
        return (self.current - self.start) / self.start * 100


class PriceProcess:
    """Drift/volatility model clamped to the round band."""

    def __init__(self, config: MarketConfig):
        self.config = config

    def new_band(self) -> PriceBand:
        return PriceBand(
            start=self.config.start_price,
            min_price=self.config.min_price,
            max_price=self.config.max_price,
            current=self.config.start_price,
        )

    def draw_drift(self, rng: RandomSource) -> float:
        """Per-round drift, drawn once at round start."""
        return (rng.random() - 0.5) * self.config.drift_range

    def mean_reversion(self, band: PriceBand) -> float:
        """Corrective drift once price strays past the threshold from start."""
        threshold = self.config.mean_reversion_threshold
        deviation = (band.current - band.start) / band.start

        if deviation > threshold:
            return -(deviation - threshold) * self.config.mean_reversion_strength
        if deviation < -threshold:
            return (-threshold - deviation) * self.config.mean_reversion_strength
        return 0.0

    def next_price(self, band: PriceBand, drift: float, rng: RandomSource,
                   drift_boost: float = 0.0, volatility_multiplier: float = 1.0) -> float:
        """Compute the next price without mutating the band."""
        shock = rng.uniform(-1.0, 1.0) * self.config.base_volatility * volatility_multiplier
        delta = shock + drift + drift_boost + self.mean_reversion(band)
        return band.clamp(band.current * (1 + delta))

    def step(self, band: PriceBand, drift: float, rng: RandomSource,
             drift_boost: float = 0.0, volatility_multiplier: float = 1.0) -> float:
        """Advance ``band.current`` by one tick and return the new price."""
        band.current = self.next_price(band, drift, rng, drift_boost, volatility_multiplier)
        return band.current
