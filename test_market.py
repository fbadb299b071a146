"""
Synthetic market tests for RoundSim: price process, event regime and candles.
"""

import pytest

from roundsim.config import MarketConfig
from roundsim.core import RandomSource
from roundsim.market import (
    CandleAggregator, EventRegime, MarketEvent, PriceBand, PriceProcess,
)


class StubRandom:
    """Fixed draws, so single steps can be checked by hand."""

    def __init__(self, random=0.5, uniform=0.0, index=0, integers=None):
        self._random = random
        self._uniform = uniform
        self._index = index
        self._integers = integers
        self.random_calls = 0

    def random(self):
        self.random_calls += 1
        return self._random

    def uniform(self, low, high):
        return self._uniform

    def index(self, n):
        return self._index

    def integers(self, low, high):
        return low if self._integers is None else self._integers


# ------------------ Price process ------------------

def test_new_band_uses_configured_constants():
    band = PriceProcess(MarketConfig()).new_band()
    assert band.start == band.current == 100.0
    assert (band.min_price, band.max_price) == (50.0, 150.0)
    assert band.change_pct == 0.0


def test_single_step_matches_formula():
    process = PriceProcess(MarketConfig())
    band = process.new_band()

    price = process.step(band, drift=0.0001, rng=StubRandom(uniform=0.5))
    assert price == pytest.approx(100 * (1 + 0.5 * 0.006 + 0.0001))
    assert band.current == price


def test_event_modifiers_scale_shock_and_drift():
    process = PriceProcess(MarketConfig())
    band = process.new_band()

    price = process.next_price(band, drift=0.0, rng=StubRandom(uniform=0.5),
                               drift_boost=0.0005, volatility_multiplier=2.0)
    assert price == pytest.approx(100 * (1 + 0.006 + 0.0005))
    # next_price does not mutate
    assert band.current == 100.0


@pytest.mark.parametrize("current,expected", [
    (150.0, -(0.5 - 0.45) * 0.02),
    (50.0, (0.5 - 0.45) * 0.02),
    (120.0, 0.0),
    (100.0, 0.0),
])
def test_mean_reversion(current, expected):
    process = PriceProcess(MarketConfig())
    band = PriceBand(current=current)
    assert process.mean_reversion(band) == pytest.approx(expected)


def test_price_clamped_at_band_edges():
    process = PriceProcess(MarketConfig())

    high = PriceBand(current=149.9)
    assert process.step(high, 0.0, StubRandom(uniform=1.0)) == 150.0

    low = PriceBand(current=50.1)
    assert process.step(low, 0.0, StubRandom(uniform=-1.0)) == 50.0


def test_band_invariant_under_extreme_volatility():
    process = PriceProcess(MarketConfig(base_volatility=0.2))
    band = process.new_band()
    rng = RandomSource(11)

    for _ in range(5000):
        price = process.step(band, 0.01, rng, drift_boost=0.0009, volatility_multiplier=4.0)
        assert 50.0 <= price <= 150.0


def test_drift_within_range():
    process = PriceProcess(MarketConfig())
    rng = RandomSource(3)
    drifts = [process.draw_drift(rng) for _ in range(500)]
    assert all(-0.0002 <= d <= 0.0002 for d in drifts)


def test_same_seed_same_path():
    process = PriceProcess(MarketConfig())

    def path(seed):
        band = process.new_band()
        rng = RandomSource(seed)
        drift = process.draw_drift(rng)
        return [process.step(band, drift, rng) for _ in range(200)]

    assert path("k3x9") == path("k3x9")
    assert path("k3x9") != path("k3xa")


# ------------------ Event regime ------------------

def test_catalog():
    assert len(MarketEvent) == 5
    assert MarketEvent.WHALE_PUMP.label == "Whale Pump"
    assert MarketEvent.EXCHANGE_LAG.drift_boost == 0.0
    assert MarketEvent.EXCHANGE_LAG.volatility_multiplier == 4.0
    assert MarketEvent.INFLUENCER_FOMO.duration_range == (15, 30)
    assert MarketEvent.LIQUIDATION_CASCADE.drift_boost == -0.0009


def test_neutral_modifiers_without_event():
    regime = EventRegime(StubRandom(random=0.99))
    assert regime.step().started is None
    assert regime.drift_boost == 0.0
    assert regime.volatility_multiplier == 1.0


def test_event_lifecycle():
    rng = StubRandom(random=0.0, index=0)
    regime = EventRegime(rng)

    transition = regime.step()
    assert transition.started is not None
    assert transition.started.event is MarketEvent.WHALE_PUMP
    assert transition.started.ticks_remaining == 12
    assert regime.drift_boost == 0.0005
    assert regime.volatility_multiplier == 1.8

    # Runs for its duration; no second activation while active
    draws_before = rng.random_calls
    for _ in range(11):
        transition = regime.step()
        assert transition.started is None and transition.ended is None
    assert rng.random_calls == draws_before

    transition = regime.step()
    assert transition.ended is MarketEvent.WHALE_PUMP
    assert regime.active is None
    assert regime.drift_boost == 0.0


def test_at_most_one_event_and_durations_in_range():
    regime = EventRegime(RandomSource(5), activation_probability=1.0)
    started = 0

    for _ in range(3000):
        active_before = regime.active
        transition = regime.step()
        if transition.started is not None:
            assert active_before is None
            low, high = transition.started.event.duration_range
            assert low <= transition.started.ticks_remaining <= high
            started += 1

    assert started > 50


def test_zero_probability_never_activates():
    regime = EventRegime(RandomSource(1), activation_probability=0.0)
    assert all(regime.step().started is None for _ in range(2000))


def test_reset_clears_active_event():
    regime = EventRegime(StubRandom(random=0.0))
    regime.step()
    replacement = RandomSource(2)
    regime.reset(replacement)
    assert regime.active is None
    assert regime.rng is replacement


# ------------------ Candles ------------------

def _price_at(t):
    return 100 + (t % 7000) / 1000 - (t // 5000)


def test_three_intervals_produce_three_candles():
    candles = CandleAggregator(interval_ms=15000, max_candles=100)
    candles.reset(origin_ms=1000)
    ticks = list(range(0, 45001, 250))

    for t in ticks:
        candles.update(t, _price_at(t))

    assert len(candles) == 3
    for i, candle in enumerate(candles.completed):
        window = [t for t in ticks if i * 15000 <= t < (i + 1) * 15000]
        prices = [_price_at(t) for t in window]
        assert candle.bucket_start == 1000 + i * 15000
        assert candle.open == prices[0]
        assert candle.close == prices[-1]
        assert candle.high == max(prices)
        assert candle.low == min(prices)

    assert candles.current.bucket_start == 1000 + 45000
    assert candles.current.open == _price_at(45000)


def test_update_returns_finished_candle():
    candles = CandleAggregator(interval_ms=1000)
    assert candles.update(0, 10.0) is None
    assert candles.update(500, 12.0) is None
    finished = candles.update(1000, 11.0)
    assert (finished.open, finished.high, finished.low, finished.close) == (10.0, 12.0, 10.0, 12.0)


def test_oldest_candles_evicted():
    candles = CandleAggregator(interval_ms=1000, max_candles=5)
    for k in range(11):
        candles.update(k * 1000, 100.0 + k)

    assert len(candles) == 5
    assert [c.bucket_start for c in candles.completed] == [5000, 6000, 7000, 8000, 9000]
    assert len(candles.candles(include_open=True)) == 6


def test_close_finalizes_open_bucket():
    candles = CandleAggregator(interval_ms=1000)
    candles.update(0, 100.0)
    candles.update(250, 101.0)

    closed = candles.close()
    assert closed.close == 101.0
    assert candles.current is None
    assert len(candles) == 1
    assert candles.close() is None


def test_reset_clears_candles():
    candles = CandleAggregator(interval_ms=1000)
    for k in range(3):
        candles.update(k * 1000, 100.0)
    candles.reset(origin_ms=5000)
    assert len(candles) == 0
    assert candles.current is None
    candles.update(0, 99.0)
    assert candles.current.bucket_start == 5000


def test_invalid_interval():
    with pytest.raises(ValueError):
        CandleAggregator(interval_ms=0)


def test_candles_to_dataframe():
    candles = CandleAggregator(interval_ms=1000)
    for k in range(4):
        candles.update(k * 500, 100.0 + k)

    df = candles.to_dataframe()
    assert list(df.columns) == ['bucket_start', 'open', 'high', 'low', 'close']
    assert len(df) == 2
    assert df.index.tz is not None
    assert df['close'].iloc[-1] == 103.0

    assert len(candles.to_dataframe(include_open=False)) == 1
