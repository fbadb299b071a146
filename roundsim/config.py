"""
Configuration management for RoundSim.

Handles loading and validation of round, market, trading, rescue and
account settings. The defaults reproduce the standard game constants.
"""

import os
import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, asdict, field

@dataclass
class RoundConfig:
    """Round lifecycle timing."""
    round_duration_ms: int = 300000  # 5 minutes
    tick_interval_ms: int = 250
    restart_delay_ms: int = 2000

    # Candle aggregation
    candle_interval_ms: int = 15000
    max_candles: int = 100

    # Master seed for round seeds (None draws from OS entropy)
    random_seed: Optional[int] = None

@dataclass
class MarketConfig:
    """Synthetic price process and event regime parameters."""
    start_price: float = 100.0
    min_price: float = 50.0
    max_price: float = 150.0
    base_volatility: float = 0.006

    # Per-round drift is drawn uniformly from [-drift_range/2, drift_range/2]
    drift_range: float = 0.0004

    # Mean reversion near the band edges
    mean_reversion_threshold: float = 0.45
    mean_reversion_strength: float = 0.02

    # Event regime
    event_probability: float = 0.015

@dataclass
class TradingConfig:
    """Fill model and leverage limits."""
    slippage: float = 0.0008
    fee_rate: float = 0.0015
    min_leverage: int = 1
    max_leverage: int = 100
    dust_epsilon: float = 1e-6

@dataclass
class RescueConfig:
    """Ad-rescue reward parameters."""
    amount: float = 2000.0
    cooldown_ms: int = 60000
    daily_limit: int = 10
    delay_ms: int = 3000
    reset_window_ms: int = 24 * 60 * 60 * 1000

@dataclass
class AccountConfig:
    """Account defaults and storage location."""
    starting_balance: float = 10000.0
    storage_path: str = "~/.roundsim/account.json"
    storage_key: str = "ROUNDSIM_ACCOUNT_V1"

@dataclass
class FeedConfig:
    """News feed settings."""
    max_entries: int = 40

@dataclass
class Config:
    """Main configuration container."""
    round: RoundConfig = field(default_factory=RoundConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)
    rescue: RescueConfig = field(default_factory=RescueConfig)
    account: AccountConfig = field(default_factory=AccountConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)

_SECTIONS = {
    'round': RoundConfig,
    'market': MarketConfig,
    'trading': TradingConfig,
    'rescue': RescueConfig,
    'account': AccountConfig,
    'feed': FeedConfig,
}

def _from_dict(data: Dict[str, Any]) -> Config:
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    return Config(**{
        name: section_cls(**(data.get(name) or {}))
        for name, section_cls in _SECTIONS.items()
    })

def load_config(config_path: Union[str, Path]) -> Config:
    """Load configuration from file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    # Determine file format
    suffix = config_path.suffix.lower()

    if suffix == '.json':
        with open(config_path, 'r') as f:
            data = json.load(f)
    elif suffix in ['.yml', '.yaml']:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    else:
        raise ValueError(f"Unsupported configuration format: {suffix}")

    return _from_dict(data or {})

def save_config(config: Config, config_path: Union[str, Path]) -> None:
    """Save configuration to file."""
    config_path = Path(config_path)

    data = asdict(config)

    # Determine file format
    suffix = config_path.suffix.lower()

    if suffix == '.json':
        with open(config_path, 'w') as f:
            json.dump(data, f, indent=2)
    elif suffix in ['.yml', '.yaml']:
        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, indent=2)
    else:
        raise ValueError(f"Unsupported configuration format: {suffix}")

def create_default_config() -> Config:
    """Create default configuration."""
    return Config()

def merge_configs(base_config: Config, override_config: dict) -> Config:
    """Merge configuration with overrides."""
    import copy
    merged_config = copy.deepcopy(base_config)

    for section, values in override_config.items():
        if not hasattr(merged_config, section):
            continue
        section_obj = getattr(merged_config, section)
        for key, value in values.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)

    return merged_config

# Environment-based configuration
def load_config_from_env() -> Dict[str, Any]:
    """Load configuration overrides from environment variables."""
    env_config: Dict[str, Dict[str, Any]] = {}

    if 'ROUNDSIM_STORAGE_PATH' in os.environ:
        env_config.setdefault('account', {})['storage_path'] = os.environ['ROUNDSIM_STORAGE_PATH']

    if 'ROUNDSIM_STARTING_BALANCE' in os.environ:
        env_config.setdefault('account', {})['starting_balance'] = float(os.environ['ROUNDSIM_STARTING_BALANCE'])

    if 'ROUNDSIM_SEED' in os.environ:
        env_config.setdefault('round', {})['random_seed'] = int(os.environ['ROUNDSIM_SEED'])

    if 'ROUNDSIM_ROUND_DURATION_MS' in os.environ:
        env_config.setdefault('round', {})['round_duration_ms'] = int(os.environ['ROUNDSIM_ROUND_DURATION_MS'])

    return env_config
