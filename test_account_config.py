"""
Account persistence and configuration tests for RoundSim.
"""

import json

import pytest

from roundsim.account import (
    DEFAULT_STORAGE_KEY, Account, JsonFileAccountStore, MemoryAccountStore,
)
from roundsim.config import (
    create_default_config, load_config, load_config_from_env, merge_configs, save_config,
)


# ------------------ Account store ------------------

def test_fresh_account_defaults():
    account = MemoryAccountStore().load_or_create()
    assert account.balance == 10000
    assert account.all_time_high == 10000
    assert account.bankrupt_count == 0
    assert account.ad_rescue.count == 0
    assert account.round_number == 0


def test_json_store_round_trip(tmp_path):
    store = JsonFileAccountStore(tmp_path / "nested" / "account.json")
    account = Account.fresh(5000)
    account.bankrupt_count = 2
    account.ad_rescue.count = 3
    account.ad_rescue.last_used_at = 1234.0
    store.save(account)

    loaded = store.load()
    assert loaded == account
    assert loaded.ad_rescue.last_used_at == 1234.0


def test_json_store_preserves_other_keys(tmp_path):
    path = tmp_path / "account.json"
    path.write_text(json.dumps({"OTHER_APP": {"x": 1}}))

    JsonFileAccountStore(path).save(Account.fresh())

    data = json.loads(path.read_text())
    assert data["OTHER_APP"] == {"x": 1}
    assert data[DEFAULT_STORAGE_KEY]["balance"] == 10000


@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2, 3]",
    json.dumps({DEFAULT_STORAGE_KEY: {"balance": "lots"}}),
    json.dumps({DEFAULT_STORAGE_KEY: {"bankrupt_count": -1}}),
])
def test_unreadable_record_treated_as_fresh(tmp_path, content):
    path = tmp_path / "account.json"
    path.write_text(content)
    store = JsonFileAccountStore(path)

    assert store.load() is None
    account = store.load_or_create(7500)
    assert account.balance == 7500
    assert account.all_time_high == 7500


def test_undecodable_file_treated_as_fresh(tmp_path):
    path = tmp_path / "account.json"
    path.write_bytes(b'{"ROUNDSIM_ACCOUNT_V1": {"balance": "\xff\xfe"}}')
    store = JsonFileAccountStore(path)

    assert store.load() is None
    assert store.load_or_create().balance == 10000

    # Saving over the unreadable file still works
    store.save(Account.fresh(3000))
    assert store.load().balance == 3000


def test_negative_balance_rejected():
    store = MemoryAccountStore({"balance": -50.0})
    assert store.load() is None
    assert store.load_or_create().balance == 10000

    account = Account.fresh()
    with pytest.raises(ValueError):
        account.balance = -1.0


def test_missing_file_treated_as_fresh(tmp_path):
    store = JsonFileAccountStore(tmp_path / "absent.json")
    assert store.load() is None
    assert store.load_or_create().balance == 10000


def test_memory_store_counts_saves():
    store = MemoryAccountStore()
    store.save(Account.fresh())
    store.save(Account.fresh())
    assert store.save_count == 2
    assert store.load().balance == 10000


# ------------------ Configuration ------------------

def test_default_config_constants():
    config = create_default_config()
    assert config.round.round_duration_ms == 300000
    assert config.round.tick_interval_ms == 250
    assert config.round.candle_interval_ms == 15000
    assert config.market.start_price == 100.0
    assert config.trading.slippage == 0.0008
    assert config.trading.fee_rate == 0.0015
    assert config.rescue.amount == 2000.0
    assert config.rescue.daily_limit == 10
    assert config.account.storage_key == "ROUNDSIM_ACCOUNT_V1"
    assert config.feed.max_entries == 40


@pytest.mark.parametrize("filename", ["roundsim.yaml", "roundsim.yml", "roundsim.json"])
def test_save_and_load_config(tmp_path, filename):
    config = create_default_config()
    config.round.round_duration_ms = 60000
    config.market.event_probability = 0.05
    path = tmp_path / filename

    save_config(config, path)
    loaded = load_config(path)

    assert loaded == config


def test_partial_config_keeps_defaults(tmp_path):
    path = tmp_path / "partial.yaml"
    path.write_text("rescue:\n  amount: 500\n")

    config = load_config(path)
    assert config.rescue.amount == 500
    assert config.rescue.cooldown_ms == 60000
    assert config.round.round_duration_ms == 300000


def test_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")

    unsupported = tmp_path / "config.toml"
    unsupported.write_text("")
    with pytest.raises(ValueError):
        load_config(unsupported)

    unknown = tmp_path / "unknown.json"
    unknown.write_text(json.dumps({"gpu": {"enabled": True}}))
    with pytest.raises(ValueError):
        load_config(unknown)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ROUNDSIM_STORAGE_PATH", "/tmp/acct.json")
    monkeypatch.setenv("ROUNDSIM_STARTING_BALANCE", "2500")
    monkeypatch.setenv("ROUNDSIM_SEED", "99")
    monkeypatch.setenv("ROUNDSIM_ROUND_DURATION_MS", "30000")

    overrides = load_config_from_env()
    config = merge_configs(create_default_config(), overrides)

    assert config.account.storage_path == "/tmp/acct.json"
    assert config.account.starting_balance == 2500.0
    assert config.round.random_seed == 99
    assert config.round.round_duration_ms == 30000


def test_merge_does_not_mutate_base():
    base = create_default_config()
    merged = merge_configs(base, {"feed": {"max_entries": 10}, "nope": {"x": 1}})
    assert merged.feed.max_entries == 10
    assert base.feed.max_entries == 40
