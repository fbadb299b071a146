"""
Command-line interface for RoundSim.

Provides commands for:
- Running headless trading sessions on synthetic time
- Replaying the price path of a round seed
- Inspecting and resetting the stored account
- Configuration management
"""

import click
import sys
import os
from pathlib import Path
import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def _load_config(config_path):
    from .config import load_config, create_default_config, load_config_from_env, merge_configs

    config_obj = load_config(config_path) if config_path else create_default_config()
    return merge_configs(config_obj, load_config_from_env())


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose/--quiet', default=False, help='Show engine log output')
def main(verbose):
    """RoundSim - Leveraged Trading Round Simulator"""
    logging.getLogger('roundsim').setLevel(logging.INFO if verbose else logging.WARNING)


@main.command()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--rounds', '-r', type=int, default=3,
              help='Number of rounds to settle')
@click.option('--seed', '-s', type=int, default=None,
              help='Master random seed')
@click.option('--player', type=click.Choice(['random', 'idle']), default='random',
              help='Scripted player driving the session')
@click.option('--auto-rescue/--no-auto-rescue', default=False,
              help='Request an ad rescue after a liquidation')
@click.option('--storage', type=click.Path(), default=None,
              help='Account store path (default from configuration)')
@click.option('--ephemeral', is_flag=True, default=False,
              help='Keep the account in memory only')
@click.option('--output-path', '-o', type=click.Path(), default=None,
              help='Directory for round history and candle exports')
def run(config, rounds, seed, player, auto_rescue, storage, ephemeral, output_path):
    """Run a headless session of several rounds."""

    try:
        from .core import create_engine, RoundPhase
        from .players import RandomPlayer, IdlePlayer
        from .metrics import describe_history, save_summaries

        config_obj = _load_config(config)
        if seed is not None:
            config_obj.round.random_seed = seed

        # Synthetic time starts at wall-clock now so stored rescue timestamps stay comparable
        engine = create_engine(config=config_obj,
                               storage_path=False if ephemeral else storage)

        if player == 'random':
            bot = RandomPlayer(seed=seed, auto_rescue=auto_rescue)
        else:
            bot = IdlePlayer()
        bot.attach(engine)

        exports = []
        if output_path:
            os.makedirs(output_path, exist_ok=True)

            def export_candles(summary):
                path = Path(output_path) / f"candles_round_{summary.round_number}.csv"
                engine.candles.to_dataframe().to_csv(path)
                exports.append(path)

            engine.add_settlement_callback(export_candles)

        click.echo(f"Starting session: balance ${engine.account.balance:.2f}, "
                   f"{rounds} rounds, player={bot.name}")

        engine.start_round()
        step = config_obj.round.tick_interval_ms
        settled = 0
        while len(engine.history) < rounds:
            engine.advance(step)
            if len(engine.history) > settled:
                summary = engine.history[-1]
                settled = len(engine.history)
                click.echo(f"Round {summary.round_number:>3} [{summary.seed}] "
                           f"pnl ${summary.pnl:>10.2f}  fees ${summary.total_fees:>8.2f}  "
                           f"trades {summary.buys + summary.sells:>3}  "
                           f"{'BANKRUPT' if summary.bankrupt else ''}")
            if engine.phase is RoundPhase.BANKRUPT and engine.pending_rescue is None:
                click.echo("Account bankrupt, stopping session.")
                break

        # Settle the last round when stopping mid-round
        engine.end_round()

        click.echo("\n" + "=" * 60)
        click.echo("SESSION COMPLETE")
        click.echo("=" * 60)
        click.echo(f"Balance:        ${engine.account.balance:.2f}")
        click.echo(f"All-time high:  ${engine.account.all_time_high:.2f}")
        click.echo(f"Bankruptcies:   {engine.account.bankrupt_count}")

        stats = describe_history(engine.history)
        if stats:
            click.echo(f"Mean round PnL: ${stats['pnl_statistics']['mean']:.2f}")
            click.echo(f"Total fees:     ${stats['total_fees']:.2f}")

        if output_path:
            history_file = save_summaries(engine.history, Path(output_path) / "round_history.csv")
            click.echo(f"\nRound history saved to: {history_file}")
            click.echo(f"Candle exports: {len(exports)}")

    except Exception as e:
        click.echo(f"❌ Session failed: {e}", err=True)
        logger.exception("Session error")
        sys.exit(1)


@main.command()
@click.argument('seed')
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--output', '-o', type=click.Path(), default=None,
              help='Write candles to this CSV file')
def replay(seed, config, output):
    """Replay the price path of a round seed without trading."""

    from .core import create_engine

    config_obj = _load_config(config)
    engine = create_engine(config=config_obj, storage_path=False, clock_ms=0.0)

    from .feed import NewsCategory

    events = []

    def collect_events(item):
        if item.category is NewsCategory.EVENT:
            events.append(item.message)

    engine.feed.add_listener(collect_events)

    engine.start_round(seed=seed)
    engine.advance(config_obj.round.round_duration_ms)
    summary = engine.history[-1]

    click.echo(f"Seed {seed}")
    click.echo(f"  Final price: {summary.final_price:.2f}")
    click.echo(f"  High / Low:  {summary.price_high:.2f} / {summary.price_low:.2f}")
    click.echo(f"  Events:      {len(events)}")
    for message in events:
        click.echo(f"    {message}")

    if output:
        engine.candles.to_dataframe().to_csv(output)
        click.echo(f"Candles saved to: {output}")


@main.group()
def account():
    """Inspect or reset the stored account."""
    pass


@account.command('show')
@click.option('--storage', type=click.Path(), default=None,
              help='Account store path (default from configuration)')
def account_show(storage):
    """Show the stored account."""
    from .account import JsonFileAccountStore

    config_obj = _load_config(None)
    store = JsonFileAccountStore(storage or config_obj.account.storage_path,
                                 config_obj.account.storage_key)
    record = store.load_or_create(config_obj.account.starting_balance)

    click.echo(f"Account ({store.path})")
    click.echo("-" * 40)
    click.echo(f"Balance:         ${record.balance:.2f}")
    click.echo(f"All-time high:   ${record.all_time_high:.2f}")
    click.echo(f"Last round PnL:  ${record.last_round_pnl:.2f}")
    click.echo(f"Bankruptcies:    {record.bankrupt_count}")
    click.echo(f"Rounds played:   {record.round_number}")
    click.echo(f"Rescues used:    {record.ad_rescue.count}")


@account.command('reset')
@click.option('--storage', type=click.Path(), default=None,
              help='Account store path (default from configuration)')
@click.confirmation_option(prompt='Reset the account to starting balance?')
def account_reset(storage):
    """Reset the stored account to a fresh one."""
    from .account import Account, JsonFileAccountStore

    config_obj = _load_config(None)
    store = JsonFileAccountStore(storage or config_obj.account.storage_path,
                                 config_obj.account.storage_key)
    store.save(Account.fresh(config_obj.account.starting_balance))
    click.echo(f"✅ Account reset: {store.path}")


@main.command()
@click.option('--output', '-o', type=click.Path(), default='roundsim.yaml',
              help='Output configuration file path')
def create_config(output):
    """Create a sample configuration file."""

    try:
        from .config import create_default_config, save_config

        config = create_default_config()
        save_config(config, output)

        click.echo(f"✅ Sample configuration created: {output}")
        click.echo("Edit the file to customize round and market parameters.")

    except Exception as e:
        click.echo(f"❌ Failed to create configuration: {e}", err=True)
        sys.exit(1)


@main.command()
def info():
    """Display version and default game parameters."""
    from . import print_system_info
    from .market import MarketEvent

    print_system_info()
    click.echo("\nMarket events:")
    for event in MarketEvent:
        low, high = event.duration_range
        click.echo(f"  {event.label:<20} drift {event.drift_boost:+.4f}  "
                   f"vol x{event.volatility_multiplier:.1f}  {low}-{high} ticks")


if __name__ == '__main__':
    main()
