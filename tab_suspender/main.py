"""Main entry point for tab-suspender"""

import asyncio
import logging
import os
import sys

from .chrome import ChromeHost
from .commands import HOST_COMMANDS, format_help, get_command_suggestion, is_valid_cli_command
from .config import CONFIG_FILE_NAME, SuspenderConfig, get_config_dir
from .controller import SuspensionController
from .placeholder import PlaceholderCodec
from .scheduler import SuspensionScheduler
from .settings import SettingsManager, normalize_minutes
from .snapshots import SnapshotStore
from .store import StateStore, StorageError
from .usage import UsageAccountant


def setup_logging() -> None:
    level = os.getenv("TAB_SUSPENDER_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_controller(config: SuspenderConfig, store: StateStore) -> SuspensionController:
    host = ChromeHost(
        devtools_url=config.devtools_url,
        placeholder_base_url=config.placeholder_base_url,
        poll_interval=config.event_poll_interval_seconds,
    )
    return SuspensionController(
        host,
        store,
        PlaceholderCodec(config.placeholder_base_url),
        safety_timeout=config.safety_timeout_seconds,
        scroll_restore_delay=config.scroll_restore_delay_seconds,
        unit_estimate=config.average_tab_memory_bytes,
    )


async def run_mode(config: SuspenderConfig, store: StateStore):
    """Run the suspension daemon until interrupted"""
    controller = build_controller(config, store)
    scheduler = SuspensionScheduler(controller, config, config_file=get_config_dir() / CONFIG_FILE_NAME)

    print(f"Suspending idle tabs via {config.devtools_url}")
    print(f"State directory: {store.state_dir}")
    try:
        await scheduler.start()
    finally:
        await scheduler.stop()
        await controller.host.close()


async def status_command(config: SuspenderConfig, store: StateStore):
    """Show suspension statistics"""
    controller = build_controller(config, store)
    try:
        stats = await controller.memory_stats()
    finally:
        await controller.host.close()

    print("\ntab-suspender Statistics:")
    print("=" * 40)
    for key, value in stats.items():
        print(f"{key:25s}: {value}")
    print()


def settings_command(settings_manager: SettingsManager):
    settings = settings_manager.get_settings()
    print(f"\nGlobal timeout: {settings.global_timeout_ms // 60000} minutes")
    if not settings.domain_rules:
        print("No domain rules")
    for rule in settings.domain_rules:
        print(f"  {rule.domain:30s} {rule.minutes:g} minutes")
    print()


def exemptions_command(settings_manager: SettingsManager):
    exemptions = settings_manager.get_exemptions()
    print(f"\nExempt domains ({len(exemptions)}):")
    for domain in exemptions:
        print(f"  {domain}")
    print()


def _require_args(command: str, count: int, usage: str) -> list[str]:
    args = sys.argv[2:]
    if len(args) < count:
        print(f"Usage: tab-suspender /{command} {usage}")
        sys.exit(1)
    return args


async def main_async():
    """Async main function"""
    command = sys.argv[1] if len(sys.argv) > 1 else "/help"

    if not command.startswith("/"):
        print("Error: Commands must start with /")
        print(f"Did you mean: /{command}?")
        print("\nRun 'tab-suspender /help' to see available commands")
        sys.exit(1)

    command = command[1:]
    if not is_valid_cli_command(command):
        print(get_command_suggestion(f"/{command}"))
        sys.exit(1)

    if command == "help":
        print(format_help())
        return

    config = SuspenderConfig.from_file()
    store = StateStore()
    settings_manager = SettingsManager(store)

    if f"/{command}" in HOST_COMMANDS:
        if command == "run":
            await run_mode(config, store)
        else:
            await status_command(config, store)
        return

    if command == "exemptions":
        exemptions_command(settings_manager)
    elif command == "exempt":
        (domain, *_) = _require_args(command, 1, "<domain|url>")
        settings_manager.add_exemption(domain)
        exemptions_command(settings_manager)
    elif command == "unexempt":
        (domain, *_) = _require_args(command, 1, "<domain|url>")
        settings_manager.remove_exemption(domain)
        exemptions_command(settings_manager)
    elif command == "reset-exemptions":
        settings_manager.reset_exemptions()
        exemptions_command(settings_manager)
    elif command == "settings":
        settings_command(settings_manager)
    elif command == "set-timeout":
        (minutes, *_) = _require_args(command, 1, "<minutes>")
        settings_manager.update_settings(global_timeout_ms=normalize_minutes(minutes) * 60 * 1000)
        settings_command(settings_manager)
    elif command == "add-rule":
        domain, minutes, *_ = _require_args(command, 2, "<domain> <minutes>")
        settings_manager.add_domain_rule(domain, minutes)
        settings_command(settings_manager)
    elif command == "remove-rule":
        (domain, *_) = _require_args(command, 1, "<domain>")
        settings_manager.remove_domain_rule(domain)
        settings_command(settings_manager)
    elif command == "reset-stats":
        UsageAccountant(store).reset()
        print("Suspension counters reset")
    elif command == "purge-snapshots":
        max_age = config.snapshot_retention_days * 24 * 60 * 60
        removed = SnapshotStore(store).purge_older_than(max_age)
        print(f"Removed {removed} expired snapshots")


def main():
    """Main entry point"""
    setup_logging()
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        print("\nShutting down...")
    except (StorageError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
