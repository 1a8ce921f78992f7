"""Command-line entry point for the account mapper."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from account_mapper.bootstrap import build_bridge
from account_mapper.core import AppSettings, configure_logging, load_app_settings
from account_mapper.core.errors import StagingError, StartupError
from account_mapper.core.models import InboundEnvelope, PipelineOutcome
from account_mapper.staging import StagingStore

LOGGER = logging.getLogger(__name__)

_CLEARS_MARKER = {PipelineOutcome.FORWARDED, PipelineOutcome.AUTO_ACCEPTED}


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Alias to mailbox mail bridge")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "serve", "pending", "replay"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help="Staged message to reprocess (replay only).",
    )
    parser.add_argument(
        "--alias",
        default=None,
        help="Alias to use when replaying a staged message without an error marker.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit status."""
    command = args.command
    if command == "info":
        print("Account mapper is configured as follows.")
        print(
            f"Listening on: {settings.receiver.host}:{settings.receiver.port} "
            f"for @{settings.receiver.domain}"
        )
        print(f"Staging directory: {settings.receiver.tmpdir}")
        print(f"Directory API: {settings.directory.base_url}")
        print(f"Outbound relay: {settings.mailer.host}:{settings.mailer.port}")
        return 0
    if command == "serve":
        return _run_serve(settings)
    if command == "pending":
        return _run_pending(settings)
    if command == "replay":
        if args.path is None:
            print("replay requires the path of a staged message.")
            return 2
        return asyncio.run(_run_replay(settings, args.path, args.alias))
    return 2


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    status = execute(args, settings)
    if status:
        raise SystemExit(status)


def _run_serve(settings: AppSettings) -> int:
    """Run the listener until interrupted."""
    try:
        asyncio.run(_serve(settings))
    except StartupError as exc:
        LOGGER.critical("Account mapper failed to start: %s", exc)
        return 1
    return 0


async def _serve(settings: AppSettings) -> None:
    bridge = build_bridge(settings)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    try:
        await bridge.receiver.start()
        LOGGER.info("account mapper started successfully")
        await stop.wait()
        LOGGER.info("Shutting down; %d message(s) in flight", bridge.coordinator.in_flight)
        await bridge.receiver.stop()
        await bridge.coordinator.drain()
    finally:
        await bridge.aclose()


def _run_pending(settings: AppSettings) -> int:
    """List the manual recovery queue."""
    store = StagingStore(settings.receiver.tmpdir)
    try:
        staged = store.pending()
        quarantined = store.quarantined()
    except StagingError as exc:
        print(f"Cannot inspect staging directory: {exc}")
        return 1

    if not staged and not quarantined:
        print("No staged messages.")
        return 0

    print(f"Staged without marker: {len(staged)}")
    for path in staged:
        print(f"  {path}")
    print(f"Quarantined: {len(quarantined)}")
    for path in quarantined:
        print(f"  {path}  ({_marker_summary(store, path)})")
    return 0


def _marker_summary(store: StagingStore, path: Path) -> str:
    try:
        metadata = asyncio.run(store.read_marker(path))
    except StagingError as exc:
        return f"unreadable marker: {exc}"
    stage = metadata.get("stage", "?")
    reason = metadata.get("reason", "no reason recorded")
    return f"{metadata.get('raw_address', '?')}, {stage}: {reason}"


async def _run_replay(settings: AppSettings, path: Path, alias: str | None) -> int:
    """Reprocess one staged message through the pipeline."""
    try:
        bridge = build_bridge(settings)
    except StartupError as exc:
        print(f"Cannot replay: {exc}")
        return 1

    store = bridge.store
    try:
        if not path.is_file():
            print(f"{path} is not a staged message.")
            return 1
        if alias is not None:
            envelope = InboundEnvelope(
                alias_id=alias, raw_address=f"{alias}@{settings.receiver.domain}"
            )
        elif store.is_quarantined(path):
            try:
                envelope = InboundEnvelope.from_dict(await store.read_marker(path))
            except (StagingError, KeyError) as exc:
                print(f"Cannot read envelope for {path}: {exc}")
                return 1
        else:
            print(f"{path} has no error marker; pass --alias to replay it.")
            return 1

        outcome = await bridge.coordinator.process(envelope, path)
        if outcome in _CLEARS_MARKER and store.is_quarantined(path):
            await store.clear_error(path)
        print(f"{path.name}: {outcome.value}")
        return 0 if outcome in _CLEARS_MARKER else 1
    finally:
        await bridge.aclose()


if __name__ == "__main__":
    main()
