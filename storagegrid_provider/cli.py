"""Command-line interface for inspecting a StorageGRID tenant.

Reads the same configuration as the provider (STORAGEGRID_* variables
or a config.json file) and prints what the provider would see.
"""

import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import httpx
from rich.logging import RichHandler

from storagegrid_provider.config import ConfigError, load_provider_config
from storagegrid_provider.errors import StorageGridError
from storagegrid_provider.models import CommandOutcome, OutcomeStatus
from storagegrid_provider.policy import policies_are_equivalent
from storagegrid_provider.provider import StorageGridProvider, install_cleanup_handlers
from storagegrid_provider.reporters import ConsoleReporter, JsonReporter, Reporter
from storagegrid_provider.resources.bucket import bucket_to_state

logger = logging.getLogger(__name__)

# Command -> (data source type, configuration key)
LOOKUP_COMMANDS = {
    "bucket": ("storagegrid_s3_bucket", "name"),
    "versioning": ("storagegrid_s3_bucket_versioning", "bucket_name"),
    "object-lock": ("storagegrid_s3_bucket_object_lock_configuration", "bucket_name"),
    "lifecycle": ("storagegrid_s3_bucket_lifecycle_configuration", "bucket_name"),
    "group": ("storagegrid_group", "group_name"),
    "user": ("storagegrid_user", "user_name"),
}


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters."""

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_command_start(self, command: str, target: Optional[str]) -> None:
        for reporter in self._reporters:
            reporter.on_command_start(command, target)

    def on_command_complete(self, outcome: CommandOutcome) -> None:
        for reporter in self._reporters:
            reporter.on_command_complete(outcome)

    def on_run_complete(self, outcomes: list[CommandOutcome]) -> None:
        for reporter in self._reporters:
            reporter.on_run_complete(outcomes)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="storagegrid-provider",
        description="Inspect StorageGRID tenant objects the way the provider sees them",
    )

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print diagnostics and failures",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log every API request",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("buckets", help="List all buckets")
    for command, (type_name, _) in LOOKUP_COMMANDS.items():
        sub = commands.add_parser(command, help=f"Show {type_name.replace('storagegrid_', '')}")
        sub.add_argument("name", help="Bucket, group or user name")

    diff = commands.add_parser("policy-diff", help="Compare two S3 policy files")
    diff.add_argument("first", help="First policy JSON file")
    diff.add_argument("second", help="Second policy JSON file")

    return parser.parse_args(argv)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]
    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))
    return reporters


def run_policy_diff(first: str, second: str) -> CommandOutcome:
    """Compare two policy files.

    Raises:
        ConfigError: If a file cannot be read or is not a policy document.
    """
    texts = []
    for name in (first, second):
        try:
            texts.append(Path(name).read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read policy file {name}: {e}") from e

    try:
        equal = policies_are_equivalent(texts[0], texts[1])
    except StorageGridError as e:
        raise ConfigError(str(e)) from e

    status = OutcomeStatus.OK if equal else OutcomeStatus.DIFFERS
    return CommandOutcome(command="policy-diff", target=f"{first} {second}", status=status)


def run_command(provider: StorageGridProvider, args: argparse.Namespace) -> CommandOutcome:
    """Run one lookup command against the configured client."""
    if args.command == "buckets":
        try:
            buckets = provider.client.get_bucket_list()
        except (StorageGridError, httpx.HTTPError) as e:
            return CommandOutcome("buckets", None, OutcomeStatus.ERROR, error_message=str(e))
        return CommandOutcome("buckets", None, OutcomeStatus.OK, data=[bucket_to_state(b) for b in buckets])

    type_name, key = LOOKUP_COMMANDS[args.command]
    result = provider.data_source(type_name).read({key: args.name})
    status = OutcomeStatus.OK if result.ok else OutcomeStatus.ERROR
    return CommandOutcome(
        command=args.command,
        target=args.name,
        status=status,
        data=result.state,
        diagnostics=[d.to_dict() for d in result.diagnostics],
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for API errors or differing
        policies, 2 for configuration errors
    """
    args = parse_args(argv)
    configure_logging(args.debug)

    reporters = create_reporters(args)
    reporter = reporters[0] if len(reporters) == 1 else CompositeReporter(reporters)
    target = getattr(args, "name", None)

    if args.command == "policy-diff":
        try:
            outcome = run_policy_diff(args.first, args.second)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2
        reporter.on_command_complete(outcome)
        reporter.on_run_complete([outcome])
        return 0 if outcome.status == OutcomeStatus.OK else 1

    # Load configuration
    try:
        config = load_provider_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    install_cleanup_handlers()
    provider = StorageGridProvider()

    reporter.on_command_start(args.command, target)
    diagnostics = provider.configure(explicit=asdict(config))
    if diagnostics.has_error():
        outcome = CommandOutcome(
            args.command,
            target,
            OutcomeStatus.ERROR,
            diagnostics=[d.to_dict() for d in diagnostics],
        )
        reporter.on_command_complete(outcome)
        reporter.on_run_complete([outcome])
        return 1

    try:
        outcome = run_command(provider, args)
    finally:
        provider.client.close()

    reporter.on_command_complete(outcome)
    reporter.on_run_complete([outcome])
    return 0 if outcome.status == OutcomeStatus.OK else 1


if __name__ == "__main__":
    sys.exit(main())
