"""CLI argument parsing."""

from __future__ import annotations

import argparse

import argcomplete

from statelock.core.version import __version__


def parse_option(value: str) -> tuple[str, str]:
    """argparse type for -o KEY=VALUE."""
    key, sep, option_value = value.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key, option_value


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        prog="statelock",
        description="statelock - acquire and release remote state locks on Azure Blob Storage or DynamoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Lease an Azure state blob and export the lease id for terraform
  export ARM_ACCESS_KEY=...
  eval "$(statelock acquire --backend azure \\
      -o storage_account_name=tfstate -o container_name=state -o key=prod.tfstate)"

  # Same, taking a backup copy of the blob once the lease is held
  statelock acquire --backend azure -o storage_account_name=tfstate \\
      -o container_name=state -o key=prod.tfstate -o backup=true

  # Wait up to 10 attempts, 5 seconds apart, for a DynamoDB lock
  statelock acquire --backend dynamodb -o state_file_id=prod/network \\
      -o max_lock_retries=10 -o retry_interval_seconds=5

  # Resolve the lock from a JSON file: {"lock": {"backend": ..., "config": {...}}}
  statelock release --config statelock.json

  # JSON structured logging (for Splunk, ELK, CloudWatch)
  statelock --log-format json describe --backend dynamodb -o state_file_id=prod/network

Exit codes:
  0  success
  1  configuration, credential, backup or service error
  2  the lock is held by someone else
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL environment variable, then INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format; logs go to stderr (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    for command, help_text in (
        ("acquire", "Acquire the lock and print the lease to stdout"),
        ("release", "Release the lock"),
        ("describe", "Resolve the lock and print what it protects, without any network call"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        source = sub.add_mutually_exclusive_group(required=True)
        source.add_argument("--backend", "-b", metavar="NAME", help="Lock backend (azure or dynamodb)")
        source.add_argument("--config", "-c", metavar="FILE", help="JSON file with a lock section")
        sub.add_argument(
            "--option",
            "-o",
            dest="options",
            metavar="KEY=VALUE",
            type=parse_option,
            action="append",
            default=[],
            help="Backend option; repeat for each option (only with --backend)",
        )

    subparsers.add_parser("backends", help="List the available lock backends")

    argcomplete.autocomplete(parser)
    args = parser.parse_args(argv)
    if getattr(args, "config", None) and args.options:
        parser.error("--option cannot be combined with --config")
    return args
