"""Command-line interface for statelock."""

from statelock.cli.main import main
from statelock.cli.parser import parse_arguments

__all__ = ["main", "parse_arguments"]
