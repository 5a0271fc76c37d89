"""Base class for all benchmark suites."""

from __future__ import annotations

import argparse
from abc import ABC, abstractmethod


class BaseBenchmark(ABC):
    """Abstract base for all benchmark suites.

    Each benchmark registers its own CLI arguments and implements a run
    method that returns results.
    """

    name: str = ""

    @abstractmethod
    def register_args(self, parser: argparse.ArgumentParser) -> None:
        """Add benchmark-specific CLI arguments to *parser*."""

    @abstractmethod
    def run(self, args: argparse.Namespace) -> list:
        """Execute the benchmark. Returns its per-pass results."""

    def validate(self, args: argparse.Namespace) -> bool:
        """Check prerequisites (store access, argument ranges). Override to add checks."""
        return True
