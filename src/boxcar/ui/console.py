"""Console output formatting utilities for boxcar."""

from __future__ import annotations

import sys
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_build_started(
        self,
        project: str,
        image: str,
        output: str,
    ) -> None:
        """Print build start information."""
        print("\nBUILD STARTED")
        print(f"Project: {project}")
        print(f"Image: {image}")
        print(f"Output: {output}")
        print()

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        """
        Print step failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            output: Optional captured stderr, shown in debug mode
        """
        print(f"STEP FAILED: {name}", file=sys.stderr)
        if exit_code is not None:
            print(f"Exit code: {exit_code}", file=sys.stderr)
        if hint:
            print(f"Hint: {hint}", file=sys.stderr)
        print(f"Error: {reason}", file=sys.stderr)
        if output:
            if self.debug:
                print(output.rstrip(), file=sys.stderr)
            else:
                # Last line is usually the one that matters
                last = output.strip().splitlines()[-1:]
                if last:
                    print(f"Output: {last[0]}", file=sys.stderr)

    def print_cache_status(self, packaged: int) -> None:
        """Print dependency cache summary."""
        if packaged:
            print(f"CACHE: {packaged} packaged dependencies")
        else:
            print("CACHE: empty")

    def print_removed(self, paths: list[str]) -> None:
        """Print what a clean removed."""
        if not paths:
            print("CLEAN: nothing to remove")
            return
        print(f"CLEAN: removed {len(paths)} path(s)")
        if self.debug:
            for p in paths:
                print(f"  {p}")

    def print_created(self, filename: str, path) -> None:
        print(f"Created {filename} ({path})")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
