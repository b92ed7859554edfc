# runner.py
from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from .ui.console import get_console


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

class PipelineError(Exception):
    """Base class for every failure that aborts a pipeline command."""


@dataclass
class ConfigurationError(PipelineError):
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"configuration error: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class ExternalCommandFailure(PipelineError):
    """
    An external command failed.

    reason is "exited" when the tool ran and reported failure, and
    "not_invoked" when it could not be started at all.
    """
    step: str
    cmd: str
    reason: str
    exit_code: Optional[int] = None
    stderr: str = ""
    hint: Optional[str] = None

    def __str__(self) -> str:
        if self.reason == "not_invoked":
            return f"step '{self.step}' could not run: {self.cmd}"
        return f"step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class MissingArtifactError(PipelineError):
    step: str
    path: str

    def __str__(self) -> str:
        return f"step '{self.step}' expected {self.path} but it does not exist"


TOOL_HINTS = {
    "bundle": "Install Bundler (gem install bundler) or fix PATH.",
    "ruby": "Install Ruby or fix PATH.",
    "docker": "Install Docker and ensure the daemon is running.",
}


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class CommandResult:
    argv: tuple
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None  # set when the process never started

    @property
    def launched(self) -> bool:
        return self.error is None

    @property
    def ok(self) -> bool:
        return self.launched and self.exit_code == 0

    @property
    def cmd(self) -> str:
        return shlex.join(self.argv)

    def check(self, step: str) -> "CommandResult":
        """Return self if the command succeeded, raise ExternalCommandFailure otherwise."""
        if self.ok:
            return self
        tool = Path(self.argv[0]).name if self.argv else ""
        hint = TOOL_HINTS.get(tool)
        if not self.launched:
            raise ExternalCommandFailure(
                step=step,
                cmd=self.cmd,
                reason="not_invoked",
                stderr=self.error or "",
                hint=hint,
            )
        raise ExternalCommandFailure(
            step=step,
            cmd=self.cmd,
            reason="exited",
            exit_code=self.exit_code,
            stderr=self.stderr[-4000:],
            hint=hint,
        )


class CommandRunner:
    """Runs external commands. Tests substitute a recording fake."""

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        console = get_console()
        argv = tuple(str(a) for a in argv)
        console.print_debug(f"$ {shlex.join(argv)} (cwd={cwd or '.'})")

        try:
            proc = subprocess.run(
                list(argv),
                shell=False,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                text=True,
                capture_output=True,
            )
        except OSError as e:
            # FileNotFoundError, PermissionError, bad cwd, ...
            return CommandResult(argv=argv, exit_code=None, error=str(e))

        if proc.stdout:
            console.print_debug(proc.stdout.rstrip())
        return CommandResult(
            argv=argv,
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )


_BUNDLER_ENV_PREFIXES = ("BUNDLE_", "BUNDLER_")
_BUNDLER_ENV_KEYS = ("RUBYOPT", "RUBYLIB", "GEM_HOME", "GEM_PATH")


def clean_env(environ: Mapping[str, str] | None = None) -> Dict[str, str]:
    """
    Copy of the environment without Bundler/RubyGems settings, so commands
    run against the build tree instead of whatever bundle launched us.
    """
    env = dict(os.environ if environ is None else environ)
    for key in list(env):
        if key.startswith(_BUNDLER_ENV_PREFIXES) or key in _BUNDLER_ENV_KEYS:
            del env[key]
    return env
