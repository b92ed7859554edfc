# step_workflows/bundler.py
from __future__ import annotations

import shlex
from pathlib import Path
from typing import List

from ..runner import CommandRunner, MissingArtifactError, clean_env


VENDOR_PATH = "vendor/bundle"
BINSTUBS_DIR = "binstubs"
EXCLUDED_GROUP = "development"

# `bundle package --all` remembers "cache_all" here, which makes the
# following install keep gems from every group.
REMEMBERED_SETTING = Path(".bundle") / "config"


# ---------------------------------------------------------------------
# Command lines
# ---------------------------------------------------------------------

def package_command() -> List[str]:
    # Git and path gems included, so the container never needs network
    # access or ssh keys to fetch them.
    return ["bundle", "package", "--all", "--all-platforms", "--no-install"]


def install_command() -> List[str]:
    # --jobs stays at 1: parallel installs are unreliable in bundler.
    return [
        "bundle", "install",
        "--local",
        "--jobs", "1",
        "--path", VENDOR_PATH,
        "--standalone",
        "--binstubs", BINSTUBS_DIR,
        "--without", EXCLUDED_GROUP,
        "--clean",
        "--frozen",
    ]


def smoke_test_command(smoke_test_cmd: str) -> str:
    return f"{BINSTUBS_DIR}/{smoke_test_cmd}"


def smoke_test_stub(build_path: Path, smoke_test_cmd: str) -> Path:
    """Host path of the binstub a smoke test command starts with."""
    program = shlex.split(smoke_test_cmd)[0]
    return build_path / BINSTUBS_DIR / program


# ---------------------------------------------------------------------
# Host-side steps
# ---------------------------------------------------------------------

def package(build_path: Path, runner: CommandRunner) -> None:
    """Package every dependency into build/vendor/cache, on the host."""
    runner.run(package_command(), cwd=build_path, env=clean_env()).check("bundle package")


def prune_setting(build_path: Path) -> bool:
    """Drop the remembered setting left by package(). Returns True if removed."""
    config = build_path / REMEMBERED_SETTING
    if not config.exists():
        return False
    config.unlink()
    return True


def require_stub(build_path: Path, smoke_test_cmd: str) -> Path:
    stub = smoke_test_stub(build_path, smoke_test_cmd)
    if not stub.exists():
        raise MissingArtifactError(step="smoke test", path=str(stub))
    return stub
