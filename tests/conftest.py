from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path

import pytest

from boxcar.config import resolve
from boxcar.model import ProjectMetadata
from boxcar.runner import CommandResult, CommandRunner
from boxcar.ui.console import Console, set_console

DECLARED = ("lib/a.rb", "bin/c")


@dataclass
class Call:
    argv: tuple
    cwd: object
    env: object

    @property
    def cmd(self) -> str:
        return shlex.join(self.argv)


class FakeRunner(CommandRunner):
    """
    Records commands instead of running them, and imitates the side effects
    the pipeline relies on: ruby prints the gemspec name and files, bundle package
    fills vendor/cache, bundle install (through docker exec) writes gems and
    binstubs into the mounted build tree.
    """

    def __init__(self, files=DECLARED, fail_on=None, missing_tools=(), spec_name=None):
        self.spec_name = spec_name
        self.calls: list[Call] = []
        self.files = list(files)
        self.fail_on = dict(fail_on or {})
        self.missing_tools = set(missing_tools)
        self.mounted: Path | None = None
        self.cache_seen_by_package: list[list[str]] = []

    def commands(self) -> list[str]:
        return [c.cmd for c in self.calls]

    def run(self, argv, *, cwd=None, env=None):
        argv = tuple(str(a) for a in argv)
        call = Call(argv, cwd, env)
        self.calls.append(call)
        cmd = call.cmd

        if argv[0] in self.missing_tools:
            return CommandResult(argv=argv, exit_code=None, error=f"No such file or directory: {argv[0]!r}")
        for needle, code in self.fail_on.items():
            if needle in cmd:
                return CommandResult(argv=argv, exit_code=code, stderr=f"{needle} exploded\n")

        stdout = ""
        if argv[:2] == ("ruby", "-e"):
            name = self.spec_name or Path(argv[-1]).stem
            stdout = "\n".join([name, *self.files]) + "\n"
        elif argv[:3] == ("docker", "run", "--detach"):
            volume = argv[argv.index("--volume") + 1]
            self.mounted = Path(volume.split(":")[0])
        elif argv[:2] == ("bundle", "package"):
            self._package(Path(cwd))
        elif argv[:2] == ("docker", "exec") and "bundle install" in cmd:
            self._install(self.mounted)
        return CommandResult(argv=argv, exit_code=0, stdout=stdout)

    def _package(self, build: Path) -> None:
        cache = build / "vendor" / "cache"
        self.cache_seen_by_package.append(
            sorted(p.name for p in cache.glob("*.gem")) if cache.is_dir() else []
        )
        cache.mkdir(parents=True, exist_ok=True)
        (cache / "rack-2.2.8.gem").write_bytes(b"gem")
        (cache / "json-2.6.3.gem").write_bytes(b"gem")
        (build / ".bundle").mkdir(exist_ok=True)
        (build / ".bundle" / "config").write_text('BUNDLE_CACHE_ALL: "true"\n')

    def _install(self, build: Path) -> None:
        gem = build / "vendor" / "bundle" / "ruby" / "3.2.0" / "gems" / "json-2.6.3"
        for rel in ("lib/json.rb", "lib/json/ext/parser.so", "ext/json/parser.c", "test/json_test.rb"):
            (gem / rel).parent.mkdir(parents=True, exist_ok=True)
            (gem / rel).write_text("x")
        stubs = build / "binstubs"
        stubs.mkdir(exist_ok=True)
        (stubs / "app").write_text("#!/usr/bin/env ruby\n")


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def project_dir(tmp_path):
    base = tmp_path / "app"
    (base / "lib").mkdir(parents=True)
    (base / "bin").mkdir()
    (base / "docker").mkdir()
    (base / "app.gemspec").write_text("Gem::Specification.new\n")
    (base / "lib" / "a.rb").write_text("A = 1\n")
    (base / "lib" / "b.rb").write_text("B = 1\n")
    (base / "bin" / "c").write_text("#!/bin/sh\n")
    (base / "docker" / "Dockerfile").write_text("FROM ruby:3.2\n")
    return base.resolve()


@pytest.fixture
def project(project_dir):
    return ProjectMetadata(
        name="app",
        base=project_dir,
        gemspec=project_dir / "app.gemspec",
        files=DECLARED,
    )


@pytest.fixture
def opts(project):
    return resolve(project, environ={})


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    monkeypatch.delenv("OUTPUT_FILE", raising=False)
    set_console(Console())
