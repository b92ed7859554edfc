# model.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .runner import CommandRunner, ConfigurationError


# Evaluates a gemspec and prints its name, then its declared files, one per line.
_GEMSPEC_SCRIPT = "s = Gem::Specification.load(ARGV[0]); puts s.name; puts s.files"


@dataclass(frozen=True)
class ProjectMetadata:
    """The application being packaged: its name, root and declared files."""
    name: str
    base: Path
    gemspec: Path
    files: Tuple[str, ...]

    @classmethod
    def discover(
        cls,
        base: str | Path | None = None,
        name: str | None = None,
        runner: CommandRunner | None = None,
    ) -> ProjectMetadata:
        """
        Locate the gemspec under base and ask RubyGems for its name and file
        list. The name comes from the gemspec itself, not its filename.

        Raises:
            ConfigurationError: no gemspec, several gemspecs, or the named
                gemspec does not exist, or ruby printed nothing for it.
            ExternalCommandFailure: ruby could not evaluate the gemspec.
        """
        root = Path(base or ".").expanduser().resolve()

        if name:
            gemspec = root / f"{name}.gemspec"
            if not gemspec.exists():
                raise ConfigurationError(
                    f"gemspec for {name!r} not found",
                    details={"path": str(gemspec)},
                )
        else:
            candidates = sorted(root.glob("*.gemspec"))
            if not candidates:
                raise ConfigurationError(
                    "no gemspec found", details={"base": str(root)}
                )
            if len(candidates) > 1:
                raise ConfigurationError(
                    "multiple gemspecs found; pass gem_name to pick one",
                    details={"candidates": ", ".join(p.name for p in candidates)},
                )
            gemspec = candidates[0]

        runner = runner or CommandRunner()
        result = runner.run(
            ["ruby", "-e", _GEMSPEC_SCRIPT, gemspec.name], cwd=root
        ).check("load gemspec")
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise ConfigurationError(
                "gemspec did not load", details={"path": str(gemspec)}
            )

        return cls(name=lines[0], base=root, gemspec=gemspec, files=tuple(lines[1:]))


@dataclass(frozen=True)
class Options:
    """
    Resolved run configuration. Built once per PackageTasks by
    config.resolve(); read-only afterwards.
    """
    build_path: Path
    deployment_path: str
    docker_path: Path
    docker_image: str
    filename: str
    files: Tuple[str, ...]
    project: ProjectMetadata
    docker_cache: Optional[Path] = None
    smoke_test_cmd: Optional[str] = None

    @property
    def base(self) -> Path:
        return self.project.base

    @property
    def output_path(self) -> Path:
        # The tarball sits next to the build directory, not inside it.
        return self.build_path.parent / self.filename


class BuildState(enum.Enum):
    CLEAN = "clean"
    COPY = "copy"
    ENV_PREPARE = "env_prepare"
    PACKAGE_DEPS = "package_deps"
    PRUNE_SETTING = "prune_setting"
    INSTALL_DEPS = "install_deps"
    SMOKE_TEST = "smoke_test"
    ARCHIVE = "archive"
    ENV_TEARDOWN = "env_teardown"
    DONE = "done"
    FAILED = "failed"
