# config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .model import Options, ProjectMetadata

DEFAULT_FILENAME = "build.tar.gz"


class StagingOptions:
    """
    Mutable view handed to the user's configure callback.
    Only exists while resolve() runs; freeze() produces the Options.
    """

    def __init__(self, project: ProjectMetadata, environ: Mapping[str, str]):
        base = project.base
        self.build_path: Path = base / "build"
        self.deployment_path: str = f"/opt/{project.name}"
        self.docker_path: Path = base / "docker"
        self.docker_image: str = f"local/{project.name}-builder"
        self.docker_cache: Optional[Path] = None
        self.filename: str = environ.get("OUTPUT_FILE") or DEFAULT_FILENAME
        self.files: List[str] = list(project.files)
        self.smoke_test_cmd: Optional[str] = None
        self.project = project

    def freeze(self) -> Options:
        base = self.project.base
        return Options(
            build_path=(base / self.build_path).resolve(),
            deployment_path=str(self.deployment_path),
            docker_path=(base / self.docker_path).resolve(),
            docker_image=self.docker_image,
            filename=self.filename,
            files=tuple(str(f) for f in self.files),
            project=self.project,
            docker_cache=(base / self.docker_cache).resolve() if self.docker_cache else None,
            smoke_test_cmd=(self.smoke_test_cmd or "").strip() or None,
        )


def resolve(
    project: ProjectMetadata,
    configure: Callable[[StagingOptions], None] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Options:
    """Apply defaults, then the optional user overrides, then freeze."""
    staging = StagingOptions(project, os.environ if environ is None else environ)
    if configure is not None:
        configure(staging)
    return staging.freeze()
