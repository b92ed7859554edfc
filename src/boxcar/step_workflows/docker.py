# step_workflows/docker.py
from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..runner import CommandResult, CommandRunner
from ..ui.console import get_console

# Where a persistent gem cache is mounted inside the container (the
# BUNDLE_PATH of the official ruby images).
BUNDLE_HOME = "/usr/local/bundle"


def _host_user() -> Optional[str]:
    # Files written through the bind mount should stay owned by the caller,
    # otherwise the next clean on the host cannot delete them.
    if hasattr(os, "getuid"):
        return f"{os.getuid()}:{os.getgid()}"
    return None


@dataclass
class DockerEnvironment:
    """
    Disposable build container.

    prepare() builds the image and starts a long-lived container with the
    build tree mounted; run() executes commands inside it; teardown()
    removes the container. Teardown is safe to call more than once.
    """
    path: Path
    tag: str
    work_dir: str
    local_dir: Path
    cache_dir: Optional[Path] = None
    runner: CommandRunner = field(default_factory=CommandRunner)
    user: Optional[str] = field(default_factory=_host_user)
    container: Optional[str] = None

    def _container_name(self) -> str:
        base = re.sub(r"[^a-zA-Z0-9_.-]+", "-", self.tag.split("/")[-1]).strip("-")
        return f"{base or 'boxcar'}-{uuid.uuid4().hex[:8]}"

    def build_command(self) -> List[str]:
        return ["docker", "build", "--tag", self.tag, str(self.path)]

    def start_command(self, name: str) -> List[str]:
        cmd = ["docker", "run", "--detach", "--name", name]

        # Volume mount: build tree -> deployment path
        cmd.extend(["--volume", f"{Path(self.local_dir).resolve()}:{self.work_dir}"])
        if self.cache_dir is not None:
            cmd.extend(["--volume", f"{Path(self.cache_dir).resolve()}:{BUNDLE_HOME}"])
        cmd.extend(["--workdir", self.work_dir])

        # Keep the container alive until teardown, whatever the image's entrypoint.
        cmd.extend(["--entrypoint", "tail", self.tag, "-f", "/dev/null"])
        return cmd

    def exec_command(self, cmd: str) -> List[str]:
        if self.container is None:
            raise RuntimeError("docker environment is not prepared")
        out = ["docker", "exec", "--workdir", self.work_dir]
        if self.user:
            out.extend(["--user", self.user])
        out.extend([self.container, "sh", "-c", cmd])
        return out

    def prepare(self) -> str:
        """Build the image and start the container. Returns the container name."""
        console = get_console()
        if self.cache_dir is not None:
            Path(self.cache_dir).mkdir(parents=True, exist_ok=True)

        self.runner.run(self.build_command()).check("docker build")

        name = self._container_name()
        self.runner.run(self.start_command(name)).check("docker run")
        self.container = name
        console.print_debug(f"container {name} started from {self.tag}")
        return name

    def run(self, cmd: str) -> CommandResult:
        """Run a shell command in the container. The caller checks the result."""
        return self.runner.run(self.exec_command(cmd))

    def teardown(self) -> None:
        if self.container is None:
            return
        name = self.container
        self.runner.run(["docker", "rm", "--force", name]).check("docker rm")
        self.container = None
        get_console().print_debug(f"container {name} removed")
