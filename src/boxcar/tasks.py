# tasks.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import click

from .build import STEP_NAMES, BuildStage
from .clean import clean
from .config import StagingOptions, resolve
from .model import Options, ProjectMetadata
from .runner import (
    CommandRunner,
    ConfigurationError,
    ExternalCommandFailure,
    MissingArtifactError,
    PipelineError,
)
from .ui.console import get_console


def report_failure(exc: PipelineError, step: Optional[str] = None) -> None:
    """Render a pipeline failure on the console."""
    console = get_console()
    if isinstance(exc, ExternalCommandFailure):
        console.print_failure(
            step or exc.step,
            str(exc),
            exit_code=exc.exit_code,
            hint=exc.hint,
            output=exc.stderr,
        )
    elif isinstance(exc, MissingArtifactError):
        console.print_failure(step or exc.step, str(exc))
    elif isinstance(exc, ConfigurationError):
        console.print_error(
            "Invalid project configuration",
            exc.message,
            details=[f"{k}: {v}" for k, v in exc.details.items()] or None,
        )
    else:
        console.print_exception(exc)


class PackageTasks:
    """
    Declares the `<name>:build`, `<name>:clean` and `<name>` commands for one
    project.

    Usage in boxcar_pipeline.py:

        def configure(o):
            o.smoke_test_cmd = "myapp --version"

        TASKS = PackageTasks("myapp", configure=configure)

    Options are resolved the first time a command body needs them, so
    listing or running unrelated commands never loads the gemspec.
    """

    def __init__(
        self,
        name: str = "boxcar",
        *,
        gem_name: str | None = None,
        gem_base: str | Path | None = None,
        configure: Callable[[StagingOptions], None] | None = None,
        runner: CommandRunner | None = None,
    ):
        self.name = name
        self.gem_name = gem_name
        self.gem_base = gem_base
        self.configure = configure
        self.runner = runner or CommandRunner()
        self.commands: Dict[str, click.Command] = {}
        self._opts: Optional[Options] = None

    # Don't touch outside a command body.
    @property
    def options(self) -> Options:
        if self._opts is None:
            project = ProjectMetadata.discover(
                self.gem_base, self.gem_name, runner=self.runner
            )
            self._opts = resolve(project, self.configure)
        return self._opts

    # ---- registration ----

    def register(self, group: click.Group) -> Dict[str, click.Command]:
        """Add this project's commands to group and return them by short name."""
        clean_cmd = self._declare_clean_command()
        build_cmd = self._declare_build_command(clean_cmd)
        default_cmd = self._declare_default_command(build_cmd)

        group.add_command(build_cmd)
        group.add_command(clean_cmd)
        group.add_command(default_cmd)

        self.commands = {"build": build_cmd, "clean": clean_cmd, "default": default_cmd}
        return self.commands

    def _declare_clean_command(self) -> click.Command:
        @click.command(name=f"{self.name}:clean", help="Clean build artifacts")
        @click.argument("nuke", type=click.BOOL, default=True, required=False)
        @click.argument("tarball", default=None, required=False)
        def clean_command(nuke, tarball):
            try:
                opts = self.options
                clean(opts, nuke=nuke, tarball=tarball or opts.filename)
            except PipelineError as e:
                report_failure(e, "clean")
                sys.exit(1)

        return clean_command

    def _declare_build_command(self, clean_cmd: click.Command) -> click.Command:
        @click.command(name=f"{self.name}:build", help="Build the project tarball")
        @click.pass_context
        def build_command(ctx):
            stage = None
            try:
                opts = self.options
                get_console().print_build_started(
                    project=opts.project.name,
                    image=opts.docker_image,
                    output=str(opts.output_path),
                )
                stage = BuildStage(
                    opts,
                    runner=self.runner,
                    clean_fn=lambda: ctx.invoke(clean_cmd, nuke=False),
                )
                stage.run()
            except PipelineError as e:
                failed = stage.failed_step if stage is not None else None
                report_failure(e, STEP_NAMES.get(failed) if failed else None)
                sys.exit(1)

        return build_command

    def _declare_default_command(self, build_cmd: click.Command) -> click.Command:
        @click.command(name=self.name, help=f"Shortcut for {self.name}:build")
        @click.pass_context
        def default_command(ctx):
            ctx.invoke(build_cmd)

        return default_command
