# cli.py
from __future__ import annotations

import runpy
import sys
from pathlib import Path
from typing import List

import click

from boxcar.runner import ConfigurationError, PipelineError
from boxcar.tasks import PackageTasks, report_failure
from boxcar.ui.console import Console, get_console, set_console

DEFAULT_PIPELINE = "boxcar_pipeline.py"


def find_pipeline_files() -> list[Path]:
    """
    Find all pipeline files in the current directory.

    Returns:
        List of Path objects for pipeline files
    """
    pipeline_files = []
    current_dir = Path(".")

    default_pipeline = current_dir / DEFAULT_PIPELINE
    if default_pipeline.exists():
        pipeline_files.append(default_pipeline)

    for path in current_dir.glob("*_pipeline.py"):
        if path != default_pipeline:
            pipeline_files.append(path)

    return sorted(pipeline_files)


def discover_pipeline(pipeline_arg: str | None) -> Path:
    """
    Discover the pipeline file from argument or default.

    Raises:
        ConfigurationError: If no file or more than one candidate is found
    """
    if pipeline_arg:
        pipeline_path = Path(pipeline_arg)
        if not pipeline_path.exists() and pipeline_path.suffix != ".py":
            pipeline_path = Path(str(pipeline_path) + ".py")
        if not pipeline_path.exists():
            raise ConfigurationError(
                "pipeline file not found", details={"path": pipeline_arg}
            )
        return pipeline_path

    pipeline_files = find_pipeline_files()
    if not pipeline_files:
        raise ConfigurationError(
            "no pipeline file found",
            details={"looked for": f"{DEFAULT_PIPELINE}, *_pipeline.py"},
        )
    if len(pipeline_files) > 1:
        raise ConfigurationError(
            "multiple pipeline files found",
            details={"candidates": ", ".join(str(f) for f in pipeline_files)},
        )
    return pipeline_files[0]


def load_pipeline(path: str | Path) -> List[PackageTasks]:
    """
    Load pipeline declarations from a python file.

    The file must define either:
      - pipeline() -> PackageTasks | List[PackageTasks]
      - TASKS = PackageTasks(...) or [PackageTasks, ...]
    """
    p = Path(path).expanduser().resolve()
    if p.suffix != ".py":
        raise ValueError(f"Pipeline must be a .py file, got: {p.name}")

    globals_dict = runpy.run_path(str(p), run_name=f"boxcar_pipeline_{p.stem}")

    tasks = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        tasks = globals_dict["pipeline"]()
    elif "TASKS" in globals_dict:
        tasks = globals_dict["TASKS"]

    if isinstance(tasks, PackageTasks):
        tasks = [tasks]
    if not isinstance(tasks, list) or not tasks or not all(isinstance(t, PackageTasks) for t in tasks):
        raise TypeError(
            "Pipeline must return/define PackageTasks. "
            "Define pipeline() -> PackageTasks or TASKS = PackageTasks(...)."
        )
    return tasks


def _setup_console(ctx: click.Context) -> Console:
    console = Console(debug=bool(ctx.params.get("debug", False)))
    set_console(console)
    return console


class PipelineGroup(click.Group):
    """Group whose commands come from the project's pipeline file."""

    def _load(self, ctx: click.Context) -> None:
        if ctx.meta.get("boxcar.loaded"):
            return
        path = discover_pipeline(ctx.params.get("pipeline"))
        for tasks in load_pipeline(path):
            tasks.register(self)
        ctx.meta["boxcar.loaded"] = True

    def list_commands(self, ctx):
        try:
            self._load(ctx)
        except ConfigurationError:
            # --help outside a project: nothing to list
            pass
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        # Runs before the group callback, so the console is set up here too.
        console = _setup_console(ctx)
        try:
            self._load(ctx)
        except ConfigurationError as e:
            report_failure(e)
            console.print_info(
                f"\nCreate {DEFAULT_PIPELINE} or pass one explicitly:\n"
                "  boxcar --pipeline my_pipeline.py <command>"
            )
            sys.exit(1)
        except Exception as e:
            console.print_error("Failed to load pipeline", str(e))
            if console.debug:
                console.print_exception(e)
            sys.exit(1)
        return super().get_command(ctx, cmd_name)

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            get_console().print_info("\nInterrupted by user")
            sys.exit(130)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except PipelineError as e:
            report_failure(e)
            sys.exit(1)
        except Exception as e:
            get_console().print_exception(e)
            sys.exit(1)


@click.group(cls=PipelineGroup)
@click.option(
    "--pipeline",
    default=None,
    help=f"Pipeline file path (defaults to {DEFAULT_PIPELINE} if present)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show commands, their output and stack traces)",
)
@click.pass_context
def cli(ctx, pipeline, debug):
    """boxcar: build a deployable tarball of a bundled app inside docker."""
    _setup_console(ctx)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
