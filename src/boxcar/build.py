# build.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from . import archive
from .cache import DependencyCache
from .clean import clean
from .model import BuildState, Options
from .runner import CommandRunner, MissingArtifactError, PipelineError
from .step_workflows import bundler
from .step_workflows.docker import DockerEnvironment
from .ui.console import get_console


STEP_NAMES = {
    BuildState.CLEAN: "Clean build directory",
    BuildState.COPY: "Copy declared files",
    BuildState.ENV_PREPARE: "Prepare docker environment",
    BuildState.PACKAGE_DEPS: "Package dependencies",
    BuildState.PRUNE_SETTING: "Remove remembered bundler setting",
    BuildState.INSTALL_DEPS: "Install dependencies",
    BuildState.SMOKE_TEST: "Smoke test",
    BuildState.ARCHIVE: "Create tarball",
    BuildState.ENV_TEARDOWN: "Tear down docker environment",
}


def copy_files(files, base: Path, build_path: Path) -> List[Path]:
    """Copy exactly the declared files into build_path, keeping relative paths."""
    copied: List[Path] = []
    for rel in files:
        src = base / rel
        dst = build_path / rel
        if not src.exists():
            raise MissingArtifactError(step=STEP_NAMES[BuildState.COPY], path=str(src))
        dst.parent.mkdir(parents=True, exist_ok=True)
        if src.is_dir():
            shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(src, dst, follow_symlinks=False)
        copied.append(dst)
    return copied


class BuildStage:
    """
    Sequential build:

      CLEAN -> COPY -> ENV_PREPARE -> PACKAGE_DEPS -> PRUNE_SETTING
        -> INSTALL_DEPS -> [SMOKE_TEST] -> ARCHIVE -> ENV_TEARDOWN -> DONE

    The first failing step stops the build with state FAILED and leaves the
    build tree on disk. The container is torn down whenever it was started.
    """

    def __init__(
        self,
        opts: Options,
        *,
        runner: CommandRunner | None = None,
        clean_fn: Callable[[], object] | None = None,
        docker: DockerEnvironment | None = None,
    ):
        self.opts = opts
        self.runner = runner or CommandRunner()
        self.clean_fn = clean_fn or (lambda: clean(opts, nuke=False, tarball=opts.filename))
        self.docker = docker or DockerEnvironment(
            path=opts.docker_path,
            tag=opts.docker_image,
            work_dir=opts.deployment_path,
            local_dir=opts.build_path,
            cache_dir=opts.docker_cache,
            runner=self.runner,
        )
        self.state: Optional[BuildState] = None
        self.failed_step: Optional[BuildState] = None
        self.history: List[BuildState] = []

    # ---- steps ----

    def _clean(self) -> None:
        self.clean_fn()

    def _copy(self) -> None:
        copy_files(self.opts.files, self.opts.base, self.opts.build_path)

    def _prepare(self) -> None:
        self.docker.prepare()

    def _package(self) -> None:
        get_console().print_cache_status(len(DependencyCache(self.opts.build_path).packaged()))
        bundler.package(self.opts.build_path, self.runner)

    def _prune(self) -> None:
        if not bundler.prune_setting(self.opts.build_path):
            get_console().print_debug("no remembered bundler setting to remove")

    def _install(self) -> None:
        cmd = " ".join(bundler.install_command())
        self.docker.run(cmd).check(STEP_NAMES[BuildState.INSTALL_DEPS])

    def _smoke_test(self) -> None:
        smoke = self.opts.smoke_test_cmd
        bundler.require_stub(self.opts.build_path, smoke)
        self.docker.run(bundler.smoke_test_command(smoke)).check(STEP_NAMES[BuildState.SMOKE_TEST])

    def _archive(self) -> None:
        archive.build_archive(self.opts.build_path, self.opts.output_path)
        get_console().print_created(self.opts.filename, self.opts.output_path)

    def _teardown(self) -> None:
        self.docker.teardown()

    def steps(self) -> List[Tuple[BuildState, Callable[[], None]]]:
        out = [
            (BuildState.CLEAN, self._clean),
            (BuildState.COPY, self._copy),
            (BuildState.ENV_PREPARE, self._prepare),
            (BuildState.PACKAGE_DEPS, self._package),
            (BuildState.PRUNE_SETTING, self._prune),
            (BuildState.INSTALL_DEPS, self._install),
        ]
        if self.opts.smoke_test_cmd:
            out.append((BuildState.SMOKE_TEST, self._smoke_test))
        out.append((BuildState.ARCHIVE, self._archive))
        return out

    # ---- state machine ----

    def _enter(self, state: BuildState) -> None:
        self.state = state
        self.history.append(state)
        get_console().print_step(STEP_NAMES[state])

    def _fail(self, state: BuildState) -> None:
        self.failed_step = state
        self.state = BuildState.FAILED

    def run(self) -> Path:
        """Run every step in order. Returns the tarball path."""
        prepared = False
        completed = False
        try:
            for state, fn in self.steps():
                self._enter(state)
                if state is BuildState.ENV_PREPARE:
                    # Set before the call: a half-started container still needs removing.
                    prepared = True
                try:
                    fn()
                except Exception:
                    self._fail(state)
                    raise
            completed = True
        finally:
            if prepared:
                self._release(failed=not completed)

        self.state = BuildState.DONE
        return self.opts.output_path

    def _release(self, *, failed: bool) -> None:
        if not failed:
            self._enter(BuildState.ENV_TEARDOWN)
            try:
                self._teardown()
            except PipelineError:
                self._fail(BuildState.ENV_TEARDOWN)
                raise
            return

        # Already failing: report a teardown problem without hiding the original error.
        console = get_console()
        console.print_step(STEP_NAMES[BuildState.ENV_TEARDOWN])
        try:
            self._teardown()
        except PipelineError as e:
            console.print_error("Teardown failed", str(e))
