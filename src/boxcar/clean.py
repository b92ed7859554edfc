# clean.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import List

from .cache import DependencyCache
from .model import Options
from .ui.console import get_console


def _remove(path: Path) -> bool:
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False


def clean_targets(opts: Options, *, nuke: bool, tarball: str) -> List[Path]:
    """
    List what clean() would remove: every entry under the build directory
    except the dependency cache, then the tarball, then (nuke) the cache
    and the build directory itself.
    """
    cache = DependencyCache(opts.build_path)
    targets: List[Path] = []

    if opts.build_path.is_dir():
        for p in sorted(opts.build_path.iterdir()):
            if cache.contains(p):
                continue
            targets.append(p)

    # Relative names sit next to the build directory, where the build writes them.
    targets.append(opts.build_path.parent / tarball)
    if nuke:
        targets.append(cache.root)
        targets.append(opts.build_path)
    return targets


def clean(opts: Options, *, nuke: bool, tarball: str) -> List[Path]:
    """
    Remove build artifacts. Safe to call repeatedly.

    nuke=False keeps build/vendor so bundler can skip fetching gems and
    compiling native extensions on the next build. nuke=True also drops the
    cache (use after a platform or bundler upgrade).

    Returns the paths that were actually removed.
    """
    # The selective delete only makes sense against an existing directory.
    opts.build_path.mkdir(parents=True, exist_ok=True)

    removed = [p for p in clean_targets(opts, nuke=nuke, tarball=tarball) if _remove(p)]
    get_console().print_removed([str(p) for p in removed])
    return removed
