# archive.py
from __future__ import annotations

import tarfile
from pathlib import Path, PurePosixPath
from typing import Iterable, List

# ---------------------------------------------------------------------
# Archive filter
# ---------------------------------------------------------------------
# Patterns follow `tar --exclude` semantics: matched against the path
# relative to the archive root, component by component from the right,
# so "*.c" hits a C file at any depth.
#
# Everything excluded here is build-time or test-only payload: native
# extension sources and objects, packaged .gem files, OS litter, and
# per-gem ext/ spec/ test/ trees plus compiled extension caches.
# ---------------------------------------------------------------------

EXCLUDED_FILES = [
    "*.c",
    "*.h",
    "*.o",
    "*.gem",
    ".DS_Store",
]

EXCLUDED_DIRS = [
    "vendor/bundle/ruby/*[0-9]/gems/*-*[0-9]/ext",
    "vendor/bundle/ruby/*[0-9]/gems/*-*[0-9]/spec",
    "vendor/bundle/ruby/*[0-9]/gems/*-*[0-9]/test",
    "vendor/bundle/ruby/*[0-9]/extensions",
    "vendor/cache/extensions",
]


def _matches_any_glob(rel: str, globs: List[str]) -> bool:
    rel_path = PurePosixPath(rel)
    return any(rel_path.match(g) for g in globs)


def is_excluded(rel: str, is_dir: bool = False) -> bool:
    """
    Decide whether a tree entry stays out of the artifact.

    Args:
        rel: POSIX path relative to the archive root
        is_dir: whether the entry is a directory

    Top-level dot entries (.bundle/, .git/, ...) are always left out.
    """
    if rel.split("/", 1)[0].startswith("."):
        return True
    if is_dir:
        return _matches_any_glob(rel, EXCLUDED_DIRS)
    return _matches_any_glob(rel, EXCLUDED_FILES)


def _iter_members(root: Path) -> Iterable[Path]:
    # deterministic traversal, pruning excluded directories
    for p in sorted(root.iterdir()):
        rel = p.relative_to(root).as_posix()
        yield from _walk(root, p, rel)


def _walk(root: Path, p: Path, rel: str) -> Iterable[Path]:
    if p.is_dir() and not p.is_symlink():
        if is_excluded(rel, is_dir=True):
            return
        yield p
        for child in sorted(p.iterdir()):
            yield from _walk(root, child, child.relative_to(root).as_posix())
        return
    if not is_excluded(rel):
        yield p


def _list_members(root: str | Path) -> List[str]:
    """Relative paths that build_archive() would add, in order."""
    root = Path(root)
    return [p.relative_to(root).as_posix() for p in _iter_members(root)]


def build_archive(root: str | Path, output_path: str | Path) -> Path:
    """
    Write a gzip tarball of root to output_path, skipping excluded entries.

    The tarball is assembled under a temporary name and renamed into place,
    so a failure never leaves a truncated artifact at output_path.
    """
    root = Path(root).resolve()
    out = Path(output_path).resolve()
    out.parent.mkdir(parents=True, exist_ok=True)

    tmp = out.with_name(out.name + ".tmp")
    try:
        with tarfile.open(str(tmp), mode="w:gz") as tar:
            for arcname in _list_members(root):
                tar.add(str(root / arcname), arcname=arcname, recursive=False)
        tmp.replace(out)
    finally:
        if tmp.exists():
            tmp.unlink(missing_ok=True)

    return out
