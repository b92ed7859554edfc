# cache.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List

# ---------------------------------------------------------------------
# Dependency cache
# ---------------------------------------------------------------------
# Layout under the build directory:
#
#   build/vendor/
#     cache/     <- `bundle package` output (*.gem, git checkouts)
#     bundle/    <- `bundle install --path vendor/bundle` output
#
# The whole vendor/ subtree survives a normal clean so the next build does
# not have to fetch gems or recompile native extensions again.
# Only one pipeline may use a given cache at a time; nothing here locks.
# ---------------------------------------------------------------------

VENDOR_DIR = "vendor"


@dataclass(frozen=True)
class DependencyCache:
    build_path: Path

    @property
    def root(self) -> Path:
        return self.build_path / VENDOR_DIR

    @property
    def package_dir(self) -> Path:
        return self.root / "cache"

    def contains(self, path: Path) -> bool:
        """True if path is the cache root or lives under it."""
        try:
            path.relative_to(self.root)
        except ValueError:
            return False
        return True

    def packaged(self) -> List[Path]:
        """Packaged gem archives, sorted by name."""
        if not self.package_dir.is_dir():
            return []
        return sorted(self.package_dir.glob("*.gem"))
