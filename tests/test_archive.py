import tarfile

import pytest

from boxcar.archive import _list_members, build_archive, is_excluded
from boxcar.build import copy_files


def _touch(root, *rels):
    for rel in rels:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("x")


def _names(path):
    with tarfile.open(path, "r:gz") as tar:
        return sorted(m.name for m in tar.getmembers() if m.isfile())


@pytest.mark.parametrize(
    "rel",
    [
        "vendor/cache/rack-2.2.8.gem",
        "lib/native/thing.c",
        "lib/native/thing.h",
        "lib/native/thing.o",
        "lib/.DS_Store",
    ],
)
def test_excluded_files(rel):
    assert is_excluded(rel)


@pytest.mark.parametrize(
    "rel",
    [
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/ext",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/spec",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/test",
        "vendor/bundle/ruby/3.2.0/extensions",
        "vendor/cache/extensions",
        ".bundle",
    ],
)
def test_excluded_dirs(rel):
    assert is_excluded(rel, is_dir=True)


@pytest.mark.parametrize(
    "rel, is_dir",
    [
        ("lib/a.rb", False),
        ("test", True),
        ("spec", True),
        ("vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib/json/ext", True),
        ("vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib", True),
        ("lib/.hidden", False),
    ],
)
def test_kept_entries(rel, is_dir):
    assert not is_excluded(rel, is_dir=is_dir)


def test_archive_drops_gem_archives_and_ext_trees(tmp_path):
    root = tmp_path / "build"
    _touch(
        root,
        "lib/a.rb",
        "vendor/cache/json-2.6.3.gem",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib/json.rb",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib/json/ext/parser.so",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/ext/json/extconf.rb",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/test/json_test.rb",
        "vendor/bundle/ruby/3.2.0/extensions/x86_64-linux/3.2.0/json-2.6.3/gem.build_complete",
        ".bundle/config",
    )
    out = tmp_path / "build.tar.gz"

    build_archive(root, out)

    assert _names(out) == [
        "lib/a.rb",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib/json.rb",
        "vendor/bundle/ruby/3.2.0/gems/json-2.6.3/lib/json/ext/parser.so",
    ]
    assert not (tmp_path / "build.tar.gz.tmp").exists()


def test_archive_contains_exactly_declared_files(tmp_path):
    base = tmp_path / "app"
    _touch(base, "lib/a.rb", "lib/b.rb", "bin/c")
    build = base / "build"

    copy_files(["lib/a.rb", "bin/c"], base, build)
    build_archive(build, base / "build.tar.gz")

    assert _names(base / "build.tar.gz") == ["bin/c", "lib/a.rb"]


def test_archive_member_names_are_relative(tmp_path):
    root = tmp_path / "build"
    _touch(root, "lib/a.rb")

    assert _list_members(root) == ["lib", "lib/a.rb"]


def test_archive_overwrites_previous_artifact(tmp_path):
    root = tmp_path / "build"
    _touch(root, "lib/a.rb")
    out = tmp_path / "build.tar.gz"
    out.write_bytes(b"stale")

    build_archive(root, out)

    assert _names(out) == ["lib/a.rb"]
