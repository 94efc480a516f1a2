"""resolver.py 依赖解析单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgadd.core.exceptions import ValidationError
from pkgadd.core.models import (
    DeclaredDependency,
    DepState,
    PackageDescriptor,
    PackageIdentity,
)
from pkgadd.core.pkgdb import JsonPackageDB
from pkgadd.core.resolver import DependencyResolver, archive_extension


def _pkg(name: str, *deps: str) -> PackageDescriptor:
    return PackageDescriptor(
        identity=PackageIdentity(name, "1.0", f"misc/{name}"),
        dependencies=[
            DeclaredDependency(PackageIdentity(d, "1.0", f"misc/{d}")) for d in deps
        ],
    )


@pytest.fixture()
def db(tmp_path: Path) -> JsonPackageDB:
    return JsonPackageDB(tmp_path / "local.json")


class TestArchiveExtension:
    @pytest.mark.parametrize(("path", "ext"), [
        ("/pkgs/foo-1.0.tgz", ".tgz"),
        ("/pkgs/foo-1.0.tar.gz", ".tar.gz"),
        ("/pkgs/foo-1.0.tar.xz", ".tar.xz"),
        ("foo-1.0.tbz", ".tbz"),
    ])
    def test_extension(self, path: str, ext: str) -> None:
        assert archive_extension(path) == ext

    def test_no_extension(self) -> None:
        with pytest.raises(ValidationError, match="没有扩展名"):
            archive_extension("/pkgs/foo")


class TestDependencyResolver:
    def test_resolve_states(self, db: JsonPackageDB) -> None:
        db.register(_pkg("bar"))
        pkg = _pkg("foo", "bar", "baz")

        states = DependencyResolver(db).resolve(pkg)
        assert states == {
            "misc/bar": DepState.SATISFIED_INSTALLED,
            "misc/baz": DepState.UNRESOLVED,
        }

    def test_resolve_empty_database_argument(self, tmp_path: Path, db: JsonPackageDB) -> None:
        db.register(_pkg("bar"))
        empty = JsonPackageDB(tmp_path / "other.json")
        pkg = _pkg("foo", "bar")

        assert DependencyResolver(db).resolve(pkg, empty) == {"misc/bar": DepState.UNRESOLVED}

    def test_resolve_rederives_from_scratch(self, db: JsonPackageDB, tmp_path: Path) -> None:
        (tmp_path / "bar-1.0.tgz").touch()
        resolver = DependencyResolver(db)
        pkg = _pkg("foo", "bar")
        resolver.locate_candidate(pkg.dependencies[0], tmp_path / "foo-1.0.tgz")
        assert pkg.dependencies[0].state == DepState.SATISFIED_BY_PATH

        resolver.resolve(pkg)
        assert pkg.dependencies[0].state == DepState.UNRESOLVED
        assert pkg.dependencies[0].path == ""

    def test_no_dependencies(self, db: JsonPackageDB) -> None:
        assert DependencyResolver(db).resolve(_pkg("foo")) == {}

    def test_candidate_path_uses_own_extension(self) -> None:
        dep = _pkg("foo", "bar").dependencies[0]
        path = DependencyResolver.candidate_path(dep, "/pkgs/foo-1.0.tar.gz")
        assert path == Path("/pkgs/bar-1.0.tar.gz")

    def test_locate_candidate(self, db: JsonPackageDB, tmp_path: Path) -> None:
        (tmp_path / "bar-1.0.tgz").touch()
        resolver = DependencyResolver(db)
        dep = _pkg("foo", "bar").dependencies[0]

        found = resolver.locate_candidate(dep, tmp_path / "foo-1.0.tgz")
        assert found == tmp_path / "bar-1.0.tgz"
        assert dep.state == DepState.SATISFIED_BY_PATH
        assert dep.path == str(found)

    def test_locate_candidate_missing(self, db: JsonPackageDB, tmp_path: Path) -> None:
        dep = _pkg("foo", "bar").dependencies[0]
        assert DependencyResolver(db).locate_candidate(dep, tmp_path / "foo-1.0.tgz") is None
        assert dep.state == DepState.UNRESOLVED

    def test_dependency_without_origin_falls_back_to_name(self, db: JsonPackageDB) -> None:
        db.register(PackageDescriptor(identity=PackageIdentity("bar", "2.0", "devel/bar")))
        pkg = PackageDescriptor(
            identity=PackageIdentity("foo", "1.0", "misc/foo"),
            dependencies=[
                DeclaredDependency(PackageIdentity("bar", "1.0")),
                DeclaredDependency(PackageIdentity("bar", "1.0", "misc/bar")),
            ],
        )

        DependencyResolver(db).resolve(pkg)
        assert pkg.dependencies[0].state == DepState.SATISFIED_INSTALLED
        assert pkg.dependencies[1].state == DepState.UNRESOLVED
