from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from portforge.config import Config, load
from portforge.dependencies import parse_depends
from portforge.package_spec import PackageSpec
from portforge.paragraphs import BinaryParagraph, SourceParagraph
from portforge.status_db import StatusDatabase
from portforge.triplet import Triplet

TRIPLETS = ("x64-windows", "x86-windows", "x64-linux", "arm64-uwp")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for var in ("PORTFORGE_CONFIG", "PORTFORGE_ROOT", "PORTFORGE_DEFAULT_TRIPLET"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def triplet() -> Triplet:
    return Triplet.from_canonical_name("x64-windows")


@pytest.fixture
def root(tmp_path) -> Path:
    r = tmp_path / "root"
    (r / "triplets").mkdir(parents=True)
    for t in TRIPLETS:
        (r / "triplets" / f"{t}.cmake").write_text("set(VCPKG_TARGET_ARCHITECTURE x64)\n")
    (r / "ports").mkdir()
    return r


@pytest.fixture
def config(root) -> Config:
    return load(overrides={"root": str(root), "default_triplet": "x64-windows"}, fatal=True)


@pytest.fixture
def status_db(config) -> StatusDatabase:
    return StatusDatabase(config.paths.status_file)


def make_source(name: str = "zlib", depends: str = "", version: str = "1.2.11") -> SourceParagraph:
    return SourceParagraph(
        name=name,
        version=version,
        description=f"{name} library",
        maintainer="someone@example.com",
        depends=parse_depends(depends),
    )


def install(db: StatusDatabase, name: str, triplet: Triplet, depends=()) -> BinaryParagraph:
    spec = PackageSpec.from_name_and_triplet(name, triplet)
    para = BinaryParagraph(spec=spec, version="1.0", description=f"{name} library", depends=tuple(depends))
    db.mark_half_installed(spec, para)
    db.mark_installed(spec, para)
    return para


def write_port(root: Path, name: str, depends: str = "", version: str = "1.0") -> Path:
    port = root / "ports" / name
    port.mkdir(parents=True, exist_ok=True)
    lines = [f"Source: {name}", f"Version: {version}", f"Description: the {name} library"]
    if depends:
        lines.append(f"Build-Depends: {depends}")
    (port / "CONTROL").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return port


def populate_package(packages: Path, spec: PackageSpec) -> Path:
    """Create a package tree that passes the default post-build checks."""
    d = packages / spec.install_dir_name()
    (d / "include").mkdir(parents=True, exist_ok=True)
    (d / "include" / f"{spec.name}.h").write_text("#pragma once\n")
    (d / "share" / spec.name).mkdir(parents=True, exist_ok=True)
    (d / "share" / spec.name / "copyright").write_text("MIT\n")
    return d


class FakeRunner:
    def __init__(self, rc: int = 0, elapsed: float = 1.5, packages: Optional[Path] = None):
        self.rc = rc
        self.elapsed = elapsed
        self.packages = packages
        self.calls: List[Tuple[str, PackageSpec, Path]] = []

    def run(self, source, spec, port_dir, env_overrides=None):
        self.calls.append((source.name, spec, port_dir))
        if self.rc == 0 and self.packages is not None:
            populate_package(self.packages, spec)
        return self.rc, self.elapsed


class FakeLinter:
    def __init__(self, errors: int = 0):
        self.errors = errors
        self.calls: List[PackageSpec] = []

    def check(self, spec):
        self.calls.append(spec)
        return self.errors
