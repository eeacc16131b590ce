import pytest

from conftest import install, make_source
from portforge.package_spec import PackageSpec
from portforge.resolver import (
    AlreadyInstalled,
    BuildFromSource,
    InstallPlanType,
    ResolutionError,
    ResolutionErrorKind,
    compute_missing,
    create_install_plan,
)
from portforge.triplet import Triplet


def spec_of(name, triplet):
    return PackageSpec.from_name_and_triplet(name, triplet)


def test_missing_libpng_scenario(status_db, triplet):
    install(status_db, "bzip2", triplet)
    source = make_source("zlib", "libpng (x64-windows), bzip2")
    spec = PackageSpec.parse("zlib:x64-windows", triplet)
    assert compute_missing(spec, source, triplet, status_db) == [spec_of("libpng", triplet)]


def test_nothing_missing(status_db, triplet):
    install(status_db, "bzip2", triplet)
    install(status_db, "libpng", triplet)
    source = make_source("zlib", "libpng (x64-windows), bzip2")
    assert compute_missing(spec_of("zlib", triplet), source, triplet, status_db) == []


def test_order_is_recipe_order_without_duplicates(status_db, triplet):
    install(status_db, "b", triplet)
    source = make_source("zlib", "d, b, c, a, d, C")
    missing = compute_missing(spec_of("zlib", triplet), source, triplet, status_db)
    assert [m.name for m in missing] == ["d", "c", "a"]


def test_other_triplet_install_does_not_satisfy(status_db, triplet):
    install(status_db, "bzip2", Triplet.from_canonical_name("x86-windows"))
    source = make_source("zlib", "bzip2")
    assert compute_missing(spec_of("zlib", triplet), source, triplet, status_db) == [spec_of("bzip2", triplet)]


def test_half_installed_does_not_satisfy(status_db, triplet):
    status_db.mark_half_installed(spec_of("bzip2", triplet))
    source = make_source("zlib", "bzip2")
    assert compute_missing(spec_of("zlib", triplet), source, triplet, status_db) == [spec_of("bzip2", triplet)]


def test_invalid_dependency_name(status_db, triplet):
    source = make_source("zlib", "bad\\name")
    with pytest.raises(ResolutionError) as exc:
        compute_missing(spec_of("zlib", triplet), source, triplet, status_db)
    assert exc.value.kind is ResolutionErrorKind.INVALID_DEPENDENCY_NAME


def test_install_plan_cascade(status_db, triplet):
    plan = create_install_plan(spec_of("zlib", triplet), make_source("zlib", "libpng"), status_db)
    assert not plan.ok
    assert plan.unmet == [spec_of("libpng", triplet)]
    assert plan.actions == []


def test_install_plan_order(status_db, triplet):
    install(status_db, "bzip2", triplet)
    install(status_db, "libpng", triplet)
    source = make_source("zlib", "libpng, bzip2")
    plan = create_install_plan(spec_of("zlib", triplet), source, status_db)
    assert plan.ok
    assert plan.actions == [
        AlreadyInstalled(spec_of("libpng", triplet)),
        AlreadyInstalled(spec_of("bzip2", triplet)),
        BuildFromSource(spec_of("zlib", triplet), source),
    ]
    assert plan.to_build()[0].plan_type is InstallPlanType.BUILD_FROM_SOURCE

    install(status_db, "zlib", triplet)
    plan = create_install_plan(spec_of("zlib", triplet), source, status_db)
    assert plan.actions[-1] == AlreadyInstalled(spec_of("zlib", triplet))
    assert plan.to_build() == []
