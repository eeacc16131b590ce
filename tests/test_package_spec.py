import pytest

from portforge.package_spec import PackageSpec, ParseError, ParseErrorKind
from portforge.triplet import Triplet, TripletError, load_available_triplets


def test_parse_name_only_uses_default_triplet(triplet):
    spec = PackageSpec.parse("onlyname", triplet)
    assert spec.name == "onlyname"
    assert spec.triplet == triplet


def test_parse_name_and_triplet(triplet):
    spec = PackageSpec.parse("zlib:x86-windows", triplet)
    assert spec.name == "zlib"
    assert spec.triplet == Triplet.from_canonical_name("x86-windows")


def test_parse_lowercases(triplet):
    assert PackageSpec.parse("ZLib:X64-Windows", triplet) == PackageSpec.parse("zlib", triplet)


@pytest.mark.parametrize("text", ["", ":x64-windows", "a:b:c", "zlib:", "zlib:nodash", "zl/ib", "zlib:x64_windows"])
def test_parse_malformed(text, triplet):
    with pytest.raises(ParseError) as exc:
        PackageSpec.parse(text, triplet)
    assert exc.value.kind is ParseErrorKind.MALFORMED


def test_parse_unknown_triplet_with_registry(triplet):
    available = {"x64-windows": triplet}
    with pytest.raises(ParseError):
        PackageSpec.parse("zlib:x64-osx", triplet, available)
    assert PackageSpec.parse("zlib:x64-windows", triplet, available).triplet == triplet


@pytest.mark.parametrize("name", ["zlib", "libpng", "boost-asio", "qt5.base", "a_b", "gtk+"])
def test_round_trip(name, triplet):
    spec = PackageSpec.from_name_and_triplet(name, triplet)
    assert PackageSpec.parse(spec.to_string(), Triplet.from_canonical_name("x86-windows")) == spec
    assert str(spec) == f"{name}:x64-windows"


def test_from_name_and_triplet_rejects_empty(triplet):
    with pytest.raises(ParseError):
        PackageSpec.from_name_and_triplet("", triplet)


def test_equality_and_hash(triplet):
    a = PackageSpec.from_name_and_triplet("zlib", triplet)
    b = PackageSpec.from_name_and_triplet("zlib", Triplet.from_canonical_name("x64-windows"))
    c = PackageSpec.from_name_and_triplet("zlib", Triplet.from_canonical_name("x86-windows"))
    assert a == b and hash(a) == hash(b)
    assert a != c
    assert len({a, b, c}) == 2


def test_install_dir_name_is_injective():
    t1 = Triplet.from_canonical_name("x64-windows")
    t2 = Triplet.from_canonical_name("windows-x64")
    specs = [
        PackageSpec.from_name_and_triplet("a_x64", t2),
        PackageSpec.from_name_and_triplet("a", t1),
        PackageSpec.from_name_and_triplet("a_x64-windows", t1),
    ]
    names = [s.install_dir_name() for s in specs]
    assert len(set(names)) == len(names)
    assert specs[1].install_dir_name() == "a_x64-windows"


def test_triplet_parts():
    t = Triplet.from_canonical_name("arm64-linux-static")
    assert t.architecture == "arm64"
    assert t.platform_tags == ("linux", "static")
    with pytest.raises(TripletError):
        Triplet.from_canonical_name("x64")


def test_load_available_triplets(root):
    found = load_available_triplets(root / "triplets")
    assert "x64-windows" in found
    assert "arm64-uwp" in found
    assert load_available_triplets(root / "missing") == {}
