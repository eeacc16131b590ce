import pytest

from conftest import make_source
from portforge.control import parse_single_paragraph
from portforge.package_spec import PackageSpec
from portforge.paragraphs import BinaryParagraph, ParagraphError, SourceParagraph, load_port, serialize
from portforge.triplet import Triplet


def test_source_from_fields():
    src = SourceParagraph.from_fields({
        "Source": "ZLib",
        "Version": "1.2.11",
        "Description": "compression",
        "Build-Depends": "bzip2, libpng (windows)",
    })
    assert src.name == "zlib"
    assert [d.name for d in src.depends] == ["bzip2", "libpng"]
    assert src.maintainer == ""


@pytest.mark.parametrize("fields", [
    {"Version": "1.0"},
    {"Source": "zlib"},
    {"Source": "zlib", "Version": "  "},
    {"Source": "bad/name", "Version": "1.0"},
    {"Source": "zlib", "Version": "1.0", "Build-Depends": "a (b"},
])
def test_source_missing_or_malformed(fields):
    with pytest.raises(ParagraphError):
        SourceParagraph.from_fields(fields)


def test_from_source_filters_depends(triplet):
    src = make_source("zlib", "libpng (x64-windows), bzip2, openssl (linux)")
    bpgh = BinaryParagraph.from_source(src, triplet)
    assert bpgh.spec == PackageSpec.from_name_and_triplet("zlib", triplet)
    assert bpgh.depends == ("libpng", "bzip2")
    assert (bpgh.version, bpgh.description, bpgh.maintainer) == (src.version, src.description, src.maintainer)


def test_serialize_field_order(triplet):
    bpgh = BinaryParagraph.from_source(make_source("zlib", "libpng, bzip2"), triplet)
    assert serialize(bpgh) == (
        "Package: zlib\n"
        "Architecture: x64-windows\n"
        "Version: 1.2.11\n"
        "Description: zlib library\n"
        "Maintainer: someone@example.com\n"
        "Depends: libpng, bzip2\n"
        "\n"
    )


@pytest.mark.parametrize("paragraph", [
    BinaryParagraph(PackageSpec("zlib", Triplet("x64-windows")), "1.2.11"),
    BinaryParagraph(PackageSpec("boost-asio", Triplet("x86-windows")), "1.66.0-1", "Asio\n\nnetworking\n.dots", "m", ("boost-system", "openssl")),
])
def test_serialize_round_trip(paragraph):
    assert BinaryParagraph.from_fields(parse_single_paragraph(serialize(paragraph))) == paragraph


def test_projections(triplet):
    bpgh = BinaryParagraph(PackageSpec("zlib", triplet), "1.2.11")
    assert bpgh.displayname() == "zlib:x64-windows"
    assert bpgh.fullstem() == "zlib_1.2.11_x64-windows"
    assert bpgh.dir() == "zlib_x64-windows"


def test_binary_from_fields_requires_identity():
    with pytest.raises(ParagraphError):
        BinaryParagraph.from_fields({"Package": "zlib", "Version": "1"})
    with pytest.raises(ParagraphError):
        BinaryParagraph.from_fields({"Package": "zlib", "Architecture": "x64-windows"})


def test_load_port(root):
    from conftest import write_port

    port = write_port(root, "zlib", depends="bzip2")
    src = load_port(port)
    assert src.name == "zlib" and src.version == "1.0"
    with pytest.raises(ParagraphError):
        load_port(root / "ports" / "nope")


@pytest.mark.parametrize("description", [
    "line one\n",
    "a\x0cb",
    "first second\x85third",
    "  padded first line  \n  kept indent  ",
    "windows\r\nline endings",
    "\n",
])
def test_round_trip_awkward_descriptions(triplet, description):
    para = BinaryParagraph(PackageSpec("zlib", triplet), "1.0", description, " someone ")
    text = serialize(para)
    assert BinaryParagraph.from_fields(parse_single_paragraph(text)) == para


def test_constructor_normalizes_text_fields(triplet):
    para = BinaryParagraph(PackageSpec("zlib", triplet), " 1.0 ", "  line one\r\nline two", depends=("BZip2", " ", "libpng "))
    assert para.version == "1.0"
    assert para.description == "line one\nline two"
    assert para.depends == ("bzip2", "libpng")


def test_from_source_collapses_mixed_case_duplicates(triplet):
    bpgh = BinaryParagraph.from_source(make_source("zlib", "bzip2, BZip2"), triplet)
    assert bpgh.depends == ("bzip2",)
