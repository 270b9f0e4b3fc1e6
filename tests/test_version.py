import pytest

from natnetbridge.version import Version


def test_default_is_all_zero():
    assert Version() == Version(0, 0, 0, 0)


def test_str_has_four_parts():
    assert str(Version(3, 1, 0, 2)) == "3.1.0.2"


def test_parse_fills_missing_parts_with_zero():
    assert Version.parse("2.6") == Version(2, 6, 0, 0)


@pytest.mark.parametrize(
    "version",
    [Version(), Version(1, 7), Version(2, 9, 1), Version(3, 0, 0, 0), Version(4, 1, 2, 3)],
)
def test_str_parse_round_trip(version):
    assert Version.parse(str(version)) == version


def test_parse_stops_at_garbage():
    assert Version.parse("2.6.x.9") == Version.parse("2.6")


def test_parse_of_empty_text_is_zero_version():
    assert Version.parse("") == Version()


def test_parse_skips_leading_whitespace():
    assert Version.parse("  3.0") == Version.parse("3.0")


def test_equal_versions_hash_alike():
    assert hash(Version.parse("2.7")) == hash(Version(2, 7))
    assert len({Version(2, 7), Version.parse("2.7.0.0")}) == 1


def test_plain_ordering():
    assert Version.parse("3.0") > Version.parse("2.0")
    assert Version.parse("2.0") < Version.parse("3.0")
    assert Version.parse("2.6") >= Version.parse("2.6")
    assert Version.parse("2.6") <= Version.parse("2.6")
    assert not Version.parse("2.6") > Version.parse("2.6")
    assert not Version.parse("2.6") < Version.parse("2.6")


def test_ordering_is_component_wise_any():
    # A larger minor counts as greater even when the major is smaller.
    assert Version.parse("2.6") > Version.parse("3.0")
    assert Version.parse("2.6") < Version.parse("3.0")
    assert Version.parse("2.0") < Version.parse("1.7")


def test_coordinate_range_check():
    version = Version.parse("1.8")
    assert version < Version.parse("2.0") and version >= Version.parse("1.7")
    newer = Version.parse("3.0")
    assert not (newer < Version.parse("2.0") and newer >= Version.parse("1.7"))


def test_not_equal_to_other_types():
    assert (Version() == (0, 0, 0, 0)) is False
    assert (Version(2, 6) == "2.6.0.0") is False


def test_ordering_with_other_types_raises():
    with pytest.raises(TypeError):
        Version() < (0, 0, 0, 0)