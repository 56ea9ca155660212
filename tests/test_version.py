import pytest

from dcpstream.version import (
    SRV_VER_550,
    SRV_VER_650,
    SRV_VER_720,
    Version,
    parse_version,
)


def test_parse_full_version():
    assert parse_version("7.6.3-1234-enterprise") == Version(7, 6, 3, 1234)


def test_parse_short_forms():
    assert parse_version("7") == Version(7)
    assert parse_version("6.5") == SRV_VER_650
    assert parse_version("5.5.0") == SRV_VER_550


def test_non_numeric_build_is_ignored():
    assert parse_version("7.2.0-enterprise") == SRV_VER_720


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("", "major"),
        ("x.1.0", "major"),
        ("7.x", "minor"),
        ("7.2.y", "patch"),
    ],
)
def test_parse_errors(text, message):
    with pytest.raises(ValueError, match=message):
        parse_version(text)


def test_higher_and_lower():
    assert SRV_VER_720.higher(SRV_VER_650)
    assert not SRV_VER_650.higher(SRV_VER_720)
    assert SRV_VER_550.lower(SRV_VER_650)
    assert not SRV_VER_720.lower(SRV_VER_550)


def test_equal_versions_are_neither_higher_nor_lower():
    same = parse_version("7.2.0")
    assert same == SRV_VER_720
    assert not same.higher(SRV_VER_720)
    assert not same.lower(SRV_VER_720)


def test_build_breaks_ties():
    assert Version(7, 2, 0, 5).higher(Version(7, 2, 0, 4))
    assert Version(7, 2, 0, 4).lower(Version(7, 2, 0, 5))


def test_major_dominates_minor():
    assert Version(8, 0).higher(Version(7, 9, 9, 9))