import pytest

from bladeoperator import version
from bladeoperator.version import parse_combined_version


def test_empty_gives_defaults():
    assert parse_combined_version("", ",") == ("unknown", "community")


def test_version_and_product():
    assert parse_combined_version("0.10.0,ahas", ",") == ("0.10.0", "ahas")


def test_version_only_keeps_default_product():
    assert parse_combined_version("0.10.0", ",") == ("0.10.0", "community")


def test_extra_fields_ignored():
    assert parse_combined_version("1.2.3,ahas,extra", ",") == ("1.2.3", "ahas")


def test_custom_delimiter():
    assert parse_combined_version("1.0#community", "#") == ("1.0", "community")


@pytest.mark.parametrize("combined", ["", "1.0", "1.0,ahas"])
def test_module_defaults_match_parser(combined):
    parsed_version, parsed_product = parse_combined_version(combined)
    assert parsed_product in ("community", "ahas")
    if combined:
        assert parsed_version == combined.split(",")[0]
    else:
        assert parsed_version == version.DEFAULT_VERSION


def test_module_level_values():
    assert (version.VERSION, version.PRODUCT) == parse_combined_version(
        version.COMBINED_VERSION, version.DELIMITER
    )