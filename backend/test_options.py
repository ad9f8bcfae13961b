import pytest

from socdrc.drc.options import DRCOptions


def test_defaults():
    options = DRCOptions()
    assert options.check_optional_ports is False
    assert options.interconnect_fanout_limit == 16
    assert options.to_dict() == {
        "checkOptionalPorts": False,
        "namePattern": r"^[A-Za-z][A-Za-z0-9_\-. ]*$",
        "interconnectFanoutLimit": 16,
    }


def test_from_dict_accepts_camel_and_snake_case():
    options = DRCOptions.from_dict({"checkOptionalPorts": True, "interconnect_fanout_limit": "4"})
    assert options.check_optional_ports is True
    assert options.interconnect_fanout_limit == 4


def test_from_dict_keeps_base_values():
    base = DRCOptions(name_pattern="[a-z]+")
    options = DRCOptions.from_dict({"interconnectFanoutLimit": 2}, base=base)
    assert options.name_pattern == "[a-z]+"
    assert options.interconnect_fanout_limit == 2
    assert DRCOptions.from_dict(None, base=base) == base


def test_unknown_option_is_rejected():
    with pytest.raises(ValueError, match="Unknown DRC option"):
        DRCOptions.from_dict({"strictMode": True})


@pytest.mark.parametrize("kwargs", [{"name_pattern": "[unclosed"}, {"interconnect_fanout_limit": 0}])
def test_invalid_values_are_rejected(kwargs):
    with pytest.raises(ValueError):
        DRCOptions(**kwargs)


def test_from_yaml(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("checkOptionalPorts: true\nnamePattern: '^[A-Z][A-Za-z0-9_]*$'\n")
    options = DRCOptions.from_yaml(str(path))
    assert options.check_optional_ports is True
    assert options.name_pattern == "^[A-Z][A-Za-z0-9_]*$"
    assert options.interconnect_fanout_limit == 16


def test_empty_yaml_changes_nothing(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("")
    assert DRCOptions.from_yaml(str(path)) == DRCOptions()


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("- checkOptionalPorts\n")
    with pytest.raises(ValueError):
        DRCOptions.from_yaml(str(path))


def test_missing_yaml_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DRCOptions.from_yaml(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize("value, expected", [
    ("false", False), ("False", False), ("off", False), ("0", False), (0, False),
    ("true", True), ("yes", True), (" ON ", True), (1, True),
])
def test_boolean_option_spellings(value, expected):
    assert DRCOptions.from_dict({"checkOptionalPorts": value}).check_optional_ports is expected


@pytest.mark.parametrize("value", ["maybe", "", 2, None, [True]])
def test_unreadable_boolean_option_is_rejected(value):
    with pytest.raises(ValueError, match="checkOptionalPorts"):
        DRCOptions.from_dict({"checkOptionalPorts": value})


def test_quoted_yaml_boolean(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("checkOptionalPorts: 'no'\n")
    assert DRCOptions.from_yaml(str(path)).check_optional_ports is False
