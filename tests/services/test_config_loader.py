import pytest

from gotestci.errors import BuildError
from gotestci.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".gotestci.yml"
    config_file.write_text(
        "max_failures: 2\n"
        "dockerfile: build/alpine/Dockerfile\n"
        "exclude_patterns:\n"
        "  - vendor\n"
        "  - e2e\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["max_failures"] == 2
    assert loaded["dockerfile"] == "build/alpine/Dockerfile"
    assert loaded["exclude_patterns"] == ("vendor", "e2e")


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".gotestci.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(BuildError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_list_patterns(tmp_path):
    config_file = tmp_path / ".gotestci.yml"
    config_file.write_text("exclude_patterns: {vendor: true}\n", encoding="utf-8")

    with pytest.raises(BuildError, match="must be a list"):
        ConfigLoader().load(str(config_file))


def test_build_config_ignores_cli_only_keys():
    config = ConfigLoader().build_config({"verbose": True, "log_file": "x.log", "max_failures": 4})

    assert config.max_failures == 4
    assert config.run_locally is False
