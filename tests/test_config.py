"""Tests for azsync.config - run configuration and YAML config files.

NOT to be confused with test_config_schema.py (Pydantic models). This
tests validate_config(), load_config(), require() and the discovery and
merging of YAML config files.
"""

import textwrap

import pytest

from azsync.config import (
    Config,
    config_file_paths,
    expand_placeholders,
    load_config,
    read_config_files,
    require,
    validate_config,
)
from azsync.sync.models import SyncMode

_ENV_VARS = (
    "AZSYNC_MODE",
    "AZSYNC_MAX_PARALLEL",
    "AZSYNC_RETRY_ATTEMPTS",
    "AZSYNC_RETRY_BASE_DELAY",
    "AZSYNC_DEBUG",
    "AZSYNC_WARN_ON_OVERWRITE",
    "AZSYNC_CONTAINER",
    "KEY_VAULT_URL",
    "STORAGE_ACCOUNT_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() - ranges and endpoint format."""

    def test_defaults_are_valid(self):
        validate_config(Config())  # should not raise

    def test_mode_normalised(self):
        config = Config(mode="SYNC")
        validate_config(config)
        assert config.mode == "auto"

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown sync mode"):
            validate_config(Config(mode="mirror"))

    @pytest.mark.parametrize("value", [0, 65])
    def test_max_parallel_range(self, value):
        with pytest.raises(ValueError, match="between 1 and 64"):
            validate_config(Config(max_parallel=value))

    def test_retry_attempts_range(self):
        with pytest.raises(ValueError, match="between 1 and 10"):
            validate_config(Config(retry_attempts=0))

    def test_negative_delay(self):
        with pytest.raises(ValueError, match="must not be negative"):
            validate_config(Config(retry_base_delay=-0.1))

    def test_trailing_slash_stripped(self):
        config = Config(key_vault_url="https://v.vault.azure.net/")
        validate_config(config)
        assert config.key_vault_url == "https://v.vault.azure.net"

    def test_whitespace_url_stripped(self):
        config = Config(storage_account_url="  https://a.blob.core.windows.net  ")
        validate_config(config)
        assert config.storage_account_url == "https://a.blob.core.windows.net"

    def test_url_without_scheme(self):
        with pytest.raises(ValueError, match="Unsupported scheme"):
            validate_config(Config(key_vault_url="v.vault.azure.net"))

    def test_url_without_host(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(key_vault_url="https://"))

    def test_blank_container(self):
        with pytest.raises(ValueError, match="Container name cannot be empty"):
            validate_config(Config(container_name="   "))


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() - precedence, references, numeric parsing."""

    def test_defaults(self):
        config = load_config()
        assert config.mode == "auto"
        assert config.max_parallel == 8
        assert config.key_vault_url is None
        assert config.warn_on_overwrite is True

    def test_load_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("AZSYNC_MODE", "pull")
        monkeypatch.setenv("AZSYNC_MAX_PARALLEL", "3")
        monkeypatch.setenv("KEY_VAULT_URL", "https://v.vault.azure.net")
        monkeypatch.setenv("AZSYNC_CONTAINER", "configs")

        config = load_config()

        assert config.mode == "pull"
        assert config.max_parallel == 3
        assert config.key_vault_url == "https://v.vault.azure.net"
        assert config.container_name == "configs"

    def test_cli_args_override_env(self, monkeypatch):
        monkeypatch.setenv("AZSYNC_MODE", "pull")
        monkeypatch.setenv("AZSYNC_MAX_PARALLEL", "3")

        config = load_config(mode="push", max_parallel=5)

        assert config.mode == "push"
        assert config.max_parallel == 5

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("AZSYNC_MODE", "pull")
        config = load_config(yaml_fallbacks={"mode": "push", "retry_attempts": 2})
        assert config.mode == "pull"
        assert config.retry_attempts == 2

    def test_yaml_fallbacks_used(self):
        config = load_config(
            yaml_fallbacks={
                "mode": "pull-always",
                "max_parallel": 2,
                "retry_base_delay": 1.5,
                "warn_on_overwrite": False,
                "storage_account_url": "https://a.blob.core.windows.net",
            }
        )
        assert config.mode == "pull-always"
        assert config.max_parallel == 2
        assert config.retry_base_delay == 1.5
        assert config.warn_on_overwrite is False
        assert config.storage_account_url == "https://a.blob.core.windows.net"

    @pytest.mark.parametrize("raw", ["many", "0", "100"])
    def test_invalid_numeric_env(self, monkeypatch, raw):
        monkeypatch.setenv("AZSYNC_MAX_PARALLEL", raw)
        with pytest.raises(ValueError, match="AZSYNC_MAX_PARALLEL"):
            load_config()

    @pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("no", False)])
    def test_debug_env_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("AZSYNC_DEBUG", raw)
        assert load_config().debug is expected

    def test_debug_flag_beats_env(self, monkeypatch):
        monkeypatch.setenv("AZSYNC_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_reference_resolved_from_dotenv_first(self, monkeypatch):
        monkeypatch.setenv("MY_VAULT", "https://env.vault.azure.net")
        config = load_config(
            key_vault_url="env:MY_VAULT",
            dotenv={"MY_VAULT": "https://file.vault.azure.net"},
        )
        assert config.key_vault_url == "https://file.vault.azure.net"

    def test_reference_resolved_from_environment(self, monkeypatch):
        monkeypatch.setenv("MY_CONTAINER", "backups")
        config = load_config(container_name="env:MY_CONTAINER", dotenv={})
        assert config.container_name == "backups"

    def test_unresolvable_reference(self):
        with pytest.raises(ValueError, match="'NOPE' not found"):
            load_config(storage_account_url="env:NOPE", dotenv={})

    def test_to_settings(self):
        settings = load_config(mode="pull", max_parallel=4).to_settings()
        assert settings.mode is SyncMode.PULL
        assert settings.max_parallel == 4
        assert settings.retry_attempts == 4


# -------------------------------------------------------------------------
# require()
# -------------------------------------------------------------------------


class TestRequire:
    def test_returns_value(self):
        config = Config(key_vault_url="https://v.vault.azure.net")
        assert require(config, "key_vault_url", "hint") == "https://v.vault.azure.net"

    def test_missing_value_message(self):
        with pytest.raises(ValueError, match="Key vault url not found. Set KEY_VAULT_URL"):
            require(Config(), "key_vault_url", "Set KEY_VAULT_URL.")


# -------------------------------------------------------------------------
# YAML config files
# -------------------------------------------------------------------------


class TestExpandPlaceholders:
    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("MY_VAULT", "https://v.vault.azure.net")
        assert expand_placeholders("${MY_VAULT}") == "https://v.vault.azure.net"

    def test_unset_variable_is_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert expand_placeholders("${UNSET_VAR_XYZ}") == ""

    def test_default_for_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert expand_placeholders("${UNSET_VAR_XYZ:-configs}") == "configs"
        assert expand_placeholders("${EMPTY_VAR:-auto}") == "auto"

    def test_several_in_one_value(self, monkeypatch):
        monkeypatch.setenv("ACCOUNT", "myaccount")
        assert (
            expand_placeholders("https://${ACCOUNT}.blob.core.windows.net")
            == "https://myaccount.blob.core.windows.net"
        )

    def test_unclosed_brace_left_alone(self):
        assert expand_placeholders("cost: ${") == "cost: ${"


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Empty working directory with a fake HOME and no AZSYNC_CONFIG."""
    monkeypatch.delenv("AZSYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


class TestConfigFilePaths:
    def test_none(self, project):
        assert config_file_paths() == []

    def test_explicit_file_first(self, project, monkeypatch):
        custom = _write(project / "custom.yml", "sync: {}\n")
        _write(project / ".azsync" / "config.yml", "sync: {}\n")
        monkeypatch.setenv("AZSYNC_CONFIG", str(custom))

        paths = config_file_paths()
        assert paths[0] == custom.resolve()
        assert len(paths) == 2

    def test_project_before_global(self, project):
        local = _write(project / ".azsync" / "config.yml", "a: 1\n")
        home = _write(project / "home" / ".config" / "azsync" / "config.yml", "a: 2\n")
        assert [p.resolve() for p in config_file_paths()] == [
            local.resolve(),
            home.resolve(),
        ]

    def test_yaml_extension(self, project):
        local = _write(project / ".azsync" / "config.yaml", "a: 1\n")
        assert [p.resolve() for p in config_file_paths()] == [local.resolve()]

    def test_missing_explicit_file(self, project, monkeypatch):
        monkeypatch.setenv("AZSYNC_CONFIG", str(project / "nope.yml"))
        with pytest.raises(ValueError, match="missing file"):
            config_file_paths()


class TestReadConfigFiles:
    def test_no_files(self, project):
        assert read_config_files() == {}

    def test_project_replaces_whole_sections(self, project):
        _write(
            project / "home" / ".config" / "azsync" / "config.yml",
            """\
            sync:
              mode: pull
              max_parallel: 2
            key_vault:
              url: https://global.vault.azure.net
            """,
        )
        _write(
            project / ".azsync" / "config.yml",
            """\
            sync:
              mode: push
            """,
        )

        raw = read_config_files()
        assert raw["sync"] == {"mode": "push"}
        assert raw["key_vault"]["url"] == "https://global.vault.azure.net"

    def test_placeholders_expanded_in_nested_values(self, project, monkeypatch):
        monkeypatch.setenv("CONTAINER", "configs")
        _write(
            project / ".azsync" / "config.yml",
            """\
            storage:
              container: ${CONTAINER}
              prefixes: ["${CONTAINER}-a"]
            sync:
              max_parallel: 4
            """,
        )
        assert read_config_files() == {
            "storage": {"container": "configs", "prefixes": ["configs-a"]},
            "sync": {"max_parallel": 4},
        }

    def test_empty_file(self, project):
        _write(project / ".azsync" / "config.yml", "")
        assert read_config_files() == {}

    def test_list_root_rejected(self, project):
        _write(project / ".azsync" / "config.yml", "- just\n- a list\n")
        with pytest.raises(ValueError, match="expected a mapping"):
            read_config_files()

    def test_invalid_yaml(self, project):
        _write(project / ".azsync" / "config.yml", "sync: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid config file"):
            read_config_files()
