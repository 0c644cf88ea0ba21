"""Tests for env: reference resolution."""

from __future__ import annotations

import pytest

from azsync.env_ref import read_dotenv, reference_name, resolve_url, resolve_value


class TestReferenceName:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("env:KEY_VAULT_URL", "KEY_VAULT_URL"),
            ("env://KEY_VAULT_URL", "KEY_VAULT_URL"),
            ("env://KEY_VAULT_URL/", "KEY_VAULT_URL"),
            ("https://vault.example.net", None),
            ("container", None),
        ],
    )
    def test_names(self, value, expected):
        assert reference_name(value) == expected

    @pytest.mark.parametrize("value", ["env:", "env://"])
    def test_empty_reference(self, value):
        with pytest.raises(ValueError, match="Missing variable name"):
            reference_name(value)


class TestResolveValue:
    def test_literal_passes_through(self):
        assert resolve_value("configs", environ={}) == "configs"

    def test_dotenv_before_environment(self):
        value = resolve_value(
            "env:CONTAINER", dotenv={"CONTAINER": "from-file"}, environ={"CONTAINER": "from-env"}
        )
        assert value == "from-file"

    def test_environment_fallback(self):
        assert resolve_value("env:CONTAINER", dotenv={}, environ={"CONTAINER": "env"}) == "env"

    def test_undefined(self):
        with pytest.raises(ValueError, match="'CONTAINER' not found"):
            resolve_value("env:CONTAINER", dotenv={}, environ={})

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("AZSYNC_TEST_REF", "yes")
        assert resolve_value("env:AZSYNC_TEST_REF") == "yes"


class TestResolveUrl:
    def test_literal_url(self):
        url = resolve_url(" https://vault.example.net ", environ={})
        assert url == "https://vault.example.net"

    def test_reference(self):
        url = resolve_url(
            "env:KEY_VAULT_URL",
            dotenv={"KEY_VAULT_URL": "https://v.vault.azure.net"},
            environ={},
        )
        assert url == "https://v.vault.azure.net"

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="Unsupported scheme"):
            resolve_url("ftp://vault.example.net", environ={})

    def test_missing_hostname(self):
        with pytest.raises(ValueError, match="hostname"):
            resolve_url("https://", environ={})


class TestReadDotenv:
    def test_missing_file(self, tmp_path):
        assert read_dotenv(tmp_path / ".env") == {}
        assert read_dotenv(None) == {}

    def test_skips_valueless_entries(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("A=1\nBARE\n")
        assert read_dotenv(path) == {"A": "1"}
