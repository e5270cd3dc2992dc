"""Tests for configuration file handling."""

import pytest

from cli_config import apply_config_overrides, load_config
from common.errors import ConfigError
from constants import Constants


@pytest.fixture(autouse=True)
def restore_constants(monkeypatch):
    """Keep Constants overrides local to each test."""
    for name in ("REQUEST_TIMEOUT", "SUBPROCESS_TIMEOUT", "HTTP_RETRY_MAX", "CACHE_DIR", "GEM_CACHES"):
        monkeypatch.setattr(Constants, name, getattr(Constants, name))


class TestLoadConfig:
    """Test YAML loading."""

    def test_no_path(self):
        """Test no config file means no overrides."""
        assert load_config(None) == {}

    def test_reads_mapping(self, tmp_path):
        """Test a YAML mapping is returned."""
        path = tmp_path / "gemnix.yml"
        path.write_text("request_timeout: 5\ngem_caches:\n  - /srv/gems\n", encoding="utf-8")
        assert load_config(str(path)) == {"request_timeout": 5, "gem_caches": ["/srv/gems"]}

    def test_empty_file(self, tmp_path):
        """Test an empty file is an empty mapping."""
        path = tmp_path / "gemnix.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == {}

    @pytest.mark.parametrize("body", ["- a\n- b\n", "key: [unclosed\n"])
    def test_invalid_files(self, tmp_path, body):
        """Test lists and malformed YAML are rejected."""
        path = tmp_path / "gemnix.yml"
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        """Test a named but missing file is an error."""
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yml"))


class TestApplyConfigOverrides:
    """Test overrides of runtime tunables."""

    def test_applies_known_keys(self):
        """Test recognised keys replace the defaults."""
        apply_config_overrides({
            "request_timeout": "5",
            "subprocess_timeout": 60,
            "http_retry_max": 1,
            "cache_dir": "/var/cache/gemnix",
            "gem_caches": ["/srv/gems"],
            "unknown": True,
        })
        assert Constants.REQUEST_TIMEOUT == 5
        assert Constants.SUBPROCESS_TIMEOUT == 60
        assert Constants.HTTP_RETRY_MAX == 1
        assert Constants.CACHE_DIR == "/var/cache/gemnix"
        assert Constants.GEM_CACHES == ["/srv/gems"]

    def test_bad_value(self):
        """Test values of the wrong type are rejected."""
        with pytest.raises(ConfigError):
            apply_config_overrides({"request_timeout": "soon"})
        with pytest.raises(ConfigError):
            apply_config_overrides({"gem_caches": "/srv/gems"})
