"""Tests for compote.yaml configuration loading."""

import pytest
import yaml

from compote.core.config_loader import CompilerOptions, ConfigLoader
from compote.core.errors import ConfigError
from compote.core.resolver import DEFAULT_MAX_CONCURRENT_PROVIDERS


class TestConfigLoader:
    """Test ConfigLoader functionality."""

    def test_init_with_explicit_path(self, tmp_path):
        """Test initialization with explicit config path."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text("vars: {}")

        loader = ConfigLoader(config_file)
        assert loader.config_path == config_file

    def test_init_with_nonexistent_explicit_path(self, tmp_path):
        """Test initialization with nonexistent explicit path."""
        loader = ConfigLoader(tmp_path / "nonexistent.yaml")
        assert loader.config_path is None
        assert loader.load() == {}

    def test_find_config_in_parent_dir(self, tmp_path, monkeypatch):
        """Test finding compote.yaml in a parent directory."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text("vars: {}")
        subdir = tmp_path / "subdir"
        subdir.mkdir()
        monkeypatch.chdir(subdir)

        loader = ConfigLoader()
        assert loader.config_path == config_file

    def test_load_invalid_yaml(self, tmp_path):
        """Test loading invalid YAML raises ConfigError."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text("vars: [unclosed")

        with pytest.raises(ConfigError, match="Invalid compote.yaml"):
            ConfigLoader(config_file).load()

    def test_load_non_map(self, tmp_path):
        """Test a top-level list is rejected."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text("- a\n")

        with pytest.raises(ConfigError, match="map at the top level"):
            ConfigLoader(config_file).load()


class TestCompilerOptions:
    """Test building compiler options."""

    def test_defaults_without_file(self, tmp_path):
        """Test defaults when there is no config file."""
        opts = ConfigLoader(tmp_path / "missing.yaml").options()
        assert opts == CompilerOptions()
        assert opts.max_concurrent_providers == DEFAULT_MAX_CONCURRENT_PROVIDERS
        assert opts.per_provider_fetch_timeout is None

    def test_values_from_file(self, tmp_path):
        """Test options and provider declarations come from the file."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "allow_missing_provider": True,
                    "per_provider_fetch_timeout": 2.5,
                    "max_concurrent_providers": 8,
                    "vars": {"env": "prod"},
                    "providers": [{"alias": "cfg", "type": "yaml", "config": {"file": "c.yaml"}}],
                }
            )
        )

        opts = ConfigLoader(config_file).options()
        assert opts.allow_missing_provider is True
        assert opts.per_provider_fetch_timeout == 2.5
        assert opts.max_concurrent_providers == 8
        assert opts.vars == {"env": "prod"}
        [decl] = opts.providers
        assert (decl.alias, decl.type, decl.config) == ("cfg", "yaml", {"file": "c.yaml"})
        assert decl.span.filename == str(config_file)

    def test_overrides(self, tmp_path):
        """Test explicit overrides win and None leaves file values alone."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text("max_concurrent_providers: 8\nvars:\n  env: prod\n  region: eu\n")

        opts = ConfigLoader(config_file).options(
            max_concurrent_providers=None,
            per_provider_fetch_timeout=1.0,
            vars={"env": "dev"},
        )
        assert opts.max_concurrent_providers == 8
        assert opts.per_provider_fetch_timeout == 1.0
        assert opts.vars == {"env": "dev", "region": "eu"}

    def test_unknown_override(self, tmp_path):
        """Test that an unknown option override is rejected."""
        with pytest.raises(ConfigError):
            ConfigLoader(tmp_path / "missing.yaml").options(colour="blue")

    @pytest.mark.parametrize(
        "content",
        [
            "per_provider_fetch_timeout: soon\n",
            "per_provider_fetch_timeout: -1\n",
            "max_concurrent_providers: many\n",
            "vars: [a, b]\n",
            "providers:\n  - alias: cfg\n",
            "providers:\n  - not-a-map\n",
        ],
    )
    def test_invalid_values(self, tmp_path, content):
        """Test invalid option values raise ConfigError."""
        config_file = tmp_path / "compote.yaml"
        config_file.write_text(content)

        with pytest.raises(ConfigError):
            ConfigLoader(config_file).options()
