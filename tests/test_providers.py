from __future__ import annotations

import json
from pathlib import Path

import pytest

from compote.core.errors import ProviderInitError
from compote.core.provider import ProviderInitOptions
from compote.providers import VarProvider, YamlFileProvider
from compote.providers.navigate import PathNotFound


class TestVarProvider:
    """Test the variables provider."""

    @pytest.mark.asyncio
    async def test_fetch_nested(self, ctx):
        """Test fetching a nested variable."""
        provider = VarProvider({"env": "prod", "aws": {"region": "us-east-1"}})
        assert await provider.fetch(ctx, ("aws", "region")) == "us-east-1"
        assert await provider.fetch(ctx, ()) == {"env": "prod", "aws": {"region": "us-east-1"}}

    @pytest.mark.asyncio
    async def test_fetch_returns_copies(self, ctx):
        """Test that fetched variables are copies."""
        provider = VarProvider({"aws": {"region": "us-east-1"}})
        value = await provider.fetch(ctx, ("aws",))
        value["region"] = "changed"
        assert await provider.fetch(ctx, ("aws", "region")) == "us-east-1"

    @pytest.mark.asyncio
    async def test_unknown_variable(self, ctx):
        """Test that an unknown variable lists the available keys."""
        provider = VarProvider({"env": "prod"})
        with pytest.raises(PathNotFound, match="variable 'region' not found"):
            await provider.fetch(ctx, ("region",))

    @pytest.mark.asyncio
    async def test_no_variables(self, ctx):
        """Test fetching when no variables are defined."""
        with pytest.raises(LookupError, match="no variables defined"):
            await VarProvider().fetch(ctx, ("env",))


class TestYamlFileProvider:
    """Test the yaml provider type."""

    @pytest.mark.asyncio
    async def test_file_relative_to_declaring_document(self, tmp_path: Path, ctx):
        """Test that a relative file resolves against the declaring document."""
        (tmp_path / "data.yaml").write_text("database:\n  host: db.local\n  port: 5432\n")
        provider = YamlFileProvider.from_config({"file": "data.yaml"})
        await provider.init(
            ctx, ProviderInitOptions(alias="cfg", source_file=str(tmp_path / "main.csl"))
        )
        assert await provider.fetch(ctx, ("database", "port")) == 5432

    @pytest.mark.asyncio
    async def test_directory_mode(self, tmp_path: Path, ctx):
        """Test reading a directory of data files."""
        (tmp_path / "network.yaml").write_text("vpc:\n  id: vpc-1\n")
        (tmp_path / "app.json").write_text(json.dumps({"name": "api"}))
        (tmp_path / "notes.txt").write_text("ignored")
        provider = YamlFileProvider.from_config({"directory": str(tmp_path)})
        await provider.init(ctx, ProviderInitOptions(alias="cfg"))
        assert await provider.fetch(ctx, ("network", "vpc", "id")) == "vpc-1"
        assert await provider.fetch(ctx, ("app", "name")) == "api"
        assert await provider.fetch(ctx, ()) == {"app": {"name": "api"}, "network": {"vpc": {"id": "vpc-1"}}}

    def test_config_requires_file_or_directory(self):
        """Test that the configuration needs a file or a directory."""
        with pytest.raises(ProviderInitError):
            YamlFileProvider.from_config({})
        with pytest.raises(ProviderInitError):
            YamlFileProvider.from_config({"file": ["a.yaml"]})

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path, ctx):
        """Test that a missing file fails on init."""
        provider = YamlFileProvider(file=str(tmp_path / "absent.yaml"))
        with pytest.raises(ProviderInitError, match="does not exist"):
            await provider.init(ctx, ProviderInitOptions(alias="cfg"))

    @pytest.mark.asyncio
    async def test_top_level_must_be_map(self, tmp_path: Path, ctx):
        """Test that a data file must hold a map."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        provider = YamlFileProvider(file=str(path))
        with pytest.raises(ProviderInitError, match="map at the top level"):
            await provider.init(ctx, ProviderInitOptions(alias="cfg"))

    @pytest.mark.asyncio
    async def test_invalid_yaml(self, tmp_path: Path, ctx):
        """Test that invalid YAML fails on init."""
        path = tmp_path / "bad.yaml"
        path.write_text("a: [unclosed\n")
        provider = YamlFileProvider(file=str(path))
        with pytest.raises(ProviderInitError, match="invalid data file"):
            await provider.init(ctx, ProviderInitOptions(alias="cfg"))
