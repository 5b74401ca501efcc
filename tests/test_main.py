"""Tests for service wiring in the entry point."""

from __future__ import annotations

from pathlib import Path

from gameshelf.config import Config
from main import create_context, create_parser


class TestCreateContext:
    def test_default_wiring(self, tmp_path: Path) -> None:
        ctx = create_context(Config(config_dir=tmp_path))

        # No credentials configured: only the storefront provider is registered
        assert list(ctx.providers) == ["steam"]
        assert ctx.resolver.providers == []
        assert ctx.acquirer.strategy_names == ["storefront-cdn"]
        assert [s.name for s in ctx.scanners] == ["steam", "epic", "xbox-packages", "gamepass-dir", "manual"]
        assert ctx.library.count == 0
        assert len(ctx.queue) == 0

    def test_credentials_register_providers(self, tmp_path: Path) -> None:
        config = Config(config_dir=tmp_path)
        with config.batch_update():
            config.set("providers.igdb_client_id", "cid")
            config.set("providers.igdb_client_secret", "secret")
            config.set("providers.steamgriddb_api_key", "grid")
            config.set("providers.rawg_api_key", "rawg")
            config.set("providers.steam_enabled", False)

        ctx = create_context(config)

        assert sorted(ctx.providers) == ["igdb", "rawg", "steamgriddb"]
        assert [p.name for p in ctx.resolver.providers] == ["igdb", "steamgriddb", "rawg"]
        assert ctx.acquirer.strategy_names == ["catalog", "primary-metadata", "aggregator"]


class TestParser:
    def test_flags(self) -> None:
        args = create_parser().parse_args(["--folder", "/a", "-f", "/b", "--commit"])
        assert args.folder == ["/a", "/b"]
        assert args.commit
        assert not args.verbose
