"""Application entry point — wires services and runs an import from the command line."""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from gameshelf.config import Config, get_config
from gameshelf.context import AppContext
from gameshelf.core.acquirer import ArtworkAcquirer
from gameshelf.core.deadline import DeadlineRunner
from gameshelf.core.pipeline import BatchResult, ImportBatchError, ImportPipeline, ProgressEvent
from gameshelf.core.resolver import IdentityResolver
from gameshelf.core.staging import StagingQueue
from gameshelf.data.artwork_cache import ArtworkCache
from gameshelf.data.library_store import LibraryStore
from gameshelf.logger import setup_logger
from gameshelf.models.staged_game import StageStatus
from gameshelf.providers.base import MetadataProvider
from gameshelf.providers.steam import SteamProvider
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.epic import EpicManifestScanner
from gameshelf.scanners.franchises import FranchiseMap
from gameshelf.scanners.gamepass_dir import GamePassDirectoryScanner
from gameshelf.scanners.launchers import detect_epic_manifests, detect_steam_path
from gameshelf.scanners.manual import ManualFolderScanner
from gameshelf.scanners.registry import default_registry_query
from gameshelf.scanners.steam import SteamLibraryScanner
from gameshelf.scanners.xbox_packages import XboxPackageScanner


def create_providers(config: Config) -> dict[str, MetadataProvider]:
    """Providers whose credentials are configured, keyed by name."""
    providers: dict[str, MetadataProvider] = {}
    provider_config = config.provider_config

    if provider_config.get("steam_enabled", True):
        providers["steam"] = SteamProvider(config=config)
    if provider_config.get("igdb_client_id"):
        from gameshelf.providers.igdb import IGDBProvider

        providers["igdb"] = IGDBProvider(
            client_id=provider_config["igdb_client_id"],
            client_secret=provider_config.get("igdb_client_secret", ""),
            config=config,
        )
    if provider_config.get("steamgriddb_api_key"):
        from gameshelf.providers.steamgriddb import SteamGridDBProvider

        providers["steamgriddb"] = SteamGridDBProvider(
            api_key=provider_config["steamgriddb_api_key"],
            config=config,
        )
    if provider_config.get("rawg_api_key"):
        from gameshelf.providers.rawg import RAWGProvider

        providers["rawg"] = RAWGProvider(api_key=provider_config["rawg_api_key"], config=config)
    return providers


def create_scanners(config: Config) -> list[SourceScanner]:
    depth = config.max_scan_depth
    return [
        SteamLibraryScanner(config.steam_path or detect_steam_path(), max_depth=depth),
        EpicManifestScanner(config.epic_manifests_path or detect_epic_manifests(), max_depth=depth),
        XboxPackageScanner(
            config.windows_apps_path,
            registry=default_registry_query(config.scan_config.get("registered_packages", [])),
            max_depth=depth,
        ),
        GamePassDirectoryScanner(
            config.xbox_games_path,
            franchises=FranchiseMap.load(overrides=config.franchise_overrides),
            max_depth=depth,
        ),
        ManualFolderScanner(config.manual_folders, max_depth=depth),
    ]


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Data
    library = LibraryStore(config.data_dir)
    library.load()
    cache = ArtworkCache(
        config.cache_dir, config=config, download_timeout=config.timeout("download"),
    )
    queue = StagingQueue()

    # Providers (only if credentials configured)
    providers = create_providers(config)
    # One deadline thread per import worker
    resolver = IdentityResolver(
        providers.values(),
        search_order=config.search_order,
        search_timeout=config.timeout("search"),
        runner=DeadlineRunner(max_workers=config.max_workers, name="gameshelf-search"),
    )
    acquirer = ArtworkAcquirer(
        providers,
        acquire_timeout=config.timeout("acquire"),
        runner=DeadlineRunner(max_workers=config.max_workers, name="gameshelf-acquire"),
    )

    scanners = create_scanners(config)
    pipeline = ImportPipeline(
        scanners,
        library,
        queue,
        resolver,
        acquirer,
        cache=cache if config.download_artwork else None,
        max_workers=config.max_workers,
        folder_scanner=ManualFolderScanner(max_depth=config.max_scan_depth),
    )

    return AppContext(
        config=config,
        library=library,
        cache=cache,
        queue=queue,
        scanners=scanners,
        resolver=resolver,
        acquirer=acquirer,
        pipeline=pipeline,
        providers=providers,
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gameshelf",
        description="Discover installed games, resolve their identity and cache their artwork.",
    )
    parser.add_argument(
        "--folder", "-f",
        action="append",
        default=[],
        help="Extra folder to scan (depth 1); can be given more than once",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        help="Add every ready entry to the library after the import",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug console output")
    return parser


def _print_progress(event: ProgressEvent) -> None:
    logger.info(f"[{event.current}/{event.total}] {event.title}: {event.message}")


def _report(result: BatchResult) -> None:
    for staged in result.staged:
        line = f"{staged.status.value:<9} {staged.title}"
        if staged.status == StageStatus.AMBIGUOUS and staged.search_results:
            line += f"  ({len(staged.search_results)} possible match(es))"
        if staged.error:
            line += f"  - {staged.error}"
        print(line)
    print(
        f"{result.scanned} found, {result.duplicates} already known, "
        f"{result.ready} ready, {result.ambiguous} ambiguous, {result.errors} error(s)"
    )


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = create_parser().parse_args(argv)

    config = get_config()
    setup_logger(config.data_dir / "logs", verbose=args.verbose)

    ctx = create_context(config)
    try:
        result = ctx.pipeline.run(args.folder, progress=_print_progress)
    except ImportBatchError as e:
        logger.error(f"Import aborted: {e}")
        return 2
    except KeyboardInterrupt:
        ctx.pipeline.cancel()
        return 130

    _report(result)

    if args.commit:
        ready = ctx.queue.pending_commit()
        ctx.library.commit(ready)
        ctx.queue.discard(s.uuid for s in ready)

    return 0


if __name__ == "__main__":
    sys.exit(main())
