# src/main.py — v2
"""CLI entry point: render, list, reset commands.

Usage:
    quartocache render <repo_path> <file> [--repo-id ID] [--ref REF] [-o OUT]
    quartocache list <repo_path> [--ref REF]
    quartocache reset [--repo-id ID [--commit SHA]]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from quartocache.config.settings import CacheConfig, ConfigurationError, Settings
from quartocache.core.errors import QuartoCacheError
from quartocache.logging.logger import setup_logging
from quartocache.version import __version__

logger = logging.getLogger(__name__)

_EXIT_CODES = {"ok": 0, "not_found": 2, "repository_error": 3, "render_failed": 1}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = Settings()
    except (ConfigurationError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (QuartoCacheError, ValueError) as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="quartocache",
        description=f"quartocache v{__version__} - commit-addressed Quarto rendering cache",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- render ---
    p_render = subparsers.add_parser(
        "render", help="Render one document (served from cache when possible)",
    )
    p_render.add_argument("repo_path", type=Path, help="Path to the git repository")
    p_render.add_argument("file", help="Repository-relative document path")
    p_render.add_argument(
        "--repo-id", default=None,
        help="Repository id used in cache names (default: repository directory name)",
    )
    p_render.add_argument(
        "--ref", default=None,
        help="Branch, tag or commit (default: HEAD)",
    )
    p_render.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write the JSON response to a file instead of stdout",
    )
    p_render.set_defaults(func=_cmd_render)

    # --- list ---
    p_list = subparsers.add_parser(
        "list", help="List documents in a repository",
    )
    p_list.add_argument("repo_path", type=Path, help="Path to the git repository")
    p_list.add_argument("--ref", default=None, help="Branch, tag or commit (default: HEAD)")
    p_list.set_defaults(func=_cmd_list)

    # --- reset ---
    p_reset = subparsers.add_parser(
        "reset", help="Empty the cache (or evict one repository / commit)",
    )
    p_reset.add_argument("--repo-id", default=None, help="Only evict this repository")
    p_reset.add_argument("--commit", default=None, help="Only evict this commit (needs --repo-id)")
    p_reset.set_defaults(func=_cmd_reset)

    return parser


async def _cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    """Render a document and print the response as JSON."""
    from quartocache.api.facade import render_document
    from quartocache.api.models import RenderRequest

    repo_path: Path = args.repo_path
    request = RenderRequest(
        repo_id=args.repo_id or repo_path.resolve().name,
        repo_path=repo_path,
        file_path=args.file,
        ref=args.ref,
    )
    response = await render_document(request, settings=settings)
    payload = response.model_dump_json(by_alias=True, indent=2)

    if args.output is not None:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info("Response written to %s", args.output)
    else:
        print(payload)
    return _EXIT_CODES[response.status]


async def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """Print the documents found at a ref."""
    from quartocache.api.facade import list_documents

    listing = await list_documents(args.repo_path, ref=args.ref, settings=settings)
    print(f"Documents at {listing.commit[:10]}:")
    for path in listing.documents:
        print(f"  {path}")
    return 0


async def _cmd_reset(args: argparse.Namespace, settings: Settings) -> int:
    """Evict cached renders and assets."""
    from quartocache.cache.eviction import evict_commit, evict_repository, reset_cache

    config = CacheConfig.from_settings(settings)
    if args.commit and not args.repo_id:
        logger.error("--commit requires --repo-id")
        return 1

    if args.repo_id and args.commit:
        removed = evict_commit(config, args.repo_id, args.commit)
    elif args.repo_id:
        removed = evict_repository(config, args.repo_id)
    else:
        removed = reset_cache(config)
    print(json.dumps({"removed": removed}))
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
