"""Command line entry point and FastAPI application for the asset versioner."""
import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from versioner.config import Config, ConfigurationError, load_config
from versioner.core import Versioner
from versioner.delivery import VersionedAssetMiddleware
from versioner.errors import VersionerError

VERSION = "1.0.0"
MANIFEST_NAME = "manifest.json"

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure process logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s:\t%(name)s - %(message)s'
    )


def create_app(versioner: Versioner) -> FastAPI:
    """Create the FastAPI app serving a built versioner's assets.

    Args:
        versioner: Versioner built with cache_files enabled

    Returns:
        FastAPI application

    Raises:
        ConfigurationError: If the versioner does not keep asset bytes
    """
    if not versioner.is_caching_files:
        raise ConfigurationError("set cache_files to true to serve versioned assets")

    app = FastAPI(
        title="Asset Versioner",
        description="Serves content-hashed static assets",
        version=VERSION,
    )
    app.add_middleware(VersionedAssetMiddleware, versioner=versioner)

    @app.get("/health")
    async def health_check():
        """Report liveness and the number of versioned assets held.

        Returns:
            Health status information
        """
        return {
            "status": "healthy",
            "version": VERSION,
            "assets": len(versioner.index),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


async def build_assets(versioner: Versioner, output_dir: Path) -> Path:
    """Build, write every versioned asset and the manifest.

    Returns:
        Path of the written manifest
    """
    result = await versioner.build()
    paths = await versioner.save(output_dir)
    logger.info(
        f"Versioned {result.file_count} files ({result.total_size} bytes) "
        f"into {output_dir} in {result.duration_ms:.0f}ms"
    )
    for path in sorted(paths):
        logger.debug(f"  {path.name}")
    return versioner.save_manifest(output_dir / MANIFEST_NAME)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="versioner",
        description="Fingerprint static assets by content hash.",
    )
    parser.add_argument(
        "--config",
        help="Path to config file (default: $CONFIG_PATH or ./config.yaml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Write versioned assets and a manifest")
    build_parser.add_argument("--output", "-o", required=True, help="Output directory")

    serve_parser = subparsers.add_parser("serve", help="Serve versioned assets over HTTP")
    serve_parser.add_argument("--host", help="Override server.host")
    serve_parser.add_argument("--port", type=int, help="Override server.port")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config: Config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    # Both commands need the bytes after the build
    config.cache_files = True
    versioner = Versioner(config)

    if args.command == "build":
        try:
            asyncio.run(build_assets(versioner, Path(args.output)))
        except (VersionerError, OSError) as e:
            logger.error(f"Failed to version assets: {e}")
            return 1
        return 0

    try:
        asyncio.run(versioner.build())
    except VersionerError as e:
        logger.error(f"Failed to load versioned assets: {e}")
        return 1

    uvicorn.run(
        create_app(versioner),
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        log_level="debug" if args.verbose else "info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
