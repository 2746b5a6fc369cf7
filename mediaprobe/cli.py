"""
MediaProbe command line interface.

Examples:
    python -m mediaprobe probe movie.mkv ~/Videos
    python -m mediaprobe export-subtitle movie.mkv 2 --language eng --codec subrip
    python -m mediaprobe export-stream movie.mp4 1 audio --codec aac
    python -m mediaprobe serve --port 8420
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from mediaprobe import __version__
from mediaprobe.config import CONFIG_ENV_VAR, MediaProbeConfig, load_config
from mediaprobe.extraction import MediaProbeError
from mediaprobe.media.file import LocalMediaFile
from mediaprobe.service import MetadataService, open_paths
from mediaprobe.utils.logging_setup import log_exception, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediaprobe",
        description="Extract technical metadata, subtitles and streams from local media files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    probe = subparsers.add_parser("probe", help="Print metadata for files or directories")
    probe.add_argument("paths", nargs="+", type=Path, help="Media files or directories")

    subtitle = subparsers.add_parser("export-subtitle", help="Extract a subtitle track")
    subtitle.add_argument("file", type=Path)
    subtitle.add_argument("index", type=int, help="Stream index of the subtitle track")
    subtitle.add_argument("--language", help="Track language, used in the output name")
    subtitle.add_argument("--codec", help="Track codec, used to pick the native format")
    subtitle.add_argument("--forced", action="store_true", help="Mark the output as a forced track")
    subtitle.add_argument("--output-dir", type=Path, default=None)

    stream = subparsers.add_parser("export-stream", help="Extract an audio or video stream")
    stream.add_argument("file", type=Path)
    stream.add_argument("index", type=int, help="Stream index")
    stream.add_argument("type", choices=["video", "audio"])
    stream.add_argument("--codec", help="Stream codec, used to pick the output container")
    stream.add_argument("--output-dir", type=Path, default=None)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


async def run_probe(config: MediaProbeConfig, paths: list[Path]) -> int:
    files = open_paths(paths)
    if not files:
        print("No media files found", file=sys.stderr)
        return 1

    service = MetadataService(config)
    try:
        if not await service.start():
            print(service.error.message, file=sys.stderr)
            return 1

        await service.select_files(files)
        await service.coordinator.wait_idle()

        failed = 0
        for item in service.items:
            print(json.dumps(item.to_dict(), indent=2))
            if item.error:
                failed += 1
        return 1 if failed else 0
    finally:
        await service.close()


async def run_export(config: MediaProbeConfig, args: argparse.Namespace) -> int:
    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1
    if args.output_dir:
        config.delivery.output_dir = str(args.output_dir)

    service = MetadataService(config)
    file = LocalMediaFile(args.file)
    try:
        if not await service.start():
            print(service.error.message, file=sys.stderr)
            return 1

        if args.command == "export-subtitle":
            result = await service.export_subtitle(
                file, args.index, args.language, args.codec, args.forced
            )
        else:
            result = await service.export_stream(file, args.index, args.type, args.codec)
    except MediaProbeError as e:
        print(e.user_message, file=sys.stderr)
        return 1
    finally:
        await service.close()

    print(result.location)
    return 0


def run_server(
    config: MediaProbeConfig,
    host: Optional[str],
    port: Optional[int],
    config_path: Optional[Path] = None,
) -> int:
    import uvicorn

    if config_path:
        # The app factory runs in the reload worker, which only sees the environment
        os.environ[CONFIG_ENV_VAR] = str(config_path.resolve())

    uvicorn.run(
        "mediaprobe.main:create_app",
        factory=True,
        host=host or config.server.host,
        port=port or config.server.port,
        reload=config.server.debug,
        log_level=config.logging.level.lower(),
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    config = load_config(str(args.config) if args.config else None)

    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(
        log_level=level,
        log_file=config.logging.file,
        log_to_console=args.verbose or args.command == "serve",
        log_to_file=config.logging.to_file,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        log_format=config.logging.format,
    )

    try:
        if args.command == "probe":
            return asyncio.run(run_probe(config, args.paths))
        if args.command in ("export-subtitle", "export-stream"):
            return asyncio.run(run_export(config, args))
        return run_server(config, args.host, args.port, args.config)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        log_exception(logger, e, f"{args.command} failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1
