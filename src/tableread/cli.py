"""Command-line entry point: stitch local clips or run the HTTP service."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np

from .audio.types import ProgressEvent
from .errors import StitchError
from .settings import settings as runtime_settings
from .stitcher import AudioStitcher
from .utils import setup_logger

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tableread", description="Stitch recorded dialogue clips into a table read.")
    sub = parser.add_subparsers(dest="command", required=True)

    stitch = sub.add_parser("stitch", help="stitch clips (paths or URLs) into one WAV file")
    stitch.add_argument("clips", nargs="+", help="clip paths or URLs, in script order")
    stitch.add_argument("-o", "--output", required=True, type=Path, help="output WAV path")
    stitch.add_argument("--pause-ms", type=int, default=None, help="silence between clips in milliseconds")
    stitch.add_argument("--room-tone-volume", type=float, default=None, help="room tone gain in [0, 1]")
    stitch.add_argument("--sample-rate", type=int, default=None, help="output sample rate in Hz")
    stitch.add_argument("--seed", type=int, default=None, help="seed for reproducible room tone")
    stitch.add_argument("-q", "--quiet", action="store_true", help="suppress progress output")

    serve = sub.add_parser("serve", help="run the HTTP service")
    serve.add_argument("--host", default=runtime_settings.server.host)
    serve.add_argument("--port", type=int, default=runtime_settings.server.port)
    return parser


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.stage.value} {event.current}/{event.total}] {event.message}", file=sys.stderr)


async def _stitch(args: argparse.Namespace) -> int:
    stitcher = AudioStitcher.from_settings(runtime_settings.stitch)
    try:
        config = stitcher.config.with_overrides(
            pause_duration_ms=args.pause_ms,
            room_tone_volume=args.room_tone_volume,
            canonical_sample_rate=args.sample_rate,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    rng = np.random.default_rng(args.seed) if args.seed is not None else None
    try:
        result = await stitcher.stitch(
            args.clips,
            None if args.quiet else _print_progress,
            config=config,
            rng=rng,
        )
    except StitchError as exc:
        stage = exc.stage.value if exc.stage else "setup"
        print(f"error during {stage}: {exc}", file=sys.stderr)
        return 1

    args.output.write_bytes(result.encoded_bytes)
    stitcher.registry.revoke(result.playable_handle)
    print(f"wrote {args.output} ({result.duration_seconds:.2f}s, {result.frame_count} frames)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logger(runtime_settings.logging)

    if args.command == "serve":
        from .app import run

        run(host=args.host, port=args.port)
        return 0
    return asyncio.run(_stitch(args))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
