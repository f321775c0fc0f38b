#!/usr/bin/env python3
"""
giffer - generate animated GIFs from JPEG files.

Searches a directory tree for JPEG files, decodes and quantizes them in
parallel, and writes the frames in discovery order to a single animated GIF.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from tqdm import tqdm

from frame_decoder import FrameDecoder
from frame_pipeline import FramePipeline
from gf_config import DEFAULT_CONFIG, load_config, resolve_path
from gif_assembler import GifAssembler
from gif_errors import GifferError, NoInputError, OutputExistsError
from path_collector import collect

MYNAME = "giffer"
VERSION = "1.0"

log = logging.getLogger("giffer")

USAGE = f"""NAME:
   {MYNAME} - generate animated gifs from jpeg files

USAGE:
   {MYNAME} [options] <path>

By default, {MYNAME} searches for jpeg files at the specified path and writes the animated gif to {DEFAULT_CONFIG['output']}
"""


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(threadName)s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

def make_gif(
    root: Union[str, Path],
    output: Union[str, Path],
    cfg: Optional[dict[str, Any]] = None,
    delay_ms: Optional[int] = None,
    worker_budget: Optional[int] = None,
    show_progress: Optional[bool] = None,
) -> int:
    """
    Build one animated GIF from the JPEG files under ``root``.

    Explicit arguments override the matching ``cfg`` values. The output path
    is checked before any walk or decode work starts.

    Returns:
        Number of bytes written.

    Raises:
        OutputExistsError, WalkError, NoInputError, EncodeError.
    """
    cfg = cfg or load_config()
    output_path = resolve_path(output)
    if output_path.exists():
        raise OutputExistsError(f"Output file already exists: {output_path}")

    delay = cfg.get("delay_ms", 100) if delay_ms is None else delay_ms
    if worker_budget is None:
        worker_budget = cfg.get("pipeline", {}).get("max_workers")
    if show_progress is None:
        show_progress = bool(cfg.get("progress", True))

    paths = collect(root, cfg.get("extensions", ["jpg", "jpeg"]), logger=log)
    if not paths:
        raise NoInputError(f"Could not find any jpeg files at {root}")

    decoder = FrameDecoder(colors=int(cfg.get("quantize", {}).get("colors", 256)))
    with tqdm(total=len(paths), ncols=80, disable=not show_progress) as bar:
        pipeline = FramePipeline(
            decoder=decoder,
            worker_budget=worker_budget,
            logger=log,
            progress=lambda: bar.update(1),
        )
        sequence = pipeline.run(paths, delay)

    assembler = GifAssembler(loop=int(cfg.get("gif", {}).get("loop", 0)), logger=log)
    return assembler.save(sequence, output_path)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=MYNAME,
        description=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("path", nargs="?", help="Directory to search for jpeg files")
    parser.add_argument("-d", "--debug", action="store_true", help="debug mode")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help=f"write the animated gif to this destination (default: {DEFAULT_CONFIG['output']})",
    )
    parser.add_argument(
        "-t",
        "--delay",
        type=int,
        default=None,
        help=f"gif inter-frame delay in ms (default: {DEFAULT_CONFIG['delay_ms']})",
    )
    parser.add_argument("-v", "--version", action="store_true", help="print version and exit")
    parser.add_argument(
        "-j",
        "--workers",
        type=int,
        default=None,
        help="Number of concurrent decoders (defaults to config.pipeline.max_workers, then CPU count)",
    )
    parser.add_argument("--config", type=str, default=None, help="Optional path to giffer.yaml")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{MYNAME} -- v{VERSION}")
        return 0

    configure_logging(args.debug)
    if args.debug:
        log.debug("Starting in debug mode...")

    if args.path is None:
        parser.print_help()
        return 2

    if args.delay is not None and args.delay < 0:
        parser.error("--delay must be non-negative")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        cfg = load_config(args.config)
        output = args.output or cfg.get("output", DEFAULT_CONFIG["output"])
        make_gif(
            args.path,
            output,
            cfg=cfg,
            delay_ms=args.delay,
            worker_budget=args.workers,
            show_progress=False if args.no_progress else None,
        )
    except GifferError as exc:
        log.error("%s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
