#!/usr/bin/env python3
"""
eventhats Render Script - HATS frames from an event recording

Reads an event file, delivers it to the HATS engine in fixed-duration
batches and writes one composed frame per batch as a PNG image.

Usage:
    python scripts/render_hats.py --input recording.npy --width 128 --height 128
    python scripts/render_hats.py --input rec.mat --width 240 --height 180 \
        --config configs/config.yaml --radius 4 --cell-size 10 --output frames/
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

# Add project root to path (scripts/render_hats.py -> scripts -> project_root)
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from eventhats.config import (
    ConfigError,
    get_hats_params,
    get_render_params,
    load_config,
)
from eventhats.core.compositor import frame_to_uint8
from eventhats.core.engine import setup
from eventhats.data.loaders import load_events


# =============================================================================
# LOGGING
# =============================================================================


class ColoredFormatter(logging.Formatter):
    """Formatter with ANSI color codes for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        record.levelname = f"{color}{record.levelname:8s}{self.RESET}"
        return super().format(record)


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the eventhats logger hierarchy.

    Args:
        log_level: Console and file level name.
        log_file: Optional file receiving the detailed format.

    Returns:
        Configured root logger for eventhats.
    """
    logger = logging.getLogger("eventhats")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


# =============================================================================
# MAIN
# =============================================================================


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render Histograms of Averaged Time Surfaces from an event file"
    )
    parser.add_argument(
        '--input', '-i',
        type=str,
        required=True,
        help='Event file (.npy, .mat, .h5)'
    )
    parser.add_argument('--width', type=int, required=True, help='Sensor width in pixels')
    parser.add_argument('--height', type=int, required=True, help='Sensor height in pixels')
    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='YAML config (default: configs/config.yaml)'
    )
    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Output directory for frames (overrides render.output_dir)'
    )
    parser.add_argument('--radius', type=int, default=None, help='Neighbourhood radius R')
    parser.add_argument('--cell-size', type=int, default=None, help='Cell size K in pixels')
    parser.add_argument('--window-size', type=int, default=None, help='Rolling window length')
    parser.add_argument('--tau', type=float, default=None, help='Decay constant (seconds)')
    parser.add_argument('--batch-us', type=int, default=None, help='Batch duration (µs)')
    parser.add_argument(
        '--polarity',
        type=str,
        default=None,
        choices=['on', 'off'],
        help='Polarity to render'
    )
    parser.add_argument(
        '--normalize',
        action='store_true',
        help='Render averaged instead of summed histograms'
    )
    parser.add_argument(
        '--max-frames',
        type=int,
        default=0,
        help='Stop after N frames (0 = whole recording)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )
    return parser.parse_args()


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect command-line values that replace config entries."""
    hats = {
        'radius': args.radius,
        'cell_size': args.cell_size,
        'window_size': args.window_size,
        'tau': args.tau,
    }
    render = {
        'batch_us': args.batch_us,
        'polarity': args.polarity,
        'output_dir': args.output,
        'normalize': True if args.normalize else None,
    }
    return {
        'hats': {k: v for k, v in hats.items() if v is not None},
        'render': {k: v for k, v in render.items() if v is not None},
    }


def main() -> int:
    args = parse_args()
    logger = setup_logging(args.log_level)

    try:
        config = load_config(args.config, overrides=build_overrides(args))
        hats_params = get_hats_params(config)
        render_params = get_render_params(config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    output_dir = Path(render_params.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Loading events: {args.input}")
    events = load_events(args.input, height=args.height, width=args.width)
    logger.info(
        f"Loaded {len(events)} events, {events.duration:.3f}s "
        f"({events.event_rate:.0f} ev/s)"
    )

    engine = setup(args.width, args.height, hats_params)
    logger.info(f"Engine: {engine}, frame shape {engine.frame_shape}")

    polarity = render_params.polarity == 'on'
    next_report = render_params.print_interval
    n_frames = 0

    for batch in events.iter_batches(batch_us=render_params.batch_us):
        engine.ingest(batch)

        while engine.stats.n_on >= next_report:
            logger.info(f"Processed {next_report} positive events")
            next_report += render_params.print_interval

        frame = engine.composite(polarity=polarity, normalize=render_params.normalize)
        frame_path = output_dir / f"hats_{n_frames:06d}.png"
        plt.imsave(frame_path, frame_to_uint8(frame), cmap=render_params.colormap,
                   vmin=0, vmax=255)
        n_frames += 1

        if args.max_frames and n_frames >= args.max_frames:
            break

    stats = engine.stats.to_dict()
    stats['n_frames'] = n_frames
    with open(output_dir / "stats.json", 'w') as f:
        json.dump(stats, f, indent=2)

    logger.info(f"Wrote {n_frames} frames to {output_dir}")
    if stats['n_dropped_out_of_bounds'] or stats['n_dropped_out_of_order']:
        logger.warning(
            f"Dropped events: {stats['n_dropped_out_of_bounds']} out of bounds, "
            f"{stats['n_dropped_out_of_order']} out of order"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
