from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from .config import load_config
from .controller import EngineController
from .errors import ConfigError, InvalidCalibrationError
from .frames import Frame
from .json_utils import to_json_line

LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay a recorded frame stack through the vibro-image engine"
    )
    parser.add_argument("input", type=Path, help="Frame stack (.npy) shaped (N, H, W) or (N, H, W, C)")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    parser.add_argument(
        "--fps",
        type=float,
        default=0.0,
        help="Capture rate used to derive frame timestamps (default: timestamp = frame index)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write alert JSON lines here instead of stdout",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override logging.level from the config (DEBUG, INFO, WARNING, ...)",
    )
    return parser.parse_args(argv)


def _load_stack(path: Path) -> np.ndarray:
    stack = np.load(path, mmap_mode="r", allow_pickle=False)
    if not isinstance(stack, np.ndarray):
        raise ValueError(f"{path} is not a single .npy array")
    if stack.ndim not in (3, 4) or stack.shape[0] == 0:
        raise ValueError(f"expected a non-empty (N, H, W) or (N, H, W, C) stack, got {stack.shape}")
    return stack


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.config is not None and not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        return 1
    try:
        config = load_config(args.config)
    except (ConfigError, InvalidCalibrationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    level_name = str(args.log_level or config.logging.level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=config.logging.format)

    if not args.input.exists():
        print(f"Error: input file not found: {args.input}", file=sys.stderr)
        return 1
    try:
        stack = _load_stack(args.input)
    except (OSError, ValueError) as exc:
        print(f"Error: cannot read frame stack: {exc}", file=sys.stderr)
        return 1

    controller = EngineController.from_config(config)
    out = args.output.open("w", encoding="utf-8") if args.output is not None else sys.stdout
    try:
        for index in range(stack.shape[0]):
            timestamp = index / args.fps if args.fps > 0 else float(index)
            for event in controller.ingest(Frame(stack[index], sequence=index, timestamp=timestamp)):
                out.write(to_json_line(event.to_dict()) + "\n")
        out.flush()
    finally:
        if out is not sys.stdout:
            out.close()

    counters = controller.counters()
    dispersion = controller.dispersion()
    controller.stop()
    LOGGER.info("Replayed %d frame(s) from %s", stack.shape[0], args.input)
    print(to_json_line({"counters": counters, "dispersion": dispersion}), file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
