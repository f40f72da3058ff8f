"""pxsort command line — sort the pixels in an image."""

import argparse
import logging
import os
import sys
from pathlib import Path

import sentry_sdk
from PIL import Image

from _version import __version__
from diagnostics import init_diagnostics, setup_console_logging
from engine.config import SortConfig, validate_angle
from engine.errors import InvalidAngle, InvalidShapeSyntax
from engine.heuristic import HeuristicKind
from engine.shapes import parse_shape
from engine.sorter import apply
from media.reader import read_image
from media.writer import write_image
from project import preset
from security import strip_pii, validate_dimensions, validate_input, validate_output_path

logger = logging.getLogger("pxsort")

CONSENT_PATH = "~/.pxsort/telemetry_consent"

# Progress redraws per pass
PROGRESS_STEPS = 50


def init_sentry():
    """Consent-gated Sentry init. Without consent the DSN is empty (disabled)."""
    consent_path = os.path.expanduser(CONSENT_PATH)
    dsn = ""
    if os.path.exists(consent_path) and Path(consent_path).read_text().strip() == "yes":
        dsn = os.environ.get("SENTRY_DSN", "")

    sentry_sdk.init(
        dsn=dsn,
        release=f"pxsort@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        traces_sample_rate=0.0,
        before_send=strip_pii,
        max_breadcrumbs=50,
    )


class ProgressBar:
    """Single-line stderr progress display, redrawn about PROGRESS_STEPS times."""

    def __init__(self, stream=None, width: int = 40):
        self.stream = stream or sys.stderr
        self.width = width
        self._next = 0

    def __call__(self, done: int, total: int, label: str):
        if done < self._next and done != total:
            return
        self._next = done + max(1, total // PROGRESS_STEPS)
        filled = self.width * done // total if total else self.width
        bar = "#" * filled + "-" * (self.width - filled)
        self.stream.write(f"\r{label}: {bar} {done:>5}/{total}")
        self.stream.flush()

    def finish(self, message: str):
        self.stream.write(f"\n{message}\n")
        self.stream.flush()


def _angle(text: str) -> float:
    try:
        return validate_angle(text)
    except InvalidAngle as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _shape(text: str):
    try:
        return parse_shape(text)
    except InvalidShapeSyntax as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _byte(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{text!r} is not an integer") from None
    if not 0 <= value <= 255:
        raise argparse.ArgumentTypeError(f"{value} is outside 0-255")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pxsort", description="Sort the pixels in an image"
    )
    parser.add_argument("file", help="Input file")
    parser.add_argument("-o", "--out", help="Output file (default: <name>_1.<ext>)")
    # Config flags default to None so a preset can fill in what was not given
    parser.add_argument("-m", "--min", type=_byte, help="Minimum value to sort [0]")
    parser.add_argument("-x", "--max", type=_byte, help="Maximum value to sort [255]")
    parser.add_argument(
        "-f",
        "--function",
        type=str.lower,
        choices=HeuristicKind.variants(),
        help="Sort heuristic to use [luma]",
    )
    parser.add_argument(
        "-r", "--reverse", action="store_true", default=None,
        help="Reverse the sort direction",
    )
    parser.add_argument(
        "-i", "--invert", action="store_true", default=None,
        help="Sort outside specified range rather than inside",
    )
    parser.add_argument(
        "-v", "--vertical", action="store_true", default=None,
        help="Rotate the sort path by 90 degrees",
    )
    parser.add_argument(
        "-k", "--mask-alpha", action="store_true", default=None,
        help="Don't sort pixels that have zero alpha",
    )
    parser.add_argument(
        "-a", "--angle", type=_angle,
        help="Rotate the sort path by a custom angle, -90 < angle < 90 [0]",
    )
    parser.add_argument(
        "-p",
        "--path",
        type=_shape,
        help="Path shape to traverse the image: line, sine[(amp[, period[, offset]])], "
        "ellipse[(ecc)|(cx, cy)|(ecc, cx, cy)], circle[(cx, cy)] [line]",
    )
    parser.add_argument("--preset", help="Load settings from a preset file")
    parser.add_argument("--save-preset", help="Save the effective settings to a preset file")
    parser.add_argument(
        "-j", "--workers", type=int, default=1, help="Threads used for sorting [1]"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="No progress output")
    parser.add_argument(
        "--no-log-file", action="store_true", help="Don't write logs under ~/.pxsort"
    )
    parser.add_argument("--version", action="version", version=f"pxsort {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> SortConfig:
    """Merge preset (if any) with explicitly given flags. Raises ValueError, OSError."""
    params = preset.load(args.preset).to_dict() if args.preset else {}
    explicit = {
        "minimum": args.min,
        "maximum": args.max,
        "function": args.function,
        "reverse": args.reverse,
        "invert": args.invert,
        "vertical": args.vertical,
        "mask_alpha": args.mask_alpha,
        "angle": args.angle,
        "path": args.path,
    }
    params.update({k: v for k, v in explicit.items() if v is not None})
    return SortConfig.from_dict(params)


def default_output_path(path: str) -> str:
    """<dir>/<stem>_1<suffix> next to the input."""
    p = Path(path)
    if not p.stem or not p.suffix:
        raise ValueError(f"Invalid filename: {path}")
    return str(p.with_name(f"{p.stem}_1{p.suffix}"))


def run(args: argparse.Namespace, config: SortConfig) -> int:
    errors = validate_input(args.file)
    if errors:
        logger.error("Invalid input: %s", "; ".join(errors))
        return 1

    out_path = args.out or default_output_path(args.file)
    errors = validate_output_path(out_path)
    if errors:
        logger.error("Invalid output: %s", "; ".join(errors))
        return 1

    logger.info("Opening image at %s", args.file)
    try:
        frame = read_image(args.file)
    except (OSError, Image.DecompressionBombError) as e:
        sentry_sdk.capture_exception(e)
        logger.error("Could not decode %s: %s", args.file, e)
        return 1

    errors = validate_dimensions(frame.shape[1], frame.shape[0])
    if errors:
        logger.error("Invalid image: %s", "; ".join(errors))
        return 1

    progress = None if args.quiet else ProgressBar()
    result = apply(config, frame, progress=progress, workers=max(1, args.workers))
    if progress is not None:
        progress.finish("Done sorting!")

    logger.info("Saving file to %s", out_path)
    try:
        write_image(out_path, result)
    except (OSError, ValueError) as e:
        sentry_sdk.capture_exception(e)
        logger.error("Could not encode %s: %s", out_path, e)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    init_sentry()
    root = logging.getLogger()
    existing = list(root.handlers)
    if not args.no_log_file:
        init_diagnostics()
    setup_console_logging(logging.WARNING if args.quiet else logging.INFO)

    try:
        try:
            config = build_config(args)
        except ValueError as e:
            parser.error(str(e))
        except OSError as e:
            parser.error(f"Could not read preset {args.preset}: {e}")

        if args.save_preset:
            preset.save(args.save_preset, config)
            logger.info("Saved preset to %s", args.save_preset)

        return run(args, config)
    finally:
        for handler in list(root.handlers):
            if handler not in existing:
                root.removeHandler(handler)
                handler.close()


if __name__ == "__main__":
    sys.exit(main())
