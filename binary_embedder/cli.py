"""Command line interface for binary-embedder."""

import argparse
import logging
import pathlib
import sys

from binary_embedder.builder import build_single_file
from binary_embedder.errors import BinaryEmbedderError
from binary_embedder.target import DEFAULT_OUTPUT, DEFAULT_TRIPLE, BuildConfig, Dialect


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the binary-embedder logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("binary_embedder")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _parse_dialect(value: str) -> Dialect:
    try:
        return Dialect.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="binary-embedder",
        description=(
            "Compile a Cargo bin target and embed the binary into one self-extracting "
            "Rust or Python source file."
        ),
    )
    parser.add_argument(
        "--manifest-path",
        type=pathlib.Path,
        default=None,
        metavar="PATH",
        help="Path to Cargo.toml.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_OUTPUT),
        metavar="PATH",
        help=f"Output filename (default: {DEFAULT_OUTPUT}).",
    )
    parser.add_argument(
        "--bin",
        type=str,
        default=None,
        metavar="NAME",
        help="Name of the bin target to compile.",
    )
    parser.add_argument(
        "--target",
        type=str,
        default=DEFAULT_TRIPLE,
        metavar="TRIPLE",
        help=f"Target triple (default: {DEFAULT_TRIPLE}).",
    )
    parser.add_argument(
        "--use-cross",
        action="store_true",
        help="Use `cross` to compile.",
    )
    parser.add_argument(
        "--panic-unwind",
        action="store_true",
        help="Keep panic=unwind (default is panic=abort with a rebuilt std).",
    )
    parser.add_argument(
        "--no-opt-size",
        action="store_true",
        help='Do not add opt-level="s".',
    )
    parser.add_argument(
        "--no-upx",
        action="store_true",
        help="Do not compress the binary with upx.",
    )
    parser.add_argument(
        "--language",
        type=_parse_dialect,
        default=Dialect.RUST,
        metavar="{Rust,Python}",
        help="Output language (case-insensitive, default: Rust).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the binary-embedder CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    ns = _build_parser().parse_args(argv)
    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
    config: BuildConfig = BuildConfig(
        manifest_path=ns.manifest_path,
        output_path=ns.output,
        bin_name=ns.bin,
        target=ns.target,
        use_cross=ns.use_cross,
        panic_unwind=ns.panic_unwind,
        no_opt_size=ns.no_opt_size,
        no_upx=ns.no_upx,
        dialect=ns.language,
    )

    try:
        build_single_file(config, logger=logger)
    except BinaryEmbedderError as e:
        logger.error(f"error: {e}")
        return 1
    return 0
