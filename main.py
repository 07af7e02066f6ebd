"""CLI entry point for the XBEL bookmark sorter.

Parses an XBEL export, drops duplicate URLs, classifies every bookmark into a
closed category list with an OpenAI model and writes an XBEL file grouped by
category.
"""

from __future__ import annotations

# Standard library imports (alphabetical within groups)
import argparse
import logging
import os
import sys
from pathlib import Path

# Third-party imports
from dotenv import load_dotenv

# Internal imports
from bookmark_sorter.classifier import BookmarkClassifier
from bookmark_sorter.config import DEFAULT_CONCURRENCY, DEFAULT_MODEL
from bookmark_sorter.parser import parse_xbel_file
from bookmark_sorter.pipeline import sort_document, write_classified_json
from bookmark_sorter.xbel_writer import write_xbel

STAGES: dict[int, str] = {
    1: "Load XBEL export",
    2: "Classify bookmarks",
    3: "Write sorted XBEL",
}

_TRUTHY = {"1", "true", "yes"}


def configure_logging(*, verbose: bool) -> None:
    """Configure root logging (debug when verbose).

    Logs go to stderr so that the sorted document can be written to stdout.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def log_stage(stage_number: int, message: str, *args: object) -> None:
    """Log a message prefixed with a stage label."""
    stage_label = STAGES.get(stage_number, f"Stage {stage_number}")
    logger = logging.getLogger("bookmark_sorter")
    logger.info("[%s] %s", stage_label, message % args if args else message)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        msg = f"expected an integer, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if number < 1:
        msg = f"expected a positive integer, got {number}"
        raise argparse.ArgumentTypeError(msg)
    return number


def _default_concurrency() -> int:
    raw = os.getenv("CONCURRENCY")
    if not raw:
        return DEFAULT_CONCURRENCY
    try:
        return _positive_int(raw)
    except argparse.ArgumentTypeError as exc:
        msg = f"Invalid CONCURRENCY environment value: {exc}"
        raise SystemExit(msg) from None


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sort XBEL bookmarks into category folders with an OpenAI model",
    )
    parser.add_argument(
        "-i",
        "--input",
        help="Path to the XBEL file. If omitted, BOOKMARKS_XBEL_FILE from the environment is used.",
    )
    parser.add_argument(
        "-f",
        "--folders",
        help="Comma-separated categories; defaults to the folder names found in the XBEL file",
    )
    parser.add_argument(
        "-o",
        "--out",
        type=Path,
        help="Output XBEL path; the sorted document goes to stdout when omitted",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=_positive_int,
        default=None,
        help=f"Parallel classification requests (env CONCURRENCY, default {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--model",
        default=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
        help="OpenAI model to use for classification (env OPENAI_MODEL)",
    )
    parser.add_argument(
        "--json-output",
        type=Path,
        help="Optional path for a JSON report of every classified bookmark",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.concurrency is None:
        args.concurrency = _default_concurrency()
    return args


def _resolve_input(path_arg: str | None) -> Path:
    resolved = path_arg or os.getenv("BOOKMARKS_XBEL_FILE")
    if not resolved:
        msg = "No input file provided. Supply --input or set BOOKMARKS_XBEL_FILE in env."
        raise SystemExit(msg)
    return Path(resolved)


def parse_folder_list(raw: str | None) -> list[str] | None:
    """Split a comma-separated category list; None when no list was given."""
    if raw is None:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


def _debug_enabled() -> bool:
    return os.getenv("DEBUG", "").strip().lower() in _TRUTHY


def run(args: argparse.Namespace) -> None:
    """Execute one sorting run for parsed CLI arguments."""
    input_path = _resolve_input(args.input)
    logger = logging.getLogger("bookmark_sorter")
    logger.info("Starting classification run")
    logger.debug(
        "Options: input=%s folders=%s out=%s concurrency=%d model=%s",
        input_path,
        args.folders,
        args.out,
        args.concurrency,
        args.model,
    )

    classifier = BookmarkClassifier(model=args.model)

    log_stage(1, "Reading %s", input_path)
    parsed = parse_xbel_file(input_path)

    log_stage(2, "Classifying with model %s", args.model)
    result = sort_document(
        parsed,
        classifier,
        categories=parse_folder_list(args.folders),
        concurrency=args.concurrency,
    )

    if args.json_output is not None:
        write_classified_json(result.classified, args.json_output)
    log_stage(3, "Writing %d bookmarks to %s", len(result.classified), args.out or "stdout")
    write_xbel(result.document, args.out)
    logger.info("Wrote output")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the bookmark sorter CLI."""
    load_dotenv()
    args = _parse_args(argv)
    configure_logging(verbose=args.verbose or _debug_enabled())
    logger = logging.getLogger("bookmark_sorter")
    try:
        run(args)
    except Exception as exc:  # noqa: BLE001
        logger.error("Run failed: %s", exc)  # noqa: TRY400
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
