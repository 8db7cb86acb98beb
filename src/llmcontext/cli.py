"""
CLI entrypoint for llmcontext package.
"""
import argparse
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from colorama import Fore, Style, init as colorama_init

from . import __version__
from .errors import ConfigFileError, InvalidRootError, OutputError
from .ignore import IgnoreMatcher, load_extra_patterns, resolve_root
from .walker import DEFAULT_MAX_FILE_SIZE, Classification, FileEntry, WalkResult, walk
from .writer import WriteReport, prepare_output_dir, write_artifacts

colorama_init()

PROGRESS_EVERY = 100


def _say(msg: str, color: str = "", err: bool = False) -> None:
    stream = sys.stderr if err else sys.stdout
    if color:
        msg = color + msg + Style.RESET_ALL
    print(msg, file=stream)


def _fail(msg: str) -> None:
    _say(f"Error: {msg}", Fore.RED, err=True)
    sys.exit(1)


def split_patterns(values: Iterable[str]) -> List[str]:
    """Flatten repeated, comma-separated ``--ignore`` values."""
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="llm-context-gen",
        description="Generate text files for LLM context from source code.",
    )
    p.add_argument(
        "--root", "-d", "--dir",
        dest="root",
        type=Path,
        default=Path("."),
        help="Directory to process (default: .)",
    )
    p.add_argument(
        "--out", "-o", "--output",
        dest="out",
        type=Path,
        default=Path("llm-context"),
        help="Output directory (default: llm-context)",
    )
    p.add_argument(
        "--ignore", "-i",
        action="append",
        default=[],
        help="Extra ignore patterns, comma-separated; may be repeated",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra ignore patterns (one per line)",
    )
    p.add_argument(
        "--max-size", "-s",
        type=int,
        default=DEFAULT_MAX_FILE_SIZE,
        help="Maximum file size in bytes (default 500000)",
    )
    p.add_argument(
        "--max-files", "-m",
        type=int,
        default=2000,
        help="Maximum number of files to include (default 2000)",
    )
    p.add_argument(
        "--max-depth",
        type=int,
        default=8,
        help="Maximum directory depth (default 8)",
    )
    p.add_argument(
        "--follow-symlinks",
        action="store_true",
        help="Follow symbolic links (cycles are detected and skipped)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def _progress_printer(verbose: bool):
    seen = 0

    def _on_entry(entry: FileEntry) -> None:
        nonlocal seen
        if entry.classification is Classification.DIRECTORY:
            return
        seen += 1
        if not entry.included:
            reason = f" ({entry.reason})" if entry.reason else ""
            _say(f"[llm-context] - {entry.classification.value}: {entry.relative}{reason}", Fore.YELLOW)
        if seen % PROGRESS_EVERY == 0:
            _say(f"[llm-context] Processed {seen} entries …")

    return _on_entry if verbose else None


def _print_summary(result: WalkResult, report: WriteReport) -> None:
    counts = result.counts()
    main_tags = (Classification.IGNORED, Classification.BINARY, Classification.OVERSIZED)
    other = sum(n for tag, n in counts.items() if tag is not Classification.TEXT and tag not in main_tags)
    _say("[llm-context] Summary")
    _say(f"    included:  {counts[Classification.TEXT]}")
    for tag in main_tags:
        _say(f"    {tag.value + ':':<10} {counts[tag]}")
    _say(f"    skipped:   {other}")
    for tag in (Classification.SYMLINK, Classification.CYCLE, Classification.UNREADABLE,
                Classification.DEPTH, Classification.LIMIT):
        if counts[tag]:
            _say(f"      {tag.value}: {counts[tag]}")
    if report.failures:
        _say(f"[llm-context] {len(report.failures)} artifact(s) could not be written:", Fore.YELLOW)
        for failure in report.failures:
            _say(f"    - {failure.relative}: {failure.reason}", Fore.YELLOW)
    _say(
        f"[llm-context] Done → {report.out_dir}. "
        f"{len(result.files)} files, {report.bytes_written} bytes written.",
        Fore.GREEN,
    )


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)

        try:
            root = resolve_root(ns.root)
        except InvalidRootError as e:
            _fail(str(e))

        extra = split_patterns(ns.ignore)
        if ns.config:
            try:
                extra += load_extra_patterns(ns.config.resolve())
                if ns.verbose:
                    _say(f"[llm-context] Loaded extra patterns from {ns.config}")
            except ConfigFileError as e:
                _fail(str(e))

        try:
            matcher = IgnoreMatcher.build(root, extra)
        except ConfigFileError as e:
            _fail(str(e))

        try:
            out_dir = prepare_output_dir(ns.out, root)
        except OutputError as e:
            _fail(str(e))

        if ns.verbose:
            _say(f"[llm-context] Scanning {root} …")
            _say(f"[llm-context] Extra patterns: {extra or 'none'}")
            _say(
                f"[llm-context] Max size {ns.max_size} bytes, max files {ns.max_files}, "
                f"max depth {ns.max_depth}"
            )

        result = walk(
            root,
            matcher,
            ns.max_size,
            ns.follow_symlinks,
            max_depth=ns.max_depth,
            max_files=ns.max_files,
            exclude=[out_dir],
            progress=_progress_printer(ns.verbose),
        )
        for source, problem in matcher.load_errors:
            _say(f"[llm-context] ! Could not read {source}: {problem}", Fore.YELLOW)
        if result.skipped_as(Classification.LIMIT):
            _say(f"[llm-context] Maximum file limit reached ({ns.max_files}). "
                 "Some files were skipped.", Fore.YELLOW)

        report = write_artifacts(result, out_dir, verbose=ns.verbose)
        _print_summary(result, report)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
