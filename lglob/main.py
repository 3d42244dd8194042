"""Command line entry point: ``lglob [options] FILE|DIR|GLOB ...``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .config import AnalysisOptions
from .definitions import build_whitelist
from .dialects import get_dialect, iter_dialects
from .exceptions import MalformedListingError, ToolUnavailableError, WhitelistError
from .listing import read_listing
from .logging_config import close_trace_logger, configure_trace_logger
from .lua_runtime import ModuleLoader
from .luac import disassemble
from .report import RunReport, format_dump, format_range, format_xref
from .resolver import Diagnostic, Resolver
from .utils import colorize_text, expand_sources, parse_line_range, write_json

LOG = logging.getLogger(__name__)


class _ColourFormatter(logging.Formatter):
    COLOURS = {
        logging.DEBUG: "blue",
        logging.INFO: "green",
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "magenta",
    }

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - trivial wrapper
        message = super().format(record)
        colour = self.COLOURS.get(record.levelno, "green")
        return colorize_text(message, colour)


def configure_logging(verbose: bool) -> None:
    """Configure root logging handlers."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    level = logging.DEBUG if verbose else logging.WARNING
    root.setLevel(level)

    stream = logging.StreamHandler()
    if verbose and stream.stream.isatty():
        stream.setFormatter(_ColourFormatter("%(levelname)s: %(message)s"))
    else:
        stream.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(stream)


def build_parser() -> argparse.ArgumentParser:
    dialects = sorted({dialect.name for dialect in iter_dialects()})
    parser = argparse.ArgumentParser(
        prog="lglob",
        description="Report undefined and redefined globals in Lua sources using luac listings",
    )
    parser.add_argument("files", nargs="+", help="Lua files, directories or glob patterns")
    parser.add_argument("--dialect", help=f"instruction-set dialect ({', '.join(dialects)})")
    parser.add_argument("--luac", help="disassembler executable (default: search PATH)")
    parser.add_argument("--timeout", type=float, help="seconds allowed per disassembler run")
    parser.add_argument("-t", "--tolerant", action="store_true", help="never report, only resolve modules")
    parser.add_argument(
        "-r",
        "--resolve-requires",
        action="store_true",
        help="load required modules and whitelist their exports",
    )
    parser.add_argument(
        "-w",
        "--whitelist",
        action="append",
        default=[],
        metavar="FILE",
        help="extra whitelist definitions (.json or Lua), repeatable",
    )
    parser.add_argument(
        "--modules",
        action="append",
        default=[],
        metavar="FILE",
        help="module export tables keyed by module name, repeatable",
    )
    parser.add_argument(
        "-I",
        "--search-dir",
        action="append",
        default=[],
        metavar="DIR",
        help="additional directory searched by require resolution",
    )
    parser.add_argument("--no-stdlib", action="store_true", help="do not whitelist the standard globals")
    parser.add_argument("-x", "--xref", action="store_true", help="print a cross-reference of globals")
    parser.add_argument("-d", "--dump", action="store_true", help="dump references, requires and remarks")
    parser.add_argument("--lines", metavar="FIRST-LAST", help="dump decoded instructions for a source line range")
    parser.add_argument("--json", metavar="PATH", help="write a JSON report to PATH")
    parser.add_argument("--trace", metavar="PATH", help="write an instruction trace to PATH")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable verbose logging")
    return parser


def _print_diagnostic(diagnostic: Diagnostic) -> None:
    print(diagnostic.format())


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    options = AnalysisOptions.from_env(
        dialect=args.dialect,
        luac=args.luac,
        timeout=args.timeout,
        tolerant=args.tolerant,
        resolve_requires=args.resolve_requires,
        include_stdlib=not args.no_stdlib,
        whitelist_files=[Path(item) for item in args.whitelist],
        module_files=[Path(item) for item in args.modules],
        search_dirs=[Path(item) for item in args.search_dir],
    )
    try:
        dialect = get_dialect(options.dialect)
    except KeyError:
        parser.error(f"unknown dialect {options.dialect!r}")

    line_range = None
    if args.lines:
        try:
            line_range = parse_line_range(args.lines)
        except ValueError as exc:
            parser.error(f"--lines: {exc}")

    try:
        whitelist = build_whitelist(
            dialect=dialect,
            include_stdlib=options.include_stdlib,
            whitelist_files=options.whitelist_files,
            module_files=options.module_files,
        )
    except WhitelistError as exc:
        LOG.error("%s", exc)
        return 2

    trace = configure_trace_logger(Path(args.trace)) if args.trace else None
    resolver = Resolver(
        whitelist,
        dialect,
        tolerant=options.tolerant,
        resolve_requires=options.resolve_requires,
        loader=ModuleLoader(dialect, options.search_dirs),
        trace=trace,
    )
    reporting = not (args.xref or args.dump)
    run = RunReport()
    try:
        for source in expand_sources(args.files):
            if not source.is_file():
                LOG.warning("skipping %s: no such file", source)
                run.skipped.append((str(source), "no such file"))
                continue
            try:
                listing = disassemble(source, dialect=dialect, luac=options.luac, timeout=options.timeout)
            except ToolUnavailableError as exc:
                LOG.warning("skipping %s: %s", source, exc)
                run.skipped.append((str(source), str(exc)))
                continue

            if line_range is not None:
                print(format_range(read_listing(listing), dialect, *line_range))
            result = resolver.check_listing(
                listing,
                filename=str(source),
                search_dirs=[source.parent],
                report=_print_diagnostic if reporting else None,
            )
            run.results.append(result)
            if args.xref:
                print(format_xref(result.extraction))
            if args.dump:
                print(format_dump(result))
    except MalformedListingError as exc:
        LOG.error("malformed disassembler output: %s", exc)
        return 2
    finally:
        if trace is not None:
            close_trace_logger(trace)

    if args.json:
        write_json(args.json, run.to_json())
    LOG.info("%s", run.to_text())
    return 0 if run.passed else 1


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
