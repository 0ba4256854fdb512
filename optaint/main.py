#!/usr/bin/env python3
"""optaint/main.py — CLI entry-point for the optaint instrumentation engine.

Usage examples
--------------
    # Write the injectable mock definitions
    python -m optaint generate -o mocks.py

    # Only some mocks, importing the substrate from the host
    python -m optaint generate --substrate myhost.taint --export __plus__ __eval__

    # Rewrite an ESTree JSON document (as produced by esprima/acorn)
    python -m optaint rewrite program.json -o program.rewritten.json
    python -m optaint rewrite program.json --format sexp

    # Apply one mock to JSON operands, tainting the left one
    python -m optaint trace + '"abc"' 2 --tainted left

    # List the operator table
    python -m optaint operators --category equality

    # Parse a provenance label
    python -m optaint explain 'eval(+(src,value(2)))'

Exit codes
----------
    0   Success.
    1   Bad input (malformed ESTree JSON, unparseable label, ...).
    2   Infrastructure or configuration failure (missing file, bad
        configuration, catalog construction error).

The module doubles as ``python -m optaint`` via the companion
``optaint/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, List, Optional, Sequence, TextIO

from optaint import __version__
from optaint.config import EngineConfig
from optaint.errors import ConfigurationError, ErrorPhase, OptaintError

_log = logging.getLogger("optaint")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int, debug: bool = False) -> None:
    """Set up the ``optaint`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    debug:
        Forces DEBUG regardless of ``verbosity``.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2 or debug:
        level = logging.DEBUG

    root = logging.getLogger("optaint")
    for handler in list(root.handlers):
        if getattr(handler, "_optaint_cli", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._optaint_cli = True
    root.setLevel(level)
    root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _write(dest: Optional[str], text: str) -> None:
    out = _open_output(dest)
    try:
        out.write(text)
    finally:
        if out is not sys.stdout:
            out.close()


def _load_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig()
    if getattr(args, "config", None):
        config = EngineConfig.from_file(_resolve_path(args.config, "configuration file"))
    return config.merge_args(args)


def _report(exc: OptaintError) -> int:
    _log.error("%s", exc)
    if exc.phase is ErrorPhase.INPUT:
        return EXIT_ERROR
    return EXIT_INFRA


# ===========================================================================
# Sub-command implementations
# ===========================================================================

# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------

def cmd_generate(args: argparse.Namespace) -> int:
    """Build the catalog and mocks, then write the injectable source."""
    from optaint.codegen import MockCodeGenerator
    from optaint.mocks import MockFactory
    from optaint.rules import RuleCatalog

    config = args.engine_config
    catalog = RuleCatalog()
    namespace = MockFactory().build(catalog)
    generated = MockCodeGenerator(config).render(namespace)
    if args.output and args.output != "-":
        path = Path(args.output).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        generated.write_to_file(str(path))
        _log.info("wrote %d mocks to %s", len(generated.exports), path)
    else:
        sys.stdout.write(generated.code)
    return EXIT_OK


# ---------------------------------------------------------------------------
# rewrite
# ---------------------------------------------------------------------------

def cmd_rewrite(args: argparse.Namespace) -> int:
    """Rewrite an ESTree JSON document with the full rule set."""
    from optaint.nodes import from_estree, to_estree, to_sexp
    from optaint.rewriter import RewriteStats, rewrite

    src_path = _resolve_path(args.source_file, "ESTree file")
    try:
        document = json.loads(src_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        _log.error("%s:%d:%d: %s", src_path, exc.lineno, exc.colno, exc.msg)
        return EXIT_ERROR

    stats = RewriteStats()
    tree = rewrite(from_estree(document), stats=stats)
    _log.info("rewrote %d of %d nodes", stats.total, stats.visited)
    for name, count in sorted(stats.replaced.items()):
        _log.debug("  %-20s %d", name, count)

    if args.format == "sexp":
        text = to_sexp(tree) + "\n"
    else:
        text = json.dumps(to_estree(tree), indent=2) + "\n"
    _write(args.output, text)
    return EXIT_OK


# ---------------------------------------------------------------------------
# trace (apply one mock)
# ---------------------------------------------------------------------------

def _parse_operand(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # Bare words are strings.
        return raw


def cmd_trace(args: argparse.Namespace) -> int:
    """Apply the mock for one operator and show the result's provenance."""
    from optaint.jsops import to_string
    from optaint.mocks import MockFactory
    from optaint.rules import RuleCatalog
    from optaint.substrate import InMemorySubstrate

    config = args.engine_config
    catalog = RuleCatalog()
    if args.symbol not in catalog.table:
        _log.error("unknown operator %r", args.symbol)
        return EXIT_ERROR
    spec = catalog.table.get(args.symbol)
    if len(args.operands) != spec.arity:
        _log.error("%r takes %d operand(s), got %d", spec.symbol, spec.arity, len(args.operands))
        return EXIT_ERROR

    substrate = InMemorySubstrate()
    mock = MockFactory(substrate).build(catalog)[spec.replacement_name]
    positions = ["left", "right"][:spec.arity]
    tainted = [p for p in positions if args.tainted in (p, "both")]
    operands: List[Any] = []
    for position, raw in zip(positions, args.operands):
        value = _parse_operand(raw)
        if position in tainted:
            name = config.taint_name if len(tainted) == 1 else f"{config.taint_name}.{position}"
            value = substrate.taint(value, name)
        operands.append(value)

    result = mock(*operands)
    lines = [f"{spec.replacement_name}: {to_string(substrate.unwrap(result))}"]
    if substrate.is_tainted(result):
        lines.append(f"tainted: {substrate.provenance_name(result)}")
    else:
        lines.append("untainted")
    for hit in substrate.sink_hits():
        lines.append(f"sink {hit.sink}: {hit.label}")
    _write(None, "\n".join(lines) + "\n")
    return EXIT_OK


# ---------------------------------------------------------------------------
# operators
# ---------------------------------------------------------------------------

def cmd_operators(args: argparse.Namespace) -> int:
    """List the operator table."""
    from optaint.operators import DEFAULT_TABLE, Category

    specs = DEFAULT_TABLE.specs
    if args.category:
        specs = DEFAULT_TABLE.in_category(Category.parse(args.category))
    lines = [
        f"{spec.category.value:<9} {spec.symbol:<7} {spec.replacement_name:<20} {spec.native}"
        for spec in specs
    ]
    _write(args.output, "\n".join(lines) + "\n")
    return EXIT_OK


# ---------------------------------------------------------------------------
# explain (provenance labels)
# ---------------------------------------------------------------------------

def cmd_explain(args: argparse.Namespace) -> int:
    """Parse a provenance label and print its derivation."""
    from optaint.provenance import parse_label

    derivation = parse_label(args.label)
    lines = [derivation.to_sexp()]
    sources = derivation.sources()
    if sources:
        lines.append("sources: " + ", ".join(sources))
    _write(None, "\n".join(lines) + "\n")
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="optaint",
        description=(
            "optaint — operator-level taint instrumentation for JavaScript.\n\n"
            "Rewrites ESTree syntax trees so operators become calls to\n"
            "taint-aware mocks, and generates the mock definitions."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              optaint generate -o mocks.py
              optaint rewrite program.json --format sexp
              optaint trace + '"abc"' 2 --tainted left
              optaint explain 'eval(+(src,value(2)))'
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        default=None,
        help="JSON engine configuration file.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Debug logging (same as -vv).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_output_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )

    # --- generate ----------------------------------------------------------
    p_generate = subparsers.add_parser(
        "generate",
        help="Write the injectable mock definitions.",
        description=(
            "Build the rule catalog and the mock namespace, and render the "
            "mocks as one self-contained Python source blob."
        ),
    )
    _add_output_arg(p_generate)
    p_generate.add_argument(
        "--substrate",
        dest="substrate_module",
        metavar="MODULE",
        default=None,
        help="Module the generated code imports the substrate functions from.",
    )
    p_generate.add_argument(
        "--export",
        dest="exports",
        nargs="+",
        metavar="NAME",
        default=None,
        help="Replacement names to generate (default: all).",
    )
    p_generate.add_argument(
        "--no-sink-record",
        dest="record_sinks",
        action="store_false",
        default=None,
        help="Do not call record_sink from the generated eval mock.",
    )
    p_generate.set_defaults(func=cmd_generate)

    # --- rewrite -----------------------------------------------------------
    p_rewrite = subparsers.add_parser(
        "rewrite",
        help="Rewrite an ESTree JSON document.",
        description="Replace every intercepted operator by a call to its mock.",
    )
    p_rewrite.add_argument(
        "source_file",
        metavar="FILE",
        help="ESTree JSON document.",
    )
    p_rewrite.add_argument(
        "-f", "--format",
        choices=["json", "sexp"],
        default="json",
        help="Output format (default: json).",
    )
    _add_output_arg(p_rewrite)
    p_rewrite.set_defaults(func=cmd_rewrite)

    # --- trace -------------------------------------------------------------
    p_trace = subparsers.add_parser(
        "trace",
        help="Apply one mock to JSON operands.",
        description=(
            "Call the mock for SYMBOL on the given operands (JSON literals; "
            "bare words are strings) and print the result's provenance."
        ),
    )
    p_trace.add_argument("symbol", metavar="SYMBOL", help="Operator symbol, e.g. + or eval.")
    p_trace.add_argument("operands", metavar="OPERAND", nargs="+", help="Operand values.")
    p_trace.add_argument(
        "-t", "--tainted",
        choices=["none", "left", "right", "both"],
        default="left",
        help="Which operands to taint (default: left).",
    )
    p_trace.add_argument(
        "--taint-name",
        dest="taint_name",
        metavar="NAME",
        default=None,
        help="Provenance name of tainted operands.",
    )
    p_trace.set_defaults(func=cmd_trace)

    # --- operators ---------------------------------------------------------
    p_operators = subparsers.add_parser(
        "operators",
        help="List the operator table.",
        description="Print category, symbol, replacement name and native semantics.",
    )
    p_operators.add_argument(
        "--category",
        choices=["unary", "binary", "equality", "function"],
        default=None,
        help="Only list one category.",
    )
    _add_output_arg(p_operators)
    p_operators.set_defaults(func=cmd_operators)

    # --- explain -----------------------------------------------------------
    p_explain = subparsers.add_parser(
        "explain",
        help="Parse a provenance label.",
        description="Print a provenance label as an S-expression with its sources.",
    )
    p_explain.add_argument("label", metavar="LABEL", help="Provenance label.")
    p_explain.set_defaults(func=cmd_explain)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the optaint CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose, bool(args.debug))

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        args.engine_config = _load_config(args)
        if args.engine_config.debug:
            _configure_logging(2)
        return args.func(args)
    except ConfigurationError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except OptaintError as exc:
        return _report(exc)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
