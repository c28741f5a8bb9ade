#!/usr/bin/env python3
"""Pinto CLI - parse, compile, decompile and lint diagram DSL files."""

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from .ast_builder import parse
from .compiler import parse_and_compile
from .decompiler import decompile
from .errors import LayoutFailure
from .models import CompileOptions, LayoutAlgorithm, LayoutDirection
from .validation import validate_document, validation_summary


def _json_out(data, status=0):
    print(json.dumps(data, indent=2))
    sys.exit(status)


def _read_input(path):
    """Read a file, or stdin for '-'."""
    if path == "-":
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e.strerror}"}, status=1)


# ── Toolchain ────────────────────────────────────────────────────────────────

def cmd_parse(args):
    document = parse(_read_input(args.file))
    _json_out(
        {"success": document.ok, "document": document.to_json_dict()},
        status=0 if document.ok else 1,
    )


def cmd_compile(args):
    overrides = {}
    if args.algorithm is not None:
        overrides["algorithm"] = args.algorithm
    if args.direction is not None:
        overrides["direction"] = args.direction
    if args.node_spacing is not None:
        overrides["node_spacing"] = args.node_spacing
    if args.edge_spacing is not None:
        overrides["edge_spacing"] = args.edge_spacing

    try:
        options = CompileOptions(**overrides) if overrides else None
    except ValidationError as e:
        _json_out({"status": "error", "error": str(e)}, status=1)

    source = _read_input(args.file)
    try:
        result = asyncio.run(parse_and_compile(source, options))
    except LayoutFailure as e:
        _json_out({"status": "error", "error": f"Layout failed: {e}"}, status=1)

    payload = result.to_json_dict()
    _json_out(
        {"success": not result.errors, "shapes": payload["shapes"], "errors": payload["errors"]},
        status=1 if result.errors else 0,
    )


def cmd_decompile(args):
    raw = _read_input(args.file)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        _json_out({"status": "error", "error": f"Invalid JSON: {e}"}, status=1)

    # Accept a bare list or a compile result object
    shapes = data.get("shapes", []) if isinstance(data, dict) else data
    if not isinstance(shapes, list):
        _json_out({"status": "error", "error": "Expected a list of shapes"}, status=1)
    source = decompile(shapes, include_positions=not args.no_positions)

    if args.raw:
        print(source)
        sys.exit(0)
    _json_out({"success": True, "source": source})


def cmd_check(args):
    issues = validate_document(parse(_read_input(args.file)))
    summary = validation_summary(issues)
    _json_out(
        {"success": True, "issues": [issue.to_dict() for issue in issues], "summary": summary},
        status=0 if summary["valid"] else 1,
    )


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    from .server import run
    run(host=args.host, port=args.port)


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    from .server import API_HOST, API_PORT

    parser = argparse.ArgumentParser(prog="pinto", description="Pinto diagram DSL toolchain")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Parse a DSL file into a document AST")
    p.add_argument("file", help="DSL file, or - for stdin")

    p = sub.add_parser("compile", help="Compile a DSL file into canvas shapes")
    p.add_argument("file", help="DSL file, or - for stdin")
    p.add_argument("--algorithm", choices=[a.value for a in LayoutAlgorithm], default=None)
    p.add_argument("--direction", choices=[d.value for d in LayoutDirection], default=None)
    p.add_argument("--node-spacing", type=float, default=None)
    p.add_argument("--edge-spacing", type=float, default=None)

    p = sub.add_parser("decompile", help="Turn a JSON shape list back into DSL source")
    p.add_argument("file", help="JSON file, or - for stdin")
    p.add_argument("--no-positions", action="store_true",
                   help="Leave out x/y so the output recompiles with automatic layout")
    p.add_argument("--raw", action="store_true", help="Print the DSL text only")

    p = sub.add_parser("check", help="Lint a DSL file")
    p.add_argument("file", help="DSL file, or - for stdin")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=API_HOST)
    p.add_argument("--port", type=int, default=API_PORT)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    cmd_map = {
        "parse": cmd_parse,
        "compile": cmd_compile,
        "decompile": cmd_decompile,
        "check": cmd_check,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
