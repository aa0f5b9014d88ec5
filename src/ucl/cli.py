"""
Command-line interface for the UCL runtime (ucl).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .coordinator import Coordinator
from .errors import StructuralError, UCLError
from .runtime.config import load_config
from .runtime.engine import run_program
from .schema import load_program
from .substrates import available_substrates, create_substrate
from .substrates.ruby import RubySubstrate, compile_to_ruby, run_emitted_source
from .validator import collect_diagnostics
from .version import __version__


def build_cli_parser() -> argparse.ArgumentParser:
    cli = argparse.ArgumentParser(prog="ucl", description="Universal Causal Language runtime")
    cli.add_argument(
        "--version",
        action="version",
        version=f"UCL {__version__} (Python {sys.version.split()[0]})",
    )
    cli.add_argument("--verbose", "-v", action="store_true", help="Log runtime activity to stderr")
    sub = cli.add_subparsers(dest="command", required=True)

    def register(name: str, **kwargs):
        return sub.add_parser(name, **kwargs)

    validate_cmd = register("validate", help="Check a program for structural errors")
    validate_cmd.add_argument("file", type=Path)
    validate_cmd.add_argument(
        "--coordinated", action="store_true", help="Apply the extra checks used for multi-actor runs"
    )

    compile_cmd = register("compile", help="Emit Ruby source for a program")
    compile_cmd.add_argument("file", type=Path)
    compile_cmd.add_argument("--out", type=Path, help="Path to write the Ruby source (stdout if omitted)")

    run_cmd = register("run", help="Run a program on a single substrate")
    run_cmd.add_argument("file", type=Path)
    run_cmd.add_argument("--substrate", default="brain", choices=available_substrates())
    run_cmd.add_argument(
        "--execute-ruby",
        action="store_true",
        help="With the ruby substrate, hand the emitted source to the ruby interpreter",
    )

    coordinate_cmd = register("coordinate", help="Run a multi-actor program with one substrate per actor")
    coordinate_cmd.add_argument("file", type=Path)
    coordinate_cmd.add_argument(
        "--assign",
        action="append",
        default=[],
        metavar="ACTOR=KIND",
        help="Bind an actor to a substrate kind (repeatable)",
    )

    serve_cmd = register("serve", help="Start the FastAPI server")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)
    serve_cmd.add_argument("--dry-run", action="store_true", help="Build app but do not start server")

    return cli


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    assignments: dict[str, str] = {}
    for pair in pairs:
        actor, sep, kind = pair.partition("=")
        if not sep or not actor.strip() or not kind.strip():
            raise SystemExit(f"Invalid --assign value '{pair}', expected ACTOR=KIND")
        assignments[actor.strip()] = kind.strip()
    return assignments


def _load(path: Path):
    try:
        return load_program(path)
    except FileNotFoundError as exc:
        raise SystemExit(f"File not found: {path}") from exc


def _print_error(exc: UCLError) -> None:
    print(json.dumps({"error": exc.to_dict()}, indent=2))


def main(argv: list[str] | None = None) -> None:
    cli = build_cli_parser()
    args = cli.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "validate":
        try:
            program = _load(args.file)
        except StructuralError as exc:
            _print_error(exc)
            raise SystemExit(1)
        diagnostics = collect_diagnostics(program, coordinated=args.coordinated)
        errors = [d for d in diagnostics if d.severity == "error"]
        print(
            json.dumps(
                {
                    "ok": not errors,
                    "actions": len(program.actions),
                    "actors": program.actors(),
                    "diagnostics": [d.to_dict() for d in diagnostics],
                },
                indent=2,
            )
        )
        if errors:
            raise SystemExit(1)
        return

    if args.command == "compile":
        config = load_config()
        try:
            program = _load(args.file)
            source = compile_to_ruby(program.actions, config)
        except UCLError as exc:
            _print_error(exc)
            raise SystemExit(1)
        if args.out:
            args.out.write_text(source, encoding="utf-8")
            print(json.dumps({"status": "ok", "out": str(args.out), "lines": source.count("\n")}, indent=2))
        else:
            sys.stdout.write(source)
        return

    if args.command == "run":
        config = load_config()
        try:
            program = _load(args.file)
            substrate = create_substrate(args.substrate, config)
            result = run_program(program, substrate, config)
            payload = {"result": result.to_dict(), "snapshot": substrate.snapshot()}
            if args.execute_ruby and isinstance(substrate, RubySubstrate):
                ruby = run_emitted_source(substrate.source(), ruby_bin=config.ruby_bin)
                payload["ruby"] = {"returncode": ruby.returncode, "stdout": ruby.stdout, "stderr": ruby.stderr}
        except UCLError as exc:
            _print_error(exc)
            raise SystemExit(1)
        print(json.dumps(payload, indent=2, default=str))
        if not result.ok:
            raise SystemExit(2)
        return

    if args.command == "coordinate":
        config = load_config()
        try:
            program = _load(args.file)
            report = Coordinator(_parse_assignments(args.assign), config).run(program)
        except UCLError as exc:
            _print_error(exc)
            raise SystemExit(1)
        print(json.dumps(report.to_dict(), indent=2, default=str))
        if not report.ok:
            raise SystemExit(2)
        return

    if args.command == "serve":
        try:
            from .server import create_app
        except Exception as exc:  # pragma: no cover - load-time guard
            raise SystemExit(f"Failed to import server: {exc}") from exc
        app = create_app()
        if args.dry_run:
            print(
                json.dumps(
                    {"status": "ready", "host": args.host, "port": args.port},
                    indent=2,
                )
            )
            return
        import uvicorn

        uvicorn.run(app, host=args.host, port=args.port)
        return


if __name__ == "__main__":  # pragma: no cover
    main()
