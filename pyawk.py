"""Command-line runner for the AWK interpreter."""
import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from awk import AwkOptions, LocalFileSystem, awk_exec_files, load_options, options_from_env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyawk",
        description="Run an AWK program over files or standard input",
    )
    parser.add_argument("-F", dest="field_separator", metavar="fs", help="Field separator (FS); 't' means tab")
    parser.add_argument("-v", dest="assignments", metavar="name=value", action="append", default=[],
                        help="Assign a variable before BEGIN (repeatable)")
    parser.add_argument("-f", dest="progfiles", metavar="progfile", action="append", default=[],
                        help="Read the program from a file (repeatable)")
    parser.add_argument("--config", help="Options file (.json, .yaml, .yml or .toml)")
    parser.add_argument("--max-iterations", type=int, help="Per-loop iteration limit")
    parser.add_argument("--max-recursion-depth", type=int, help="User function call depth limit")
    parser.add_argument("operands", nargs="*", help="'program' (unless -f is given) followed by input files")
    return parser


def _field_separator(value: str) -> str:
    return "\t" if value == "t" else value


def _read_inputs(files: List[str]) -> List[Tuple[str, str]]:
    if not files:
        return [("", sys.stdin.read())]
    inputs = []
    for name in files:
        if name == "-":
            inputs.append(("-", sys.stdin.read()))
        else:
            inputs.append((name, Path(name).read_text(encoding="utf-8")))
    return inputs


async def run(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    operands = list(args.operands)
    if args.progfiles:
        try:
            script = "\n".join(Path(p).read_text(encoding="utf-8") for p in args.progfiles)
        except OSError as e:
            print(f"awk: can't open source file `{e.filename}' ({e.strerror})", file=sys.stderr)
            return 2
    elif operands:
        script = operands.pop(0)
    else:
        parser.error("no program given")

    try:
        options = load_options(args.config) if args.config else AwkOptions()
        options = options_from_env(options)
    except (OSError, ValueError) as e:
        print(f"awk: {e}", file=sys.stderr)
        return 2

    if args.field_separator is not None:
        options.field_separator = _field_separator(args.field_separator)
    for assignment in args.assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name:
            print(f"awk: invalid -v argument `{assignment}'", file=sys.stderr)
            return 2
        options.variables[name] = value
    for flag, value in (("--max-iterations", args.max_iterations), ("--max-recursion-depth", args.max_recursion_depth)):
        if value is not None and value < 1:
            print(f"awk: {flag} must be a positive integer, got {value}", file=sys.stderr)
            return 2
    if args.max_iterations is not None:
        options.max_iterations = args.max_iterations
    if args.max_recursion_depth is not None:
        options.max_recursion_depth = args.max_recursion_depth

    cwd = os.getcwd()
    options.file_system = LocalFileSystem(root=cwd)
    options.cwd = cwd

    try:
        inputs = _read_inputs(operands)
    except OSError as e:
        print(f"awk: cannot open \"{e.filename}\" ({e.strerror})", file=sys.stderr)
        return 2

    result = await awk_exec_files(script, inputs, options)
    sys.stdout.write(result.output)
    sys.stdout.flush()
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
    return result.exit_code


def main():
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
