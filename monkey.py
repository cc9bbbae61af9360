"""Monkey entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from interpreter import Environment, Error, Interpreter, MonkeyRuntimeError, Object, TracebackFormatter
from lexer import EOF, LBRACE, LPAREN, RBRACE, RPAREN, Lexer
from parser import LetStatement, MonkeyParseError, Program


PROMPT = "\x1b[38;2;153;221;255m>>\033[0m "  # light blue
CONTINUATION_PROMPT = "\x1b[38;2;153;221;255m..\033[0m "


def _open_brackets(text: str) -> int:
    lexer = Lexer(text, "<repl>")
    depth = 0
    while True:
        token = lexer.next_token()
        if token.type == EOF:
            return depth
        if token.type in (LBRACE, LPAREN):
            depth += 1
        elif token.type in (RBRACE, RPAREN):
            depth -= 1


def _should_echo(program: Program) -> bool:
    if not program.statements:
        return False
    return not isinstance(program.statements[-1], LetStatement)


def _print_parse_errors(error: MonkeyParseError) -> None:
    for diagnostic in error.diagnostics:
        print(f"ParseError: {diagnostic}", file=sys.stderr)


def _print_traceback(interpreter: Interpreter, error: Error, as_json: bool = False) -> None:
    formatter = TracebackFormatter(interpreter)
    print(formatter.format_text(error, verbose=interpreter.verbose), file=sys.stderr)
    if as_json:
        print(formatter.to_json(error), file=sys.stderr)


def _print_fault(error: MonkeyRuntimeError) -> None:
    where = f" at {error.location.file}:{error.location.line}" if error.location else ""
    print(f"MonkeyRuntimeError{where}: {error.message}", file=sys.stderr)


def run_repl(verbose: bool, fresh_env: bool = False) -> int:
    print("\x1b[38;2;153;221;255mMonkey\033[0m REPL. Open brackets continue input, blank line to run buffer.")
    interpreter = Interpreter(filename="<repl>", verbose=verbose)
    # One environment for the whole session unless asked otherwise.
    env = Environment()
    buffer: List[str] = []

    while True:
        prompt = PROMPT if not buffer else CONTINUATION_PROMPT
        try:
            line = input(prompt)
        except EOFError:
            print()
            break

        buffered = bool(buffer)
        if buffered:
            if line.strip() != "":
                buffer.append(line)
                continue
            source_text = "\n".join(buffer)
            buffer.clear()
        elif line.strip() == "":
            continue
        else:
            source_text = line

        try:
            program = interpreter.parse(source_text)
        except MonkeyParseError as error:
            if not buffered and _open_brackets(line) > 0:
                # Incomplete single line: treat it as the start of multi-line input
                buffer.append(line)
            else:
                _print_parse_errors(error)
            continue

        if fresh_env:
            env = Environment()
        try:
            result: Object = interpreter.execute(program, env)
        except MonkeyRuntimeError as error:
            _print_fault(error)
            continue

        if isinstance(result, Error):
            print(result.inspect())
            if verbose:
                _print_traceback(interpreter, result)
        elif _should_echo(program):
            print(result.inspect())
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Monkey tree-walking interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit env snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--fresh-env", action="store_true", help="REPL: start every input with an empty environment")
    args = parser.parse_args(argv)

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose, fresh_env=args.fresh_env)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(filename=filename, verbose=args.verbose)
    try:
        program = interpreter.parse(source_text)
        result = interpreter.execute(program, Environment())
    except MonkeyParseError as error:
        _print_parse_errors(error)
        return 1
    except MonkeyRuntimeError as error:
        _print_fault(error)
        return 1

    if isinstance(result, Error):
        _print_traceback(interpreter, result, as_json=args.traceback_json)
        return 1
    if _should_echo(program):
        print(result.inspect())
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
