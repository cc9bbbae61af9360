from __future__ import annotations
import json
import sys
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

import numpy as np

from lexer import Lexer, MonkeyError
from parser import (
    BlockStatement,
    BooleanLiteral,
    CallExpression,
    ExpressionStatement,
    FunctionLiteral,
    Identifier,
    IfExpression,
    InfixExpression,
    IntegerLiteral,
    LetStatement,
    MonkeyParseError,
    Node,
    Parser,
    PrefixExpression,
    Program,
    ReturnStatement,
    Statement,
    StringLiteral,
)


INTEGER_OBJ = "INTEGER"
BOOLEAN_OBJ = "BOOLEAN"
NULL_OBJ = "NULL"
STRING_OBJ = "STRING"
ERROR_OBJ = "ERROR"
RETURN_VALUE_OBJ = "RETURN_VALUE"
FUNCTION_OBJ = "FUNCTION"

# Number of step records kept for tracebacks.
DEFAULT_HISTORY = 1000
# Longest value rendering kept in an environment snapshot.
SNAPSHOT_WIDTH = 80
# Python frame budget while evaluating; one Monkey call costs about a dozen.
DEFAULT_RECURSION_LIMIT = 20000


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int
    statement: Optional[str] = None


class Object:
    """A runtime value. Every kind has a type tag and a printable form."""

    type = "OBJECT"

    def inspect(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Integer(Object):
    value: int
    type = INTEGER_OBJ

    def inspect(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Boolean(Object):
    value: bool
    type = BOOLEAN_OBJ

    def inspect(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Null(Object):
    type = NULL_OBJ

    def inspect(self) -> str:
        return "null"


@dataclass(frozen=True)
class String(Object):
    value: str
    type = STRING_OBJ

    def inspect(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReturnValue(Object):
    value: Object
    type = RETURN_VALUE_OBJ

    def inspect(self) -> str:
        return self.value.inspect()


@dataclass
class TracebackFrame:
    name: str
    location: Optional[SourceLocation]
    statement: Optional[str]
    step_entry: Optional["StepEntry"]


@dataclass
class Error(Object):
    """A runtime error. It is an ordinary value and never raised."""

    message: str
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)
    step_index: Optional[int] = field(default=None, compare=False, repr=False)
    frames: List[TracebackFrame] = field(default_factory=list, compare=False, repr=False)
    type = ERROR_OBJ

    def inspect(self) -> str:
        return "ERROR: " + self.message


TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()
class Environment:
    """One lexical scope.

    Lookups fall through to the enclosing scope; bindings only ever land in
    ``store``. The enclosing link is fixed when the scope is created.
    Function values keep a reference to the scope they were defined in, so a
    scope lives as long as any closure over it.
    """

    def __init__(self, outer: Optional["Environment"] = None) -> None:
        self._outer = outer
        self.store: Dict[str, Object] = {}

    @property
    def outer(self) -> Optional["Environment"]:
        return self._outer

    @classmethod
    def enclosed(cls, outer: "Environment") -> "Environment":
        return cls(outer)

    def get(self, name: str) -> Optional[Object]:
        env: Optional[Environment] = self
        while env is not None:
            found = env.store.get(name)
            if found is not None:
                return found
            env = env._outer
        return None

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def set(self, name: str, value: Object) -> Object:
        self.store[name] = value
        return value

    def snapshot(self, width: int = SNAPSHOT_WIDTH) -> Dict[str, str]:
        """Local bindings as ``TYPE:value``; long values are cut to ``width``."""
        rendered: Dict[str, str] = {}
        for name, value in self.store.items():
            text = value.inspect()
            if len(text) > width:
                text = text[: width - 3] + "..."
            rendered[name] = f"{value.type}:{text}"
        return rendered


@dataclass(eq=False)
class Function(Object):
    parameters: Tuple[Identifier, ...]
    body: BlockStatement
    closure: Environment = field(repr=False)
    type = FUNCTION_OBJ

    def inspect(self) -> str:
        params = ", ".join(p.name for p in self.parameters)
        return f"fn({params}) {self.body}"


class MonkeyRuntimeError(MonkeyError):
    """Raised for interpreter faults, never for errors in the program itself."""

    def __init__(self, message: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.step_index: Optional[int] = None


@dataclass
class Frame:
    name: str
    env: Environment
    frame_id: str
    call_location: Optional[SourceLocation]


@dataclass
class StepEntry:
    """One evaluated statement or function call."""

    step_index: int
    frame_id: Optional[str]
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]
    step_record: Dict[str, Any]

    @property
    def rule(self) -> str:
        return self.step_record.get("rule", "?")


class StepLog:
    """Bounded record of evaluation steps, used to build tracebacks.

    Older steps fall off the front once ``history`` is reached. The most
    recent step of every live frame is remembered separately so that a
    traceback can point into each caller even after its steps have aged out.
    """

    def __init__(self, history: int = DEFAULT_HISTORY) -> None:
        self.entries: Deque[StepEntry] = deque(maxlen=history)
        self.step_count = 0
        self.frame_last_entry: Dict[str, StepEntry] = {}

    @property
    def last_step_index(self) -> Optional[int]:
        if not self.entries:
            return None
        return self.entries[-1].step_index

    def record(
        self,
        *,
        frame: Optional[Frame],
        location: Optional[SourceLocation],
        statement: Optional[str],
        step_record: Dict[str, Any],
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StepEntry:
        entry = StepEntry(
            step_index=self.step_count,
            frame_id=frame.frame_id if frame else None,
            source_location=location,
            statement=statement,
            env_snapshot=env_snapshot,
            step_record=step_record,
        )
        self.step_count += 1
        self.entries.append(entry)
        if frame:
            self.frame_last_entry[frame.frame_id] = entry
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StepEntry]:
        return self.frame_last_entry.get(frame_id)

    def forget_frame(self, frame_id: str) -> None:
        self.frame_last_entry.pop(frame_id, None)


def native_bool(value: bool) -> Boolean:
    return TRUE if value else FALSE


def is_truthy(value: Object) -> bool:
    return value is not FALSE and value is not NULL


def _unwinds(value: Object) -> bool:
    # Errors and return signals abort whatever is being evaluated.
    return isinstance(value, (Error, ReturnValue))


def _int64_arithmetic(operator: str, left: int, right: int) -> int:
    """Signed 64-bit arithmetic: wraps on overflow, division truncates."""
    a = np.int64(left)
    b = np.int64(right)
    with np.errstate(over="ignore", divide="ignore"):
        if operator == "+":
            result = a + b
        elif operator == "-":
            result = a - b
        elif operator == "*":
            result = a * b
        elif right == -1:
            result = np.negative(a)
        else:
            result = a // b
            if a % b != 0 and (a < 0) != (b < 0):
                result = result + np.int64(1)
    return int(result)


def _int64_negate(value: int) -> int:
    with np.errstate(over="ignore"):
        return int(np.negative(np.int64(value)))


class Interpreter:
    def __init__(
        self,
        *,
        filename: str = "<string>",
        verbose: bool = False,
        history: int = DEFAULT_HISTORY,
        recursion_limit: int = DEFAULT_RECURSION_LIMIT,
    ) -> None:
        self.filename = filename
        self.verbose = verbose
        self.recursion_limit = recursion_limit
        self.logger = StepLog(history=history)
        self.call_stack: List[Frame] = []
        self.frame_counter = 0

    def parse(self, source: str) -> Program:
        parser = Parser(Lexer(source, self.filename))
        program = parser.parse_program()
        if parser.diagnostics:
            raise MonkeyParseError(parser.diagnostics)
        return program

    def run(self, source: str, env: Optional[Environment] = None) -> Object:
        program = self.parse(source)
        return self.execute(program, env if env is not None else Environment())

    def execute(self, program: Program, env: Environment) -> Object:
        """Evaluates a whole program under a fresh top-level frame.

        The host recursion limit is raised to ``recursion_limit`` for the
        duration of the call, so recursion depth is bounded by that budget
        rather than by Python's default. Host-level faults (stack exhaustion,
        interpreter bugs) surface as MonkeyRuntimeError; errors in the
        program come back as Error values.
        """
        global_frame = self._new_frame("<top-level>", env, None)
        self.call_stack = [global_frame]
        previous_limit = sys.getrecursionlimit()
        if self.recursion_limit > previous_limit:
            sys.setrecursionlimit(self.recursion_limit)
        try:
            result = self.evaluate(program, env)
        except MonkeyRuntimeError as error:
            error.step_index = self.logger.last_step_index
            raise
        except RecursionError:
            wrapped = MonkeyRuntimeError("maximum recursion depth exceeded", location=self._last_location())
            wrapped.step_index = self.logger.last_step_index
            raise wrapped from None
        except Exception as exc:
            # Convert unexpected Python-level exceptions so callers (REPL/CLI)
            # can report them like any other interpreter fault.
            wrapped = MonkeyRuntimeError(f"Internal interpreter error: {exc}", location=self._last_location())
            wrapped.step_index = self.logger.last_step_index
            raise wrapped from exc
        finally:
            sys.setrecursionlimit(previous_limit)
        self.call_stack.pop()
        self.logger.forget_frame(global_frame.frame_id)
        return result

    def evaluate(self, node: Node, env: Environment) -> Object:
        if isinstance(node, Program):
            return self._evaluate_program(node, env)
        if isinstance(node, BlockStatement):
            return self._evaluate_statements(node.statements, env)
        if isinstance(node, ExpressionStatement):
            return self.evaluate(node.expression, env)
        if isinstance(node, LetStatement):
            value = self.evaluate(node.value, env)
            if _unwinds(value):
                return value
            env.set(node.name.name, value)
            return NULL
        if isinstance(node, ReturnStatement):
            value = self.evaluate(node.value, env)
            if _unwinds(value):
                return value
            return ReturnValue(value)
        if isinstance(node, IntegerLiteral):
            return Integer(node.value)
        if isinstance(node, BooleanLiteral):
            return native_bool(node.value)
        if isinstance(node, StringLiteral):
            return String(node.value)
        if isinstance(node, PrefixExpression):
            operand = self.evaluate(node.operand, env)
            if _unwinds(operand):
                return operand
            return self._evaluate_prefix(node, operand)
        if isinstance(node, InfixExpression):
            left = self.evaluate(node.left, env)
            if _unwinds(left):
                return left
            right = self.evaluate(node.right, env)
            if _unwinds(right):
                return right
            return self._evaluate_infix(node, left, right)
        if isinstance(node, IfExpression):
            return self._evaluate_if(node, env)
        if isinstance(node, Identifier):
            found = env.get(node.name)
            if found is None:
                return self._error(node, f"identifier not found: {node.name}")
            return found
        if isinstance(node, FunctionLiteral):
            return Function(parameters=node.parameters, body=node.body, closure=env)
        if isinstance(node, CallExpression):
            return self._evaluate_call(node, env)
        raise MonkeyRuntimeError(f"Unsupported node {type(node).__name__}", location=self._location(node))

    def _evaluate_program(self, program: Program, env: Environment) -> Object:
        result = self._evaluate_statements(program.statements, env)
        if isinstance(result, ReturnValue):
            return result.value
        return result

    def _evaluate_statements(self, statements: Sequence[Statement], env: Environment) -> Object:
        result: Object = NULL
        log_step = self._log_step
        evaluate = self.evaluate
        for statement in statements:
            log_step(rule="STATEMENT", node=statement)
            result = evaluate(statement, env)
            if _unwinds(result):
                return result
        return result

    def _evaluate_prefix(self, node: PrefixExpression, operand: Object) -> Object:
        operator = node.operator
        if operator == "!":
            return native_bool(not is_truthy(operand))
        if operator == "-" and isinstance(operand, Integer):
            return Integer(_int64_negate(operand.value))
        return self._error(node, f"unknown operator: {operator}{operand.type}")

    def _evaluate_infix(self, node: InfixExpression, left: Object, right: Object) -> Object:
        operator = node.operator
        if isinstance(left, Integer) and isinstance(right, Integer):
            return self._evaluate_integer_infix(node, left.value, right.value)
        if isinstance(left, String) and isinstance(right, String):
            if operator == "+":
                return String(left.value + right.value)
            if operator == "==":
                return native_bool(left.value == right.value)
            if operator == "!=":
                return native_bool(left.value != right.value)
        elif left.type != right.type:
            return self._error(node, f"type mismatch: {left.type} {operator} {right.type}")
        elif operator == "==":
            return native_bool(left is right)
        elif operator == "!=":
            return native_bool(left is not right)
        return self._error(node, f"unknown operator: {left.type} {operator} {right.type}")

    def _evaluate_integer_infix(self, node: InfixExpression, left: int, right: int) -> Object:
        operator = node.operator
        if operator in ("+", "-", "*"):
            return Integer(_int64_arithmetic(operator, left, right))
        if operator == "/":
            if right == 0:
                return self._error(node, "division by zero")
            return Integer(_int64_arithmetic(operator, left, right))
        if operator == "<":
            return native_bool(left < right)
        if operator == ">":
            return native_bool(left > right)
        if operator == "==":
            return native_bool(left == right)
        if operator == "!=":
            return native_bool(left != right)
        return self._error(node, f"unknown operator: {INTEGER_OBJ} {operator} {INTEGER_OBJ}")

    def _evaluate_if(self, node: IfExpression, env: Environment) -> Object:
        condition = self.evaluate(node.condition, env)
        if _unwinds(condition):
            return condition
        if is_truthy(condition):
            return self.evaluate(node.consequence, env)
        if node.alternative is not None:
            return self.evaluate(node.alternative, env)
        return NULL

    def _evaluate_call(self, node: CallExpression, env: Environment) -> Object:
        function = self.evaluate(node.function, env)
        if _unwinds(function):
            return function
        arguments: List[Object] = []
        for argument in node.arguments:
            value = self.evaluate(argument, env)
            if _unwinds(value):
                return value
            arguments.append(value)
        return self._apply_function(node, function, arguments)

    def _apply_function(self, node: CallExpression, function: Object, arguments: List[Object]) -> Object:
        if not isinstance(function, Function):
            return self._error(node, f"not a function: {function.type}")
        if len(arguments) != len(function.parameters):
            return self._error(
                node,
                f"wrong number of arguments: want={len(function.parameters)}, got={len(arguments)}",
            )

        # The call scope encloses the defining scope, not the caller's.
        call_env = Environment.enclosed(function.closure)
        for parameter, argument in zip(function.parameters, arguments):
            call_env.set(parameter.name, argument)

        name = node.function.name if isinstance(node.function, Identifier) else "<anonymous>"
        self._log_step(
            rule="CALL",
            node=node,
            extra={"function": name, "arguments": [a.inspect() for a in arguments]},
        )
        frame = self._new_frame(name, call_env, self._location(node))
        self.call_stack.append(frame)
        try:
            result = self.evaluate(function.body, call_env)
        finally:
            self.call_stack.pop()
            self.logger.forget_frame(frame.frame_id)
        if isinstance(result, ReturnValue):
            return result.value
        return result

    def _error(self, node: Node, message: str) -> Error:
        location = self._location(node, with_statement=True)
        return Error(
            message=message,
            location=location,
            step_index=self.logger.last_step_index,
            frames=self._capture_frames(location),
        )

    def _capture_frames(self, location: SourceLocation) -> List[TracebackFrame]:
        frames: List[TracebackFrame] = []
        last = len(self.call_stack) - 1
        for i, frame in enumerate(self.call_stack):
            entry = self.logger.last_entry_for_frame(frame.frame_id)
            frame_location = entry.source_location if entry else frame.call_location
            statement = entry.statement if entry else None
            if i == last:
                frame_location = location
                statement = location.statement
            frames.append(TracebackFrame(name=frame.name, location=frame_location, statement=statement, step_entry=entry))
        return frames

    def _location(self, node: Node, with_statement: bool = False) -> SourceLocation:
        token = node.token
        statement = str(node) if with_statement else None
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=statement)

    def _last_location(self) -> Optional[SourceLocation]:
        if self.logger.entries:
            return self.logger.entries[-1].source_location
        return None

    def _new_frame(self, name: str, env: Environment, call_location: Optional[SourceLocation]) -> Frame:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Frame(name=name, env=env, frame_id=frame_id, call_location=call_location)

    def _log_step(self, *, rule: str, node: Node, extra: Optional[Dict[str, Any]] = None) -> None:
        frame = self.call_stack[-1] if self.call_stack else None
        verbose = self.verbose
        env_snapshot = frame.env.snapshot() if (verbose and frame) else None
        location = self._location(node, with_statement=verbose)
        step_record: Dict[str, Any] = {"rule": rule, "node": type(node).__name__}
        if extra:
            step_record.update(extra)
        self.logger.record(
            frame=frame,
            location=location,
            statement=location.statement,
            env_snapshot=env_snapshot,
            step_record=step_record,
        )


class TracebackFormatter:
    """Renders the frames captured in an Error, innermost call last."""

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def format_text(self, error: Error, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in error.frames:
            lines.extend(self._frame_lines(frame, verbose))
        lines.append(f"RuntimeError: {error.message}")
        return "\n".join(lines)

    def _frame_lines(self, frame: TracebackFrame, verbose: bool) -> List[str]:
        if frame.location is None:
            lines = [f"  <unknown location> in {frame.name}"]
        else:
            lines = [f"  File \"{frame.location.file}\", line {frame.location.line}, in {frame.name}"]
            if frame.statement:
                lines.append(f"    {frame.statement}")
        step = frame.step_entry
        if step is None:
            return lines
        lines.append(f"    Step {step.step_index}: {step.rule} {step.step_record['node']}")
        if verbose and step.env_snapshot is not None:
            bindings = ", ".join(f"{name}={value}" for name, value in step.env_snapshot.items())
            lines.append(f"    Env snapshot: {bindings}")
        return lines

    def to_json(self, error: Error) -> str:
        frames: List[Dict[str, Any]] = []
        for index, frame in enumerate(error.frames):
            entry: Dict[str, Any] = {"frame_index": index, "name": frame.name}
            if frame.location:
                entry["source_location"] = {
                    "file": frame.location.file,
                    "line": frame.location.line,
                    "column": frame.location.column,
                    "statement": frame.statement,
                }
            step = frame.step_entry
            if step:
                entry["step_index"] = step.step_index
                entry["step_record"] = step.step_record
                if step.env_snapshot is not None:
                    entry["env_snapshot"] = step.env_snapshot
            frames.append(entry)
        data = {
            "error": {
                "type": ERROR_OBJ,
                "message": error.message,
                "failing_step_index": error.step_index,
            },
            "traceback": frames,
        }
        return json.dumps(data, indent=2)
