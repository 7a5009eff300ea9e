"""
The program driver and the host-facing entry points.

AwkInterpreter runs BEGIN, the per-record rules and END over an already
parsed program. `awk_exec` parses a script, runs it over input text and
returns an AwkResult instead of raising for script errors.
"""
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Callable, Dict, List, Literal, Optional, Sequence, Tuple

from awk.awk_config import AwkOptions
from awk.awk_context import RuntimeContext, create_runtime_context, frames_for_depth, recursion_headroom
from awk.awk_datatypes import (
    AwkFatalError, AwkSyntaxError, ExecutionLimitError,
    Pattern, BeginPattern, EndPattern, RegexPattern, ExprPattern, RangePattern,
    Program, Rule,
)
from awk.awk_fields import set_current_line
from awk.awk_interpreter import Evaluator
from awk.awk_parser import parse
from awk.awk_regex import match_regex
from awk.awk_statements import StatementRunner
from awk.awk_values import is_truthy
from awk.awk_variables import set_variable

LOADED = "loaded"
RUNNING_BEGIN = "begin"
RUNNING_MAIN = "main"
RUNNING_END = "end"
DONE = "done"


class AwkInterpreter:
    """Runs one parsed program against one RuntimeContext."""
    def __init__(self, ctx: RuntimeContext, statement_runner: Optional[StatementRunner] = None):
        self.ctx = ctx
        self.runner = statement_runner if statement_runner is not None else StatementRunner(Evaluator())
        self.evaluator = self.runner.evaluator
        self.evaluator.set_block_executor(self.runner.execute_block)
        self.program: Optional[Program] = None
        self.range_active: List[bool] = []
        self.state = LOADED

    def initialize(self, program: Program):
        self.program = program
        self.ctx.reset_output()
        for func in program.functions:
            self.ctx.functions[func.name] = func
        self.range_active = [False] * len(program.rules)
        self.state = LOADED

    async def _run_action(self, rule: Rule):
        await self.runner.execute_block(self.ctx, rule.action.statements)

    async def execute_begin(self):
        if self.program is None:
            return
        self.state = RUNNING_BEGIN
        for rule in self.program.rules:
            if isinstance(rule.pattern, BeginPattern):
                await self._run_action(rule)
                if self.ctx.should_exit:
                    self.evaluator._dbg("EXIT", "in BEGIN")
                    break

    async def execute_line(self, text: str):
        if self.program is None or self.ctx.should_exit:
            return
        self.state = RUNNING_MAIN
        ctx = self.ctx
        set_current_line(ctx, text)
        ctx.NR += 1
        ctx.FNR += 1
        ctx.should_next = False
        for index, rule in enumerate(self.program.rules):
            if ctx.should_exit or ctx.should_next or ctx.should_next_file:
                break
            if isinstance(rule.pattern, (BeginPattern, EndPattern)):
                continue
            if await self._rule_matches(index, rule):
                self.evaluator._dbg("RULE", index, "matched record", int(ctx.NR))
                await self._run_action(rule)

    async def execute_end(self):
        if self.program is None:
            return
        self.state = RUNNING_END
        ctx = self.ctx
        ctx.should_next = False
        ctx.should_next_file = False
        # END still runs after an exit from BEGIN or a main rule.
        if ctx.should_exit and not ctx.exit_from_end:
            ctx.should_exit = False
        for rule in self.program.rules:
            if ctx.should_exit:
                break
            if isinstance(rule.pattern, EndPattern):
                await self._run_action(rule)
                if ctx.should_exit:
                    ctx.exit_from_end = True
        self.state = DONE

    def get_output(self) -> str:
        return self.ctx.output

    def get_exit_code(self) -> int:
        return self.ctx.exit_code

    def get_context(self) -> RuntimeContext:
        return self.ctx

    async def _rule_matches(self, index: int, rule: Rule) -> bool:
        pattern = rule.pattern
        if pattern is None:
            return True
        if not isinstance(pattern, RangePattern):
            return await self._pattern_matches(pattern)
        if not self.range_active[index]:
            if not await self._pattern_matches(pattern.start):
                return False
            # The start record may also close the range.
            self.range_active[index] = not await self._pattern_matches(pattern.end)
            return True
        if await self._pattern_matches(pattern.end):
            self.range_active[index] = False
        return True

    async def _pattern_matches(self, pattern: Pattern) -> bool:
        match pattern:
            case RegexPattern():
                return match_regex(pattern.pattern, self.ctx.line, self.ctx)
            case ExprPattern():
                return is_truthy(await self.evaluator.eval(pattern.expression, self.ctx))
        return False


# =================================================================
# Host entry points
# =================================================================

@dataclass
class AwkResult:
    """The structured result of running a program."""
    status: Literal['success', 'error']
    output: str = ""
    exit_code: int = 0
    error_message: Optional[str] = None
    error_token: Optional[Dict] = None
    source_context: Optional[str] = None
    limit_type: Optional[str] = None
    # Text written with `print > target`, keyed by target name
    redirects: Dict[str, str] = field(default_factory=dict)

    def format_error(self) -> str:
        """Formats the error message with line, column and source excerpt if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            col_info = f", col {col}" if col is not None else ""
            msg = f"awk: line {line}{col_info}: {msg}"
        if self.source_context:
            msg = f"{msg}\n{self.source_context}"
        return msg


def source_context(source: str, line: int, col: Optional[int], radius: int = 2) -> str:
    lines = source.splitlines()
    if not line or line < 1 or line > len(lines):
        return ""
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    width = len(str(end))
    out = []
    for i in range(start, end + 1):
        prefix = ">" if i == line else " "
        ln = str(i).rjust(width)
        out.append(f"{prefix} {ln} | {lines[i - 1]}")
        if i == line and col is not None:
            caret = " " * max(col - 1, 0)
            out.append(f"  {' ' * width} | {caret}^")
    return "\n".join(out)


def _apply_options(ctx: RuntimeContext, options: AwkOptions):
    if options.field_separator is not None:
        ctx.FS = options.field_separator
    if options.ofs is not None:
        ctx.OFS = options.ofs
    if options.ors is not None:
        ctx.ORS = options.ors
    if options.rs is not None:
        ctx.RS = options.rs
    for name, value in options.variables.items():
        set_variable(ctx, name, value)


async def _drive(interp: AwkInterpreter, ctx: RuntimeContext, inputs: Sequence[Tuple[str, str]]):
    # The first input is attached before BEGIN so getline there can read it.
    if inputs:
        ctx.set_input(inputs[0][1])
    await interp.execute_begin()
    for position, (filename, text) in enumerate(inputs):
        if ctx.should_exit:
            break
        ctx.FILENAME = filename
        if position > 0:
            ctx.FNR = 0.0
            ctx.set_input(text)
        lines = ctx.ensure_records() or []
        while not ctx.should_exit:
            index = ctx.line_index + 1
            if index >= len(lines):
                break
            ctx.line_index = index
            await interp.execute_line(lines[index])
            if ctx.should_next_file:
                ctx.should_next_file = False
                break
    await interp.execute_end()


async def awk_exec_files(
    script: str,
    inputs: Sequence[Tuple[str, str]],
    options: Optional[AwkOptions] = None,
) -> AwkResult:
    """Run script over several named inputs, as the command line does with files.

    FILENAME is set per input and FNR restarts at each one; `nextfile`
    skips the rest of the current input.
    """
    options = options if options is not None else AwkOptions()
    try:
        program = parse(script)
    except AwkSyntaxError as e:
        token = {'line': e.line, 'col': e.col} if e.line is not None else None
        return AwkResult(
            status='error',
            exit_code=2,
            error_message=e.message,
            error_token=token,
            source_context=source_context(script, e.line, e.col) if e.line is not None else None,
        )

    ctx = create_runtime_context(
        max_iterations=options.max_iterations,
        max_recursion_depth=options.max_recursion_depth,
        fs=options.file_system,
        cwd=options.cwd,
        environ=options.environ,
    )
    interp = AwkInterpreter(ctx)
    try:
        _apply_options(ctx, options)
        interp.initialize(program)
        with recursion_headroom(frames_for_depth(ctx.max_recursion_depth)):
            await _drive(interp, ctx, inputs)
    except ExecutionLimitError as e:
        interp.evaluator._dbg("LIMIT", e.limit_type, str(e))
        return AwkResult(
            status='error',
            output=e.partial_output,
            exit_code=2,
            error_message=str(e),
            limit_type=e.limit_type,
            redirects=dict(ctx.redirects),
        )
    except RecursionError:
        # The Python stack ran out before max_recursion_depth was reached.
        return AwkResult(
            status='error',
            output=ctx.output,
            exit_code=2,
            error_message="awk: recursion depth exceeded (interpreter stack exhausted)",
            limit_type="recursion",
            redirects=dict(ctx.redirects),
        )
    except AwkFatalError as e:
        return AwkResult(
            status='error',
            output=ctx.output,
            exit_code=1,
            error_message=str(e),
            redirects=dict(ctx.redirects),
        )
    return AwkResult(
        status='success',
        output=interp.get_output(),
        exit_code=interp.get_exit_code(),
        redirects=dict(ctx.redirects),
    )


async def awk_exec(script: str, input: Optional[str] = "", options: Optional[AwkOptions] = None) -> AwkResult:
    """Run script over input text. input=None means there is no main input at all."""
    inputs = [] if input is None else [("", input)]
    return await awk_exec_files(script, inputs, options)


def awk_transform(
    script: str,
    options: Optional[AwkOptions] = None,
) -> Callable[[AsyncIterable[str]], AsyncIterator[str]]:
    """Wrap script as a stream transform: chunks in, output lines out.

    The whole stream is collected before the program runs. Errors end the
    stream after whatever output was produced.
    """
    async def transform(stream: AsyncIterable[str]) -> AsyncIterator[str]:
        chunks = []
        async for chunk in stream:
            chunks.append(chunk)
        result = await awk_exec(script, "".join(chunks), options)
        lines = result.output.split("\n")
        # Only the empty piece after a final newline is dropped.
        if lines and lines[-1] == "":
            lines.pop()
        for line in lines:
            yield line

    return transform
