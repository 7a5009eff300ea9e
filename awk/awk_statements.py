"""
Statement execution for rule actions and function bodies.

The runner honours the control-flow flags on the context: a block stops as
soon as next/nextfile/exit/return/break/continue has been requested, and
each loop enforces its own iteration budget.
"""
import asyncio
from typing import List

from awk.awk_context import RuntimeContext
from awk.awk_datatypes import (
    ExecutionLimitError, AwkFatalError,
    Stmt, Block, ExprStmt, Print, Printf, If, While, DoWhile, For, ForIn,
    Break, Continue, Next, NextFile, Exit, Return, Delete,
)
from awk.awk_format import format_printf
from awk.awk_values import Value, is_truthy, to_awk_string, to_integer
from awk.awk_variables import get_array, set_variable, delete_array, delete_array_element

# Loops hand control back to the event loop this often.
YIELD_EVERY = 100


class IterationCounter:
    """Counts iterations of one loop and trips the iteration limit."""
    def __init__(self, ctx: RuntimeContext, kind: str):
        self.ctx = ctx
        self.kind = kind
        self.count = 0

    async def tick(self):
        self.count += 1
        if self.count > self.ctx.max_iterations:
            raise ExecutionLimitError(
                f"awk: {self.kind} loop exceeded maximum iterations ({self.ctx.max_iterations})",
                "iterations",
                self.ctx.output,
            )
        if self.count % YIELD_EVERY == 0:
            await asyncio.sleep(0)


class StatementRunner:
    """Executes statement nodes using an Evaluator for every expression."""
    def __init__(self, evaluator):
        self.evaluator = evaluator

    async def execute_block(self, ctx: RuntimeContext, statements: List[Stmt]):
        for stmt in statements:
            if ctx.block_interrupted():
                break
            await self.execute(ctx, stmt)

    async def _body(self, ctx: RuntimeContext, body: Stmt) -> bool:
        """Run one loop iteration. Returns False when the loop has to stop."""
        await self.execute(ctx, body)
        if ctx.should_break:
            ctx.should_break = False
            return False
        ctx.should_continue = False
        return not (ctx.should_exit or ctx.should_next or ctx.should_next_file or ctx.has_return)

    def _render(self, ctx: RuntimeContext, value: Value) -> str:
        return to_awk_string(value, ctx.OFMT)

    async def _write(self, ctx: RuntimeContext, text: str, redirect):
        if redirect is None:
            ctx.emit(text)
            return
        target = to_awk_string(await self.evaluator.eval(redirect.target, ctx), ctx.CONVFMT)
        if target == "":
            raise AwkFatalError("expression for `>' redirection has null string value")
        ctx.emit_redirect(target, text, append=redirect.mode == ">>")

    async def execute(self, ctx: RuntimeContext, stmt: Stmt):
        ev = self.evaluator
        match stmt:
            case Block():
                await self.execute_block(ctx, stmt.statements)

            case ExprStmt():
                await ev.eval(stmt.expr, ctx)

            case Print():
                if stmt.args:
                    parts = [self._render(ctx, await ev.eval(arg, ctx)) for arg in stmt.args]
                else:
                    parts = [ctx.line]
                await self._write(ctx, ctx.OFS.join(parts) + ctx.ORS, stmt.redirect)

            case Printf():
                if not stmt.args:
                    return
                values = [await ev.eval(arg, ctx) for arg in stmt.args]
                text = format_printf(to_awk_string(values[0], ctx.CONVFMT), values[1:], ctx.CONVFMT)
                await self._write(ctx, text, stmt.redirect)

            case If():
                if is_truthy(await ev.eval(stmt.condition, ctx)):
                    await self.execute(ctx, stmt.consequent)
                elif stmt.alternate is not None:
                    await self.execute(ctx, stmt.alternate)

            case While():
                counter = IterationCounter(ctx, "while")
                while is_truthy(await ev.eval(stmt.condition, ctx)):
                    await counter.tick()
                    if not await self._body(ctx, stmt.body):
                        break

            case DoWhile():
                counter = IterationCounter(ctx, "do-while")
                while True:
                    await counter.tick()
                    if not await self._body(ctx, stmt.body):
                        break
                    if not is_truthy(await ev.eval(stmt.condition, ctx)):
                        break

            case For():
                counter = IterationCounter(ctx, "for")
                if stmt.init is not None:
                    await ev.eval(stmt.init, ctx)
                while stmt.condition is None or is_truthy(await ev.eval(stmt.condition, ctx)):
                    await counter.tick()
                    if not await self._body(ctx, stmt.body):
                        break
                    if stmt.update is not None:
                        await ev.eval(stmt.update, ctx)

            case ForIn():
                counter = IterationCounter(ctx, "for-in")
                arr = get_array(ctx, stmt.array)
                for key in list(arr.keys()):
                    # Elements deleted by an earlier iteration are skipped.
                    if key not in arr:
                        continue
                    await counter.tick()
                    set_variable(ctx, stmt.variable, key)
                    if not await self._body(ctx, stmt.body):
                        break

            case Break():
                ctx.should_break = True

            case Continue():
                ctx.should_continue = True

            case Next():
                ctx.should_next = True

            case NextFile():
                ctx.should_next_file = True

            case Exit():
                if stmt.code is not None:
                    ctx.exit_code = to_integer(await ev.eval(stmt.code, ctx))
                ev._dbg("EXIT", "code", ctx.exit_code)
                ctx.should_exit = True

            case Return():
                value = await ev.eval(stmt.value, ctx) if stmt.value is not None else ""
                ctx.return_value = value
                ctx.has_return = True

            case Delete():
                if stmt.key is None:
                    delete_array(ctx, stmt.array)
                else:
                    delete_array_element(ctx, stmt.array, await ev.eval_key(stmt.key, ctx))

            case _:
                raise TypeError(f"Unknown statement type: {type(stmt).__name__}")
