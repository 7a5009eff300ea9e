import asyncio
import sys

import pytest

from awk import (
    AwkInterpreter, AwkOptions, MemoryFileSystem, StatementRunner, Evaluator,
    awk_exec, awk_exec_files, awk_transform, create_runtime_context, parse,
)
from awk.awk_runtime import DONE, LOADED, source_context


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.output == expected


def assert_error(res, contains=None):
    assert res.status == 'error', f"expected error, got success: {res.output!r}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"error did not contain {contains!r}: {res.error_message!r}"


# --- Basic programs ---

@pytest.mark.asyncio
async def test_print_fields():
    res = await awk_exec("{ print $2, $1 }", "a b\nc d\n")
    assert_ok(res, "b a\nd c\n")


@pytest.mark.asyncio
async def test_sum_column():
    res = await awk_exec("{ s += $1 } END { print s, NR }", "1\n2\n3.5\n")
    assert_ok(res, "6.5 3\n")


@pytest.mark.asyncio
async def test_field_separator_option():
    res = await awk_exec('{ print $2 }', "a,b,c\n", AwkOptions(field_separator=","))
    assert_ok(res, "b\n")


@pytest.mark.asyncio
async def test_ofs_ors_and_record_rebuild():
    res = await awk_exec('BEGIN { OFS = "-"; ORS = "|" } { $1 = $1; print }', "a b c\n")
    assert_ok(res, "a-b-c|")


@pytest.mark.asyncio
async def test_ofmt_applies_to_print_only():
    res = await awk_exec('BEGIN { OFMT = "%.2f"; x = 3.14159; print x; print x "" }', None)
    assert_ok(res, "3.14\n3.14159\n")


@pytest.mark.asyncio
async def test_rs_assigned_in_begin():
    res = await awk_exec('BEGIN { RS = ";" } { print NR ": " $0 }', "a;b;c")
    assert_ok(res, "1: a\n2: b\n3: c\n")


@pytest.mark.asyncio
async def test_paragraph_mode():
    res = await awk_exec('BEGIN { RS = "" } { print NF }', "a b\nc\n\n\nd\n")
    assert_ok(res, "3\n1\n")


@pytest.mark.asyncio
async def test_variables_option_is_set_before_begin():
    res = await awk_exec("BEGIN { print n + 1 }", None, AwkOptions(variables={"n": "41"}))
    assert_ok(res, "42\n")


@pytest.mark.asyncio
async def test_environ_is_empty_unless_given():
    res = await awk_exec('BEGIN { print length(ENVIRON) }', None)
    assert_ok(res, "0\n")
    res = await awk_exec('BEGIN { print ENVIRON["USER"] }', None, AwkOptions(environ={"USER": "ann"}))
    assert_ok(res, "ann\n")


@pytest.mark.asyncio
async def test_dual_comparison():
    src = '{ print ($1 < $2) }'
    res = await awk_exec(src, "10 9\nabc abd\n10 9x\n")
    assert_ok(res, "0\n1\n1\n")


@pytest.mark.asyncio
async def test_increment_results():
    res = await awk_exec("BEGIN { x = 1; print x++, x, ++x, x-- , x }", None)
    assert_ok(res, "1 2 3 3 2\n")


@pytest.mark.asyncio
async def test_uninitialized_values():
    res = await awk_exec('BEGIN { print x + 0, "[" x "]", length(x) }', None)
    assert_ok(res, "0 [] 0\n")


# --- Control flow ---

@pytest.mark.asyncio
async def test_loops_break_continue():
    src = """BEGIN {
        for (i = 1; i <= 10; i++) {
            if (i % 2) continue
            if (i > 6) break
            s = s i
        }
        while (j < 3) j++
        do { k++ } while (k < 0)
        print s, j, k
    }"""
    res = await awk_exec(src, None)
    assert_ok(res, "246 3 1\n")


@pytest.mark.asyncio
async def test_for_in_and_delete():
    src = """BEGIN {
        a["x"] = 1; a["y"] = 2; a["z"] = 3
        for (k in a) { delete a; n++ }
        print n, length(a)
    }"""
    res = await awk_exec(src, None)
    assert_ok(res, "1 0\n")


@pytest.mark.asyncio
async def test_next_skips_remaining_rules():
    src = '/skip/ { next } { print }'
    res = await awk_exec(src, "a\nskip me\nb\n")
    assert_ok(res, "a\nb\n")


@pytest.mark.asyncio
async def test_next_on_last_record_still_runs_end():
    res = await awk_exec("{ next } END { print NR }", "a\nb\n")
    assert_ok(res, "2\n")


@pytest.mark.asyncio
async def test_exit_in_main_runs_end_with_code():
    src = 'NR == 2 { exit 3 } { print } END { print "end" }'
    res = await awk_exec(src, "a\nb\nc\n")
    assert_ok(res, "a\nend\n")
    assert res.exit_code == 3


@pytest.mark.asyncio
async def test_exit_in_begin_skips_main_but_runs_end():
    res = await awk_exec('BEGIN { print "b"; exit } { print "main" } END { print "e" }', "x\n")
    assert_ok(res, "b\ne\n")


@pytest.mark.asyncio
async def test_exit_in_end_stops_further_end_rules():
    res = await awk_exec('END { print 1; exit 4; print 2 } END { print 3 }', "")
    assert_ok(res, "1\n")
    assert res.exit_code == 4


@pytest.mark.asyncio
async def test_exit_without_code_keeps_previous_code():
    res = await awk_exec('{ exit 5 } END { exit }', "x\n")
    assert res.exit_code == 5


# --- Patterns ---

@pytest.mark.asyncio
async def test_range_pattern_inclusive():
    res = await awk_exec("/A/,/B/", "x\nA\ny\nB\nz\n")
    assert_ok(res, "A\ny\nB\n")


@pytest.mark.asyncio
async def test_range_restarts_after_end():
    res = await awk_exec("/A/,/B/", "A\nB\nq\nA\nr\n")
    assert_ok(res, "A\nB\nA\nr\n")


@pytest.mark.asyncio
async def test_range_start_and_end_on_same_record():
    res = await awk_exec("/AB/,/B/", "x\nAB\ny\n")
    assert_ok(res, "AB\n")


@pytest.mark.asyncio
async def test_range_state_is_fresh_per_run():
    src = "/A/,/B/"
    first = await awk_exec(src, "A\nunterminated\n")
    second = await awk_exec(src, "x\ny\n")
    assert_ok(first, "A\nunterminated\n")
    assert_ok(second, "")


@pytest.mark.asyncio
async def test_expression_pattern():
    res = await awk_exec("NR % 2 == 0", "1\n2\n3\n4\n")
    assert_ok(res, "2\n4\n")


# --- Functions ---

@pytest.mark.asyncio
async def test_array_parameter_aliasing():
    src = """
    function add(arr, key) { arr[key] = 1 }
    BEGIN { seen["a"] = 1; add(seen, "b"); for (k in seen) n++; print n }
    """
    res = await awk_exec(src, None)
    assert_ok(res, "2\n")


@pytest.mark.asyncio
async def test_recursive_function():
    src = "function fib(n) { return n < 2 ? n : fib(n - 1) + fib(n - 2) }\nBEGIN { print fib(15) }"
    res = await awk_exec(src, None)
    assert_ok(res, "610\n")


# --- getline ---

@pytest.mark.asyncio
async def test_plain_getline_sequence():
    src = '{ print "rule", $0; r = getline; print "got", r, $0, NR }'
    res = await awk_exec(src, "r1\nr2\nr3\n")
    assert_ok(res, "rule r1\ngot 1 r2 2\nrule r3\ngot 0 r3 3\n")


@pytest.mark.asyncio
async def test_getline_in_begin_reads_main_input():
    res = await awk_exec('BEGIN { getline first; print "first=" first } { print }', "a\nb\n")
    assert_ok(res, "first=a\nb\n")


@pytest.mark.asyncio
async def test_file_getline_does_not_change_nr():
    fs = MemoryFileSystem({"/tmp/f.txt": "one\ntwo\n"})
    src = 'BEGIN { a = getline x < "f.txt"; b = getline y < "f.txt"; c = getline z < "f.txt"; print a, b, c, x, y, NR }'
    res = await awk_exec(src, None, AwkOptions(file_system=fs, cwd="/tmp"))
    assert_ok(res, "1 1 0 one two 0\n")


@pytest.mark.asyncio
async def test_file_getline_without_filesystem():
    res = await awk_exec('BEGIN { print (getline x < "f") }', None)
    assert_ok(res, "-1\n")


# --- Output redirection ---

@pytest.mark.asyncio
async def test_print_redirection():
    src = '{ print $1 > "out.txt"; print "log " NR >> "log.txt" } END { print "done" }'
    res = await awk_exec(src, "a\nb\n")
    assert_ok(res, "done\n")
    assert res.redirects == {"out.txt": "a\nb\n", "log.txt": "log 1\nlog 2\n"}


@pytest.mark.asyncio
async def test_close_reopens_with_truncation():
    src = 'BEGIN { print "x" > "f"; close("f"); print "y" > "f" }'
    res = await awk_exec(src, None)
    assert res.redirects == {"f": "y\n"}


@pytest.mark.asyncio
async def test_printf_redirect_and_output():
    res = await awk_exec('BEGIN { printf "%s=%d\\n", "n", 5; printf "%d", 1 > "g" }', None)
    assert_ok(res, "n=5\n")
    assert res.redirects == {"g": "1"}


@pytest.mark.asyncio
async def test_empty_redirect_target_is_fatal():
    res = await awk_exec('BEGIN { print "x" > "" }', None)
    assert_error(res, "null string")
    assert res.exit_code == 1


# --- Errors ---

@pytest.mark.asyncio
async def test_syntax_error_result():
    res = await awk_exec("BEGIN {\n  print (\n}", "")
    assert_error(res, "syntax error")
    assert res.exit_code == 2
    assert res.error_token["line"] == 3
    assert ">" in res.source_context
    assert "^" in res.source_context
    assert res.format_error().startswith("awk: line 3")


@pytest.mark.asyncio
async def test_division_by_zero_is_fatal_with_partial_output():
    res = await awk_exec('{ print "before"; print 1 / $1 }', "0\n")
    assert_error(res, "awk: fatal: division by zero")
    assert res.exit_code == 1
    assert res.output == "before\n"


@pytest.mark.asyncio
async def test_scalar_as_array_is_fatal():
    res = await awk_exec("BEGIN { x = 1; x[1] = 2 }", None)
    assert_error(res, "awk: fatal:")


@pytest.mark.asyncio
async def test_array_as_scalar_is_fatal():
    res = await awk_exec("BEGIN { a[1] = 1; x = a }", None)
    assert_error(res, "awk: fatal: attempt to use array `a' in a scalar context")
    assert res.exit_code == 1


@pytest.mark.asyncio
async def test_sub_target_subscript_is_evaluated_once():
    src = 'BEGIN { a[1] = "xa"; i = 1; sub(/a/, "b", a[i++]); print i; for (k in a) print k "=" a[k] }'
    res = await awk_exec(src, None)
    assert_ok(res, "2\n1=xb\n")


@pytest.mark.asyncio
async def test_iteration_limit_keeps_partial_output():
    src = 'BEGIN { print "start"; while (1) n++ }'
    res = await awk_exec(src, None, AwkOptions(max_iterations=50))
    assert_error(res, "while loop exceeded maximum iterations (50)")
    assert res.limit_type == "iterations"
    assert res.exit_code == 2
    assert res.output == "start\n"


@pytest.mark.asyncio
async def test_iteration_limit_counts_each_loop_separately():
    src = "BEGIN { for (i = 0; i < 40; i++) n++; for (i = 0; i < 40; i++) n++; print n }"
    res = await awk_exec(src, None, AwkOptions(max_iterations=50))
    assert_ok(res, "80\n")


@pytest.mark.asyncio
async def test_recursion_limit_keeps_partial_output():
    src = "function f(n) { print n; f(n + 1) }\nBEGIN { f(1) }"
    res = await awk_exec(src, None, AwkOptions(max_recursion_depth=3))
    assert_error(res, "recursion depth exceeded maximum (3)")
    assert res.limit_type == "recursion"
    assert res.exit_code == 2
    assert res.output == "1\n2\n3\n"


@pytest.mark.asyncio
async def test_deep_recursion_within_limit_succeeds():
    src = (
        "function f(n) { if (n > 0) { while (1) { if (1) { x = (1 + (2 * (3 + f(n - 1)))); break } } } return 0 }\n"
        "BEGIN { print f(99) }"
    )
    res = await awk_exec(src, None)
    assert_ok(res, "0\n")


@pytest.mark.asyncio
async def test_recursion_limit_is_restored_after_run():
    before = sys.getrecursionlimit()
    res = await awk_exec("function f(n) { return n ? f(n - 1) : 0 }\nBEGIN { print f(50) }", None)
    assert_ok(res, "0\n")
    assert sys.getrecursionlimit() == before


# --- Multiple inputs ---

@pytest.mark.asyncio
async def test_multiple_files_set_filename_and_fnr():
    inputs = [("a.txt", "1\n2\n"), ("b.txt", "3\n")]
    res = await awk_exec_files("{ print FILENAME, FNR, NR }", inputs)
    assert_ok(res, "a.txt 1 1\na.txt 2 2\nb.txt 1 3\n")


@pytest.mark.asyncio
async def test_nextfile():
    inputs = [("a", "1\n2\n3\n"), ("b", "4\n5\n")]
    res = await awk_exec_files("FNR == 2 { nextfile } { print }", inputs)
    assert_ok(res, "1\n4\n")


# --- Driver API ---

@pytest.mark.asyncio
async def test_interpreter_step_api():
    ctx = create_runtime_context()
    interp = AwkInterpreter(ctx, StatementRunner(Evaluator()))
    interp.initialize(parse('BEGIN { print "b" } { n++ } END { print n }'))
    assert interp.state == LOADED
    await interp.execute_begin()
    await interp.execute_line("x")
    await interp.execute_line("y")
    await interp.execute_end()
    assert interp.state == DONE
    assert interp.get_output() == "b\n2\n"
    assert interp.get_exit_code() == 0
    assert interp.get_context() is ctx


@pytest.mark.asyncio
async def test_concurrent_runs_are_independent():
    src = "{ s += $1 } END { print s }"
    results = await asyncio.gather(
        awk_exec(src, "1\n2\n"),
        awk_exec(src, "10\n20\n"),
        awk_exec('BEGIN { while (i < 1000) i++; print i }', None),
    )
    assert [r.output for r in results] == ["3\n", "30\n", "1000\n"]


@pytest.mark.asyncio
async def test_awk_transform():
    async def chunks():
        yield "a 1\nb "
        yield "2\n"

    transform = awk_transform("{ print $2 }")
    lines = [line async for line in transform(chunks())]
    assert lines == ["1", "2"]


def test_source_context_marks_line():
    text = source_context("a\nb\nc\nd", 2, 3)
    assert text.splitlines() == [
        "  1 | a",
        "> 2 | b",
        "    |   ^",
        "  3 | c",
        "  4 | d",
    ]
