import re

import pytest

from awk import awk_exec
from awk.awk_builtins import expand_replacement, substitute, substr_clamped


async def begin(body: str) -> str:
    res = await awk_exec("BEGIN { " + body + " }")
    assert res.status == 'success', res.error_message
    return res.output


def test_expand_replacement():
    assert expand_replacement("[&]", "ab") == "[ab]"
    assert expand_replacement("\\&", "ab") == "&"
    assert expand_replacement("\\\\&", "ab") == "\\ab"


def test_substitute_first_and_global():
    regex = re.compile("o")
    assert substitute(regex, "0", "foo boo", False) == ("f0o boo", 1)
    assert substitute(regex, "0", "foo boo", True) == ("f00 b00", 4)


def test_substitute_empty_matches():
    assert substitute(re.compile("x*"), "-", "abc", True) == ("-a-b-c-", 4)
    assert substitute(re.compile("b*"), "-", "abc", True) == ("-a-c-", 3)


@pytest.mark.parametrize("start,length,expected", [
    (2, None, "ello"),
    (0, 3, "he"),
    (-1, 3, "h"),
    (2, 100, "ello"),
    (1.5, 2, "el"),
    (10, 2, ""),
    (float("nan"), 2, ""),
])
def test_substr_clamped(start, length, expected):
    assert substr_clamped("hello", start, length) == expected


@pytest.mark.asyncio
async def test_length_forms():
    res = await awk_exec('{ print length, length($2), length() }', "ab cde\n")
    assert res.output == "6 3 6\n"
    assert await begin('a[1]; a[2]; print length(a)') == "2\n"
    assert await begin("print length(12345)") == "5\n"


@pytest.mark.asyncio
async def test_index_and_case():
    assert await begin('print index("foobar", "bar"), index("x", "y")') == "4 0\n"
    assert await begin('print toupper("abc1"), tolower("XyZ")') == "ABC1 xyz\n"


@pytest.mark.asyncio
async def test_split():
    out = await begin('n = split("a:b:c", parts, ":"); print n, parts[1], parts[3]')
    assert out == "3 a c\n"
    out = await begin('n = split("a1b22c", p, /[0-9]+/); print n, p[2]')
    assert out == "3 b\n"
    out = await begin('n = split("  x  y ", p); print n, p[1] p[2]')
    assert out == "2 xy\n"
    assert await begin('n = split("", p); print n, length(p)') == "0 0\n"


@pytest.mark.asyncio
async def test_split_clears_array():
    out = await begin('p["old"] = 1; split("a b", p); print ("old" in p), length(p)')
    assert out == "0 2\n"


@pytest.mark.asyncio
async def test_sub_and_gsub():
    res = await awk_exec('{ n = gsub(/o/, "0"); print n, $0 }', "foo boo\n")
    assert res.output == "4 f00 b00\n"
    out = await begin('s = "aaa"; n = sub(/a/, "[&]", s); print n, s')
    assert out == "1 [a]aa\n"
    out = await begin('s = "a.b.c"; gsub(".", "-", s); print s')
    assert out == "-----\n"
    out = await begin('s = "a.b.c"; gsub(/\\./, "-", s); print s')
    assert out == "a-b-c\n"


@pytest.mark.asyncio
async def test_sub_on_field_rebuilds_record():
    res = await awk_exec('{ sub(/b/, "X", $2); print; print NF }', "a b c\n")
    assert res.output == "a X c\n3\n"


@pytest.mark.asyncio
async def test_gsub_no_match_leaves_target():
    out = await begin('s = "abc"; n = gsub(/z/, "y", s); print n, s')
    assert out == "0 abc\n"


@pytest.mark.asyncio
async def test_match_sets_rstart_rlength():
    out = await begin('print match("foobar", /o+/), RSTART, RLENGTH')
    assert out == "2 2 2\n"
    out = await begin('print match("foobar", "z"), RSTART, RLENGTH')
    assert out == "0 0 -1\n"


@pytest.mark.asyncio
async def test_match_group_array():
    out = await begin('match("key=val", /([a-z]+)=([a-z]+)/, m); print m[0], m[1], m[2]')
    assert out == "key=val key val\n"


@pytest.mark.asyncio
async def test_sprintf():
    assert await begin('print sprintf("%05.1f|%-3s|%x", 3.14159, "a", 255)') == "003.1|a  |ff\n"


@pytest.mark.asyncio
async def test_numeric_functions():
    out = await begin("print int(3.9), int(-3.9), sqrt(16), exp(0), log(1), (atan2(0, -1) > 3)")
    assert out == "3 -3 4 1 0 1\n"


@pytest.mark.asyncio
async def test_math_domain_errors_do_not_raise():
    out = await begin("print sqrt(-1), log(0), exp(10000)")
    assert out == "nan -inf inf\n"


@pytest.mark.asyncio
async def test_srand_is_reproducible():
    out = await begin("srand(7); a = rand(); srand(7); b = rand(); print (a == b), (a >= 0 && a < 1)")
    assert out == "1 1\n"
    assert await begin("print srand(5), srand(9)") == "0 5\n"


@pytest.mark.asyncio
async def test_fflush_returns_zero():
    assert await begin("print fflush()") == "0\n"
