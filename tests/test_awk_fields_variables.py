import pytest

from awk.awk_context import create_runtime_context
from awk.awk_datatypes import AwkFatalError
from awk.awk_fields import (
    get_field, get_nf, set_current_line, set_field, set_nf, split_records, split_with_separator,
)
from awk.awk_variables import (
    delete_array, delete_array_element, get_array, get_array_element, get_variable,
    has_array_element, set_array_element, set_variable,
)


@pytest.fixture
def ctx():
    return create_runtime_context()


# --- Field splitting ---

def test_default_separator_trims_and_collapses_blanks():
    assert split_with_separator("  a \t b\n c  ", " ") == ["a", "b", "c"]
    assert split_with_separator("   ", " ") == []


def test_single_character_separator_is_literal():
    assert split_with_separator("a.b..c", ".") == ["a", "b", "", "c"]
    assert split_with_separator("a|b", "|") == ["a", "b"]


def test_empty_separator_splits_characters():
    assert split_with_separator("abc", "") == ["a", "b", "c"]


def test_regex_separator(ctx):
    assert split_with_separator("a1b22c", "[0-9]+", ctx) == ["a", "b", "c"]


def test_empty_text_has_no_fields():
    assert split_with_separator("", ",") == []


def test_split_records_drops_one_trailing_empty():
    assert split_records("a\nb\n", "\n") == ["a", "b"]
    assert split_records("a\n\nb\n\n", "\n") == ["a", "", "b", ""]
    assert split_records("", "\n") == []


def test_split_records_paragraph_mode():
    assert split_records("\n\na\nb\n\n\nc\n", "") == ["a\nb", "c"]


def test_split_records_multi_char_rs(ctx):
    assert split_records("a;;b;;", ";;", ctx) == ["a", "b"]


# --- Field store ---

def test_get_field(ctx):
    set_current_line(ctx, "one two three")
    assert get_field(ctx, 0) == "one two three"
    assert get_field(ctx, 2) == "two"
    assert get_field(ctx, 7) == ""
    assert get_nf(ctx) == 3.0


def test_set_field_rebuilds_record_with_ofs(ctx):
    set_current_line(ctx, "a b c")
    ctx.OFS = "-"
    set_field(ctx, 2, "X")
    assert ctx.line == "a-X-c"


def test_set_field_beyond_nf_pads(ctx):
    set_current_line(ctx, "a b")
    set_field(ctx, 5, 9.0)
    assert ctx.fields == ["a", "b", "", "", "9"]
    assert ctx.line == "a b   9"


def test_set_field_zero_resplits(ctx):
    set_current_line(ctx, "a b")
    set_field(ctx, 0, "x y z")
    assert get_nf(ctx) == 3.0
    assert get_field(ctx, 3) == "z"


def test_set_nf_truncates_and_pads(ctx):
    set_current_line(ctx, "a b c d")
    set_nf(ctx, 2)
    assert ctx.line == "a b"
    set_nf(ctx, 4)
    assert ctx.line == "a b  "


@pytest.mark.parametrize("index", [-1, float("inf"), float("nan"), 2_000_000])
def test_bad_field_index_is_fatal(ctx, index):
    with pytest.raises(AwkFatalError):
        get_field(ctx, index)


# --- Variables ---

def test_unset_variable_is_empty_string(ctx):
    assert get_variable(ctx, "nothing") == ""


def test_special_variables(ctx):
    set_variable(ctx, "NR", "12")
    assert ctx.NR == 12.0
    set_variable(ctx, "OFS", 5.0)
    assert ctx.OFS == "5"
    assert get_variable(ctx, "SUBSEP") == "\x1c"


def test_nf_variable_reflects_fields(ctx):
    set_current_line(ctx, "a b c")
    assert get_variable(ctx, "NF") == 3.0
    set_variable(ctx, "NF", 1.0)
    assert ctx.line == "a"


def test_scalar_assignment_to_array_is_fatal(ctx):
    set_array_element(ctx, "arr", "k", 1.0)
    with pytest.raises(AwkFatalError):
        set_variable(ctx, "arr", 2.0)


def test_scalar_read_of_array_is_fatal(ctx):
    set_array_element(ctx, "arr", "k", 1.0)
    with pytest.raises(AwkFatalError, match="attempt to use array `arr' in a scalar context"):
        get_variable(ctx, "arr")


def test_array_use_of_scalar_is_fatal(ctx):
    set_variable(ctx, "x", 1.0)
    with pytest.raises(AwkFatalError):
        get_array(ctx, "x")


def test_empty_scalar_becomes_array(ctx):
    set_variable(ctx, "p", "")
    set_array_element(ctx, "p", "a", 1.0)
    assert "p" not in ctx.vars
    assert ctx.arrays["p"] == {"a": 1.0}


def test_reference_creates_element(ctx):
    assert get_array_element(ctx, "a", "k") == ""
    assert has_array_element(ctx, "a", "k")


def test_membership_does_not_create(ctx):
    assert not has_array_element(ctx, "b", "k")
    assert "b" not in ctx.arrays


def test_delete(ctx):
    set_array_element(ctx, "a", "1", "x")
    set_array_element(ctx, "a", "2", "y")
    delete_array_element(ctx, "a", "1")
    delete_array_element(ctx, "a", "missing")
    assert ctx.arrays["a"] == {"2": "y"}
    delete_array(ctx, "a")
    assert ctx.arrays["a"] == {}
