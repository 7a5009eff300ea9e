import math

import pytest

from awk.awk_format import MAX_WIDTH, format_printf


@pytest.mark.parametrize("fmt,values,expected", [
    ("%d", [42.9], "42"),
    ("%i|%u", [-3.2, 7], "-3|7"),
    ("%5d|%-5d|%05d", [1, 2, 3], "    1|2    |00003"),
    ("%+d % d", [5, 5], "+5  5"),
    ("%.3d", [7], "007"),
    ("%o %x %X %#x", [8, 255, 255, 255], "10 ff FF 0xff"),
    ("%e", [12345.678], "1.234568e+04"),
    ("%.2f|%8.3f", [3.14159, 2.5], "3.14|   2.500"),
    ("%g %G", [0.0001, 1e-10], "0.0001 1E-10"),
    ("%s and %s", ["a", 1.5], "a and 1.5"),
    ("%.2s", ["abcdef"], "ab"),
    ("%c%c", [65, "hello"], "Ah"),
    ("100%%", [], "100%"),
])
def test_conversions(fmt, values, expected):
    assert format_printf(fmt, values) == expected


def test_star_width_and_precision():
    assert format_printf("%*d|", [4, 7]) == "   7|"
    assert format_printf("%-*d|", [3, 1]) == "1  |"
    assert format_printf("%*d|", [-3, 1]) == "1  |"
    assert format_printf("%.*f", [1, 2.25]) == "2.2"


def test_missing_arguments_format_as_empty_or_zero():
    assert format_printf("%s-%d-%c|", []) == "-0-|"


def test_extra_arguments_are_ignored():
    assert format_printf("%s", ["a", "b"]) == "a"


def test_strings_convert_for_numeric_conversions():
    assert format_printf("%d %.1f", ["12abc", "2.55x"]) == "12 2.5"


def test_non_finite_integers_print_as_words():
    assert format_printf("%d %d", [math.inf, -math.inf]) == "inf -inf"


def test_negative_hex_wraps_to_64_bits():
    assert format_printf("%x", [-1]) == "ffffffffffffffff"


def test_length_modifiers_are_skipped():
    assert format_printf("%ld %lld", [1, 2]) == "1 2"


def test_dangling_and_unknown_directives_are_literal():
    assert format_printf("50%", []) == "50%"
    assert format_printf("%z", [1]) == "%z"


def test_huge_width_is_clamped():
    out = format_printf("%999999999d", [1])
    assert len(out) == MAX_WIDTH


def test_number_strings_use_convfmt():
    assert format_printf("%s", [3.14159265], "%.2f") == "3.14"
