"""
Scope accessors for global scalars, special variables and associative arrays.

Special variables (NR, FS, ...) live as attributes on the runtime context;
everything else lives in ctx.vars / ctx.arrays. A name is either a scalar
or an array, never both.
"""
from typing import Dict

from awk.awk_datatypes import AwkFatalError
from awk.awk_fields import get_nf, set_nf
from awk.awk_values import Value, to_awk_string, to_number

NUMERIC_SPECIALS = ("NR", "FNR", "RSTART", "RLENGTH")
STRING_SPECIALS = ("FS", "OFS", "ORS", "RS", "SUBSEP", "CONVFMT", "OFMT", "FILENAME")
# Names a function parameter may not shadow.
SPECIAL_VARIABLES = frozenset(("NF", "ENVIRON") + NUMERIC_SPECIALS + STRING_SPECIALS)


def get_variable(ctx, name: str) -> Value:
    if name == "NF":
        return get_nf(ctx)
    if name in NUMERIC_SPECIALS or name in STRING_SPECIALS:
        return getattr(ctx, name)
    if name in ctx.arrays:
        raise AwkFatalError(f"attempt to use array `{name}' in a scalar context")
    return ctx.vars.get(name, "")


def set_variable(ctx, name: str, value: Value):
    if name == "NF":
        set_nf(ctx, to_number(value))
        return
    if name in NUMERIC_SPECIALS:
        setattr(ctx, name, to_number(value))
        return
    if name in STRING_SPECIALS:
        setattr(ctx, name, to_awk_string(value, ctx.CONVFMT))
        return
    if name in ctx.arrays:
        raise AwkFatalError(f"attempt to use array `{name}' in a scalar context")
    ctx.vars[name] = value


def get_array(ctx, name: str, create: bool = True) -> Dict[str, Value]:
    """Return the dict behind an array name.

    A name holding the empty string (never assigned, or an unsupplied
    function parameter) turns into an array on first array use; a name
    holding any other scalar is a fatal error.
    """
    arr = ctx.arrays.get(name)
    if arr is not None:
        return arr
    if name in ctx.vars:
        if ctx.vars[name] != "":
            raise AwkFatalError(f"attempt to use scalar `{name}' as an array")
        if create:
            del ctx.vars[name]
    if not create:
        return {}
    arr = {}
    ctx.arrays[name] = arr
    return arr


def get_array_element(ctx, name: str, key: str) -> Value:
    # Referencing an element creates it, as in POSIX awk.
    arr = get_array(ctx, name)
    if key not in arr:
        arr[key] = ""
    return arr[key]


def set_array_element(ctx, name: str, key: str, value: Value):
    get_array(ctx, name)[key] = value


def has_array_element(ctx, name: str, key: str) -> bool:
    return key in get_array(ctx, name, create=False)


def delete_array_element(ctx, name: str, key: str):
    get_array(ctx, name).pop(key, None)


def delete_array(ctx, name: str):
    get_array(ctx, name).clear()
