"""
The runtime context threaded through every evaluation call.

One RuntimeContext is created per program run and discarded afterwards.
Nothing in here is shared between runs, so independent runs can execute
concurrently as long as each has its own context.
"""
import random
import sys
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from awk.awk_fields import split_records
from awk.awk_values import Value, DEFAULT_CONVFMT

DEFAULT_MAX_ITERATIONS = 100000
DEFAULT_MAX_RECURSION_DEPTH = 100

# Python frames reserved per level of user function recursion.
FRAMES_PER_CALL = 100
BASE_FRAMES = 1000

_headroom_users = 0
_base_recursion_limit = 0


def frames_for_depth(max_recursion_depth: int) -> int:
    return BASE_FRAMES + max_recursion_depth * FRAMES_PER_CALL


@contextmanager
def recursion_headroom(frames: int):
    """Raise the interpreter recursion limit to at least `frames` inside the block.

    Nested and interleaved users share one raised limit; the original limit
    comes back when the last of them leaves.
    """
    global _headroom_users, _base_recursion_limit
    if _headroom_users == 0:
        _base_recursion_limit = sys.getrecursionlimit()
    _headroom_users += 1
    if frames > sys.getrecursionlimit():
        sys.setrecursionlimit(frames)
    try:
        yield
    finally:
        _headroom_users -= 1
        if _headroom_users == 0:
            sys.setrecursionlimit(_base_recursion_limit)


class FileCacheEntry:
    """Lines of a file opened by `getline < file`, plus its own read cursor.

    lines is None when the read failed; the failure is remembered for the
    rest of the run.
    """
    def __init__(self, lines: Optional[List[str]], index: int = -1):
        self.lines = lines
        self.index = index

    def __repr__(self) -> str:
        count = None if self.lines is None else len(self.lines)
        return f"<FileCacheEntry lines={count} index={self.index}>"


class RuntimeContext:
    """All mutable state of one program run."""
    def __init__(
        self,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH,
        fs=None,
        cwd: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        # Current record and its fields ($1..$NF)
        self.line: str = ""
        self.fields: List[str] = []

        # Special variables
        self.NR: float = 0.0
        self.FNR: float = 0.0
        self.FS: str = " "
        self.OFS: str = " "
        self.ORS: str = "\n"
        self.RS: str = "\n"
        self.SUBSEP: str = "\x1c"
        self.CONVFMT: str = DEFAULT_CONVFMT
        self.OFMT: str = DEFAULT_CONVFMT
        self.FILENAME: str = ""
        self.RSTART: float = 0.0
        self.RLENGTH: float = -1.0

        # Global scope
        self.vars: Dict[str, Value] = {}
        self.arrays: Dict[str, Dict[str, Value]] = {
            "ENVIRON": dict(environ or {}),
        }
        self.functions: Dict[str, Any] = {}

        # Control-flow flags
        self.should_exit: bool = False
        self.should_next: bool = False
        self.should_next_file: bool = False
        self.exit_from_end: bool = False
        self.should_break: bool = False
        self.should_continue: bool = False
        self.has_return: bool = False
        self.return_value: Optional[Value] = None

        # Limits
        self.current_recursion_depth: int = 0
        self.max_recursion_depth: int = max_recursion_depth
        self.max_iterations: int = max_iterations

        # Output
        self._output: List[str] = []
        self.redirects: Dict[str, str] = {}
        self._open_redirects: set = set()
        self.exit_code: int = 0

        # Caches
        self.regex_cache: Dict[Any, Any] = {}
        self.file_cache: Dict[str, FileCacheEntry] = {}

        # Main input cursor. lines is split lazily from input_text so that an
        # RS assignment in BEGIN is honoured.
        self.input_text: Optional[str] = None
        self.lines: Optional[List[str]] = None
        self.line_index: int = -1

        # External file access; absent fs makes `getline < file` return -1
        self.fs = fs
        self.cwd = cwd

        # rand()/srand()
        self.rand_seed: float = 0.0
        self.rng = random.Random(0)

    # --- Output ---
    @property
    def output(self) -> str:
        return "".join(self._output)

    def emit(self, text: str):
        self._output.append(text)

    def reset_output(self):
        self._output.clear()

    def emit_redirect(self, target: str, text: str, append: bool):
        # '>' truncates when the target is opened, then keeps appending until close().
        if target not in self._open_redirects:
            self._open_redirects.add(target)
            if not append:
                self.redirects[target] = ""
        self.redirects[target] = self.redirects.get(target, "") + text

    def close_redirect(self, target: str) -> bool:
        if target in self._open_redirects:
            self._open_redirects.discard(target)
            return True
        return False

    # --- Flags ---
    def block_interrupted(self) -> bool:
        """True when the remaining statements of the current block must be skipped."""
        return (
            self.should_exit
            or self.should_next
            or self.should_next_file
            or self.has_return
            or self.should_break
            or self.should_continue
        )

    # --- Main input ---
    def set_input(self, text: Optional[str]):
        self.input_text = text
        self.lines = None
        self.line_index = -1

    def ensure_records(self) -> Optional[List[str]]:
        """Split input_text into records with the current RS (once)."""
        if self.lines is None and self.input_text is not None:
            self.lines = split_records(self.input_text, self.RS, self)
        return self.lines


def create_runtime_context(
    *,
    max_iterations: Optional[int] = None,
    max_recursion_depth: Optional[int] = None,
    fs=None,
    cwd: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> RuntimeContext:
    return RuntimeContext(
        max_iterations=DEFAULT_MAX_ITERATIONS if max_iterations is None else max_iterations,
        max_recursion_depth=DEFAULT_MAX_RECURSION_DEPTH if max_recursion_depth is None else max_recursion_depth,
        fs=fs,
        cwd=cwd,
        environ=environ,
    )
