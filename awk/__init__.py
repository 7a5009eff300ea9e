from awk.awk_config import AwkOptions, load_options, options_from_env, options_from_mapping
from awk.awk_context import RuntimeContext, create_runtime_context
from awk.awk_datatypes import AwkError, AwkFatalError, AwkSyntaxError, ExecutionLimitError
from awk.awk_fs import LocalFileSystem, MemoryFileSystem
from awk.awk_interpreter import Evaluator
from awk.awk_parser import parse
from awk.awk_runtime import AwkInterpreter, AwkResult, awk_exec, awk_exec_files, awk_transform
from awk.awk_statements import StatementRunner

__all__ = [
    "AwkOptions", "load_options", "options_from_env", "options_from_mapping",
    "RuntimeContext", "create_runtime_context",
    "AwkError", "AwkFatalError", "AwkSyntaxError", "ExecutionLimitError",
    "LocalFileSystem", "MemoryFileSystem",
    "Evaluator", "StatementRunner", "AwkInterpreter", "AwkResult",
    "parse", "awk_exec", "awk_exec_files", "awk_transform",
]
