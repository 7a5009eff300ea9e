"""
Run options and their loaders (config files and environment overrides).
"""
import dataclasses
import json
import os
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from awk.awk_context import DEFAULT_MAX_ITERATIONS, DEFAULT_MAX_RECURSION_DEPTH


@dataclass
class AwkOptions:
    """Options for one program run."""
    field_separator: Optional[str] = None
    ofs: Optional[str] = None
    ors: Optional[str] = None
    rs: Optional[str] = None
    # -v name=value assignments, applied before BEGIN
    variables: Dict[str, str] = field(default_factory=dict)
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH
    # Filesystem for `getline < file`; None disables file reads
    file_system: Any = None
    cwd: Optional[str] = None
    # Contents of ENVIRON. Empty unless the host opts in.
    environ: Dict[str, str] = field(default_factory=dict)


# Keys a config file may set. file_system is host-only.
_FILE_KEYS = {f.name for f in dataclasses.fields(AwkOptions)} - {"file_system"}


def _deserialize(text: str, ext: str) -> Any:
    if ext == ".json":
        return json.loads(text)
    if ext in (".yaml", ".yml"):
        return yaml.safe_load(text)
    if ext == ".toml":
        return tomllib.loads(text)
    raise ValueError(f"Unsupported config format: {ext or '(none)'}")


def options_from_mapping(data: Mapping[str, Any], base: Optional[AwkOptions] = None) -> AwkOptions:
    """Build options from a plain mapping. Unknown keys raise ValueError."""
    unknown = sorted(set(data) - _FILE_KEYS)
    if unknown:
        raise ValueError(f"Unknown option(s): {', '.join(unknown)}")
    opts = dataclasses.replace(base) if base is not None else AwkOptions()
    for key, value in data.items():
        if key in ("max_iterations", "max_recursion_depth"):
            value = int(value)
            if value < 1:
                raise ValueError(f"{key} must be positive, got {value}")
        elif key in ("variables", "environ"):
            if not isinstance(value, Mapping):
                raise ValueError(f"{key} must be a mapping")
            value = {str(k): str(v) for k, v in value.items()}
        elif value is not None:
            value = str(value)
        setattr(opts, key, value)
    return opts


def load_options(path: str, base: Optional[AwkOptions] = None) -> AwkOptions:
    """Read options from a .json, .yaml/.yml or .toml file."""
    ext = os.path.splitext(path)[1].lower()
    with open(path, "r", encoding="utf-8") as f:
        data = _deserialize(f.read(), ext)
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: top level must be a mapping")
    return options_from_mapping(data, base)


def options_from_env(options: Optional[AwkOptions] = None, environ: Optional[Mapping[str, str]] = None) -> AwkOptions:
    """Apply AWK_MAX_ITERATIONS / AWK_MAX_RECURSION_DEPTH overrides."""
    env = os.environ if environ is None else environ
    opts = dataclasses.replace(options) if options is not None else AwkOptions()
    for var, key in (("AWK_MAX_ITERATIONS", "max_iterations"), ("AWK_MAX_RECURSION_DEPTH", "max_recursion_depth")):
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{var} must be an integer, got {raw!r}") from None
        if value < 1:
            raise ValueError(f"{var} must be positive, got {value}")
        setattr(opts, key, value)
    return opts
