from __future__ import annotations
import os
import posixpath
from typing import Dict, Optional


class LocalFileSystem:
    """Reads files from the host filesystem for `getline < file`.

    With a root, every resolved path must stay inside it; paths that
    escape (via '..' or an absolute name) fail with PermissionError.
    """
    def __init__(self, root: Optional[str] = None, encoding: str = "utf-8"):
        self.root = os.path.realpath(root) if root is not None else None
        self.encoding = encoding

    def resolve_path(self, cwd: Optional[str], name: str) -> str:
        base = cwd or self.root or os.getcwd()
        path = os.path.realpath(os.path.join(base, os.path.expanduser(name)))
        if self.root is not None:
            if path != self.root and not path.startswith(self.root + os.sep):
                raise PermissionError(f"{name}: outside of {self.root}")
        return path

    async def read_file(self, path: str) -> str:
        with open(path, "r", encoding=self.encoding, newline="") as f:
            return f.read()


class MemoryFileSystem:
    """An in-memory filesystem: a dict of absolute POSIX paths to text."""
    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = {}
        for name, content in (files or {}).items():
            self.files[self.resolve_path("/", name)] = content

    def resolve_path(self, cwd: Optional[str], name: str) -> str:
        return posixpath.normpath(posixpath.join(cwd or "/", name))

    async def read_file(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None
