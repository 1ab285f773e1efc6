"""Fault messages and the registry of faults injected per file-system method."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

DEFAULT_HOOK_POINTS: tuple[str, ...] = (
    "read",
    "write",
    "mkdir",
    "rmdir",
    "opendir",
    "fsync",
    "flush",
    "release",
    "truncate",
    "getattr",
    "chown",
    "utimens",
    "allocate",
    "getlk",
    "setlk",
    "setlkw",
    "statfs",
    "readlink",
    "symlink",
    "create",
    "access",
    "link",
    "mknod",
    "rename",
    "unlink",
    "getxattr",
    "listxattr",
    "removexattr",
    "setxattr",
)

INJECT_PATH = "/inject"
RECOVER_PATH = "/recover"

_UINT32_MAX = 2**32 - 1


def _uint32(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"{key} must be an unsigned 32-bit integer, got {value!r}")
    return value


@dataclass
class InjectMessage:
    """A fault to inject: which methods, under which path, and how."""

    methods: list[str] = field(default_factory=list)
    path: str = ""
    delay: int = 0
    percent: int = 0
    random: bool = False
    errno: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "methods": list(self.methods),
            "path": self.path,
            "delay": self.delay,
            "percent": self.percent,
            "random": self.random,
            "errno": self.errno,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InjectMessage:
        """Build a message from decoded JSON, raising ValueError on bad field types."""
        if not isinstance(data, dict):
            raise ValueError(f"inject message must be an object, got {type(data).__name__}")
        methods = data.get("methods")
        if methods is None:
            methods = []
        if not isinstance(methods, list) or not all(isinstance(m, str) for m in methods):
            raise ValueError(f"methods must be a list of strings, got {methods!r}")
        path = data.get("path")
        if path is None:
            path = ""
        if not isinstance(path, str):
            raise ValueError(f"path must be a string, got {path!r}")
        random_flag = data.get("random")
        if random_flag is None:
            random_flag = False
        if not isinstance(random_flag, bool):
            raise ValueError(f"random must be a boolean, got {random_flag!r}")
        return cls(
            methods=list(methods),
            path=path,
            delay=_uint32(data, "delay"),
            percent=_uint32(data, "percent"),
            random=random_flag,
            errno=_uint32(data, "errno"),
        )


class FaultRegistry:
    """Thread-safe mapping from file-system method name to its injected fault."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._faults: dict[str, InjectMessage] = {}

    def inject(self, message: InjectMessage) -> None:
        """Register the message for every method it names."""
        with self._lock:
            for method in message.methods:
                self._faults[method] = message

    def recover(self) -> None:
        """Remove the faults of all default hook points."""
        with self._lock:
            for method in DEFAULT_HOOK_POINTS:
                self._faults.pop(method, None)

    def lookup(self, method: str) -> InjectMessage | None:
        """Return the fault registered for a method, if any."""
        with self._lock:
            return self._faults.get(method)