"""File-system hook that applies injected faults before each operation."""

from __future__ import annotations

import errno as errno_codes
import logging
import os
import posixpath
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from .faults import FaultRegistry

logger = logging.getLogger(__name__)

# From E2BIG to EXFULL; Linux numbering.
_ERRNO_LOW = 0x7
_ERRNO_HIGH = 0x36


class _Random(Protocol):
    def randrange(self, stop: int) -> int: ...


def random_errno(rng: _Random) -> int:
    """Pick an error number between E2BIG and EXFULL."""
    return rng.randrange(_ERRNO_HIGH - _ERRNO_LOW) + _ERRNO_LOW


def probab(percentage: int, rng: _Random) -> bool:
    """Return True with roughly the given percent chance."""
    return rng.randrange(99) < percentage


def _os_error(code: int) -> OSError:
    try:
        text = os.strerror(code)
    except ValueError:
        text = errno_codes.errorcode.get(code, f"errno {code}")
    return OSError(code, text)


def _join(mount_point: str, relative_path: str) -> str:
    joined = "/".join(part for part in (mount_point, relative_path) if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@dataclass
class HookContext:
    """Context handed from a pre-hook to its post-hook."""


class ChaosbladeHook:
    """Applies faults from a registry to file-system calls under a mount point.

    Each pre-hook returns a HookContext, or raises OSError when a fault
    with an error is injected for the call.
    """

    def __init__(
        self,
        mount_point: str,
        registry: FaultRegistry,
        rng: _Random | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.mount_point = mount_point
        self.registry = registry
        self.rng: _Random = rng if rng is not None else random.Random()
        self.sleep = sleep

    def inject_fault(self, relative_path: str, method: str) -> None:
        """Apply the fault registered for method, raising OSError if it carries an error."""
        logger.info("do Inject fault method=%s relativePath=%s", method, relative_path)
        message = self.registry.lookup(method)
        if message is None:
            return
        logger.info("do Inject fault with inject message %s", message)
        if message.path:
            actual_path = _join(self.mount_point, relative_path)
            if not actual_path.startswith(message.path):
                logger.info(
                    "the rule path does not contain the actual path rulePath=%s actualPath=%s",
                    message.path,
                    actual_path,
                )
                return
        if message.percent > 0 and not probab(message.percent, self.rng):
            return
        error: OSError | None = None
        if message.errno != 0:
            error = _os_error(message.errno)
        elif message.random:
            error = _os_error(random_errno(self.rng))
        if message.delay > 0:
            self.sleep(message.delay / 1000)
        if error is not None:
            raise error

    def _pre(self, path: str, method: str) -> HookContext:
        self.inject_fault(path, method)
        return HookContext()

    def pre_open(self, path: str, flags: int) -> HookContext:
        return self._pre(path, "open")

    def pre_read(self, path: str, length: int, offset: int) -> HookContext:
        return self._pre(path, "read")

    def pre_write(self, path: str, buf: bytes, offset: int) -> HookContext:
        return self._pre(path, "write")

    def pre_mkdir(self, path: str, mode: int) -> HookContext:
        return self._pre(path, "mkdir")

    def pre_rmdir(self, path: str) -> HookContext:
        return self._pre(path, "rmdir")

    def pre_open_dir(self, path: str) -> HookContext:
        return self._pre(path, "opendir")

    def pre_fsync(self, path: str, flags: int) -> HookContext:
        return self._pre(path, "fsync")

    def pre_flush(self, path: str) -> HookContext:
        return self._pre(path, "flush")

    def pre_release(self, path: str) -> HookContext:
        """Apply delays for release; errors are never reported for it."""
        try:
            self.inject_fault(path, "release")
        except OSError:
            pass
        return HookContext()

    def pre_truncate(self, path: str, size: int) -> HookContext:
        return self._pre(path, "truncate")

    def pre_get_attr(self, path: str) -> HookContext:
        return self._pre(path, "getattr")

    def pre_chown(self, path: str, uid: int, gid: int) -> HookContext:
        return self._pre(path, "chown")

    def pre_chmod(self, path: str, perms: int) -> HookContext:
        return self._pre(path, "chmod")

    def pre_utimens(self, path: str, atime: Any, mtime: Any) -> HookContext:
        return self._pre(path, "utimens")

    def pre_allocate(self, path: str, off: int, size: int, mode: int) -> HookContext:
        return self._pre(path, "allocate")

    def pre_get_lk(self, path: str, owner: int, lk: Any, flags: int, out: Any) -> HookContext:
        return self._pre(path, "getlk")

    def pre_set_lk(self, path: str, owner: int, lk: Any, flags: int) -> HookContext:
        return self._pre(path, "setlk")

    def pre_set_lkw(self, path: str, owner: int, lk: Any, flags: int) -> HookContext:
        return self._pre(path, "setlkw")

    def pre_stat_fs(self, path: str) -> HookContext:
        return self._pre(path, "statfs")

    def pre_readlink(self, name: str) -> HookContext:
        return self._pre(name, "readlink")

    def pre_symlink(self, value: str, link_name: str) -> HookContext:
        self.inject_fault(value, "symlink")
        return self._pre(link_name, "symlink")

    def pre_create(self, name: str, flags: int, mode: int) -> HookContext:
        return self._pre(name, "create")

    def pre_access(self, name: str, mode: int) -> HookContext:
        return self._pre(name, "access")

    def pre_link(self, old_name: str, new_name: str) -> HookContext:
        self.inject_fault(old_name, "link")
        return self._pre(new_name, "link")

    def pre_mknod(self, name: str, mode: int, dev: int) -> HookContext:
        return self._pre(name, "mknod")

    def pre_rename(self, old_name: str, new_name: str) -> HookContext:
        self.inject_fault(old_name, "rename")
        return self._pre(new_name, "rename")

    def pre_unlink(self, name: str) -> HookContext:
        return self._pre(name, "unlink")

    def pre_get_xattr(self, name: str, attribute: str) -> HookContext:
        return self._pre(name, "getxattr")

    def pre_list_xattr(self, name: str) -> HookContext:
        return self._pre(name, "listxattr")

    def pre_remove_xattr(self, name: str, attr: str) -> HookContext:
        return self._pre(name, "removexattr")

    def pre_set_xattr(self, name: str, attr: str, data: bytes, flags: int) -> HookContext:
        return self._pre(name, "setxattr")

    def post(self, *args: Any) -> bool:
        """Post-hooks never take over the call; always returns False."""
        return False