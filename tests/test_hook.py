import random

import pytest

from bladeoperator.faults import FaultRegistry, InjectMessage
from bladeoperator.hook import ChaosbladeHook, HookContext, probab, random_errno


class _FixedRandom:
    def __init__(self, value):
        self.value = value

    def randrange(self, stop):
        return self.value


def _hook(message, rng=None, sleeps=None):
    registry = FaultRegistry()
    registry.inject(message)
    recorder = sleeps if sleeps is not None else []
    return ChaosbladeHook("/mnt", registry, rng=rng, sleep=recorder.append)


def test_no_fault_returns_context():
    hook = ChaosbladeHook("/mnt", FaultRegistry())
    assert hook.pre_read("data/file", 10, 0) == HookContext()


def test_errno_fault_raises():
    hook = _hook(InjectMessage(methods=["read"], errno=28))
    with pytest.raises(OSError) as info:
        hook.pre_read("data/file", 10, 0)
    assert info.value.errno == 28


def test_other_method_untouched():
    hook = _hook(InjectMessage(methods=["read"], errno=28))
    assert hook.pre_write("data/file", b"x", 0) == HookContext()


def test_path_rule_must_prefix_actual_path():
    hook = _hook(InjectMessage(methods=["read"], errno=5, path="/mnt/data"))
    assert hook.pre_read("other/file", 1, 0) == HookContext()
    with pytest.raises(OSError) as info:
        hook.pre_read("data/file", 1, 0)
    assert info.value.errno == 5


def test_relative_path_joined_under_mount_point():
    hook = _hook(InjectMessage(methods=["mkdir"], errno=13, path="/mnt/a"))
    with pytest.raises(OSError):
        hook.pre_mkdir("/a/b", 0o755)


def test_percent_miss_skips_fault():
    hook = _hook(InjectMessage(methods=["read"], errno=5, percent=60), rng=_FixedRandom(60))
    assert hook.pre_read("f", 1, 0) == HookContext()


def test_percent_hit_applies_fault():
    hook = _hook(InjectMessage(methods=["read"], errno=5, percent=60), rng=_FixedRandom(59))
    with pytest.raises(OSError):
        hook.pre_read("f", 1, 0)


def test_random_errno_used_when_no_errno():
    hook = _hook(InjectMessage(methods=["unlink"], random=True), rng=random.Random(3))
    with pytest.raises(OSError) as info:
        hook.pre_unlink("f")
    assert 7 <= info.value.errno < 0x36


def test_delay_sleeps_then_returns():
    sleeps = []
    hook = _hook(InjectMessage(methods=["fsync"], delay=1000), sleeps=sleeps)
    assert hook.pre_fsync("f", 0) == HookContext()
    assert sleeps == [1.0]


def test_delay_happens_before_error():
    sleeps = []
    hook = _hook(InjectMessage(methods=["flush"], delay=1000, errno=5), sleeps=sleeps)
    with pytest.raises(OSError):
        hook.pre_flush("f")
    assert len(sleeps) == 1


def test_release_swallows_errors():
    hook = _hook(InjectMessage(methods=["release"], errno=5))
    assert hook.pre_release("f") == HookContext()


def test_rename_checks_both_names():
    hook = _hook(InjectMessage(methods=["rename"], errno=5, path="/mnt/target"))
    with pytest.raises(OSError):
        hook.pre_rename("source", "target")
    with pytest.raises(OSError):
        hook.pre_rename("target", "source")
    assert hook.pre_rename("source", "other") == HookContext()


def test_symlink_and_link_check_second_name():
    hook = _hook(InjectMessage(methods=["symlink", "link"], errno=5, path="/mnt/new"))
    with pytest.raises(OSError):
        hook.pre_symlink("old", "new")
    with pytest.raises(OSError):
        hook.pre_link("old", "new")


@pytest.mark.parametrize(
    "call, method",
    [
        (lambda h: h.pre_open("f", 0), "open"),
        (lambda h: h.pre_open_dir("f"), "opendir"),
        (lambda h: h.pre_rmdir("f"), "rmdir"),
        (lambda h: h.pre_truncate("f", 0), "truncate"),
        (lambda h: h.pre_get_attr("f"), "getattr"),
        (lambda h: h.pre_chown("f", 0, 0), "chown"),
        (lambda h: h.pre_chmod("f", 0), "chmod"),
        (lambda h: h.pre_utimens("f", None, None), "utimens"),
        (lambda h: h.pre_allocate("f", 0, 0, 0), "allocate"),
        (lambda h: h.pre_get_lk("f", 0, None, 0, None), "getlk"),
        (lambda h: h.pre_set_lk("f", 0, None, 0), "setlk"),
        (lambda h: h.pre_set_lkw("f", 0, None, 0), "setlkw"),
        (lambda h: h.pre_stat_fs("f"), "statfs"),
        (lambda h: h.pre_readlink("f"), "readlink"),
        (lambda h: h.pre_create("f", 0, 0), "create"),
        (lambda h: h.pre_access("f", 0), "access"),
        (lambda h: h.pre_mknod("f", 0, 0), "mknod"),
        (lambda h: h.pre_get_xattr("f", "a"), "getxattr"),
        (lambda h: h.pre_list_xattr("f"), "listxattr"),
        (lambda h: h.pre_remove_xattr("f", "a"), "removexattr"),
        (lambda h: h.pre_set_xattr("f", "a", b"", 0), "setxattr"),
    ],
)
def test_each_pre_hook_uses_its_method(call, method):
    hook = _hook(InjectMessage(methods=[method], errno=5))
    with pytest.raises(OSError) as info:
        call(hook)
    assert info.value.errno == 5
    other = _hook(InjectMessage(methods=["write"], errno=5))
    assert call(other) == HookContext()


def test_post_never_hooks():
    hook = ChaosbladeHook("/mnt", FaultRegistry())
    assert hook.post(0, HookContext()) is False


def test_random_errno_range():
    rng = random.Random(1)
    values = {random_errno(rng) for _ in range(2000)}
    assert min(values) >= 7
    assert max(values) <= 0x35


def test_probab_threshold():
    assert probab(60, _FixedRandom(59)) is True
    assert probab(60, _FixedRandom(60)) is False
    assert probab(0, _FixedRandom(0)) is False