import pytest

from bladeoperator.faults import (
    DEFAULT_HOOK_POINTS,
    FaultRegistry,
    InjectMessage,
)


def test_default_message_to_dict():
    assert InjectMessage().to_dict() == {
        "methods": [],
        "path": "",
        "delay": 0,
        "percent": 0,
        "random": False,
        "errno": 0,
    }


def test_to_dict_uses_wire_keys():
    message = InjectMessage(methods=["read"], path="/home", delay=10, percent=60, errno=28)
    assert message.to_dict() == {
        "methods": ["read"],
        "path": "/home",
        "delay": 10,
        "percent": 60,
        "random": False,
        "errno": 28,
    }


def test_round_trip():
    message = InjectMessage(methods=["read", "write"], path="/data", delay=5, random=True)
    assert InjectMessage.from_dict(message.to_dict()) == message


def test_from_dict_defaults_for_missing_fields():
    assert InjectMessage.from_dict({}) == InjectMessage()


def test_from_dict_null_fields_are_zero():
    message = InjectMessage.from_dict({"methods": None, "delay": None, "path": None})
    assert message == InjectMessage()


@pytest.mark.parametrize(
    "data",
    [
        {"delay": -1},
        {"percent": 2**32},
        {"errno": 1.5},
        {"errno": True},
        {"methods": "read"},
        {"methods": [1]},
        {"path": 3},
        {"random": "yes"},
    ],
)
def test_from_dict_rejects_bad_types(data):
    with pytest.raises(ValueError):
        InjectMessage.from_dict(data)


def test_from_dict_rejects_non_object():
    with pytest.raises(ValueError):
        InjectMessage.from_dict(["read"])


def test_inject_registers_every_method():
    registry = FaultRegistry()
    message = InjectMessage(methods=["read", "write"], errno=5)
    registry.inject(message)
    assert registry.lookup("read") is message
    assert registry.lookup("write") is message
    assert registry.lookup("mkdir") is None


def test_later_inject_replaces_earlier():
    registry = FaultRegistry()
    registry.inject(InjectMessage(methods=["read"], errno=5))
    second = InjectMessage(methods=["read"], errno=28)
    registry.inject(second)
    assert registry.lookup("read") is second


def test_recover_clears_default_hook_points():
    registry = FaultRegistry()
    registry.inject(InjectMessage(methods=list(DEFAULT_HOOK_POINTS)))
    registry.recover()
    assert all(registry.lookup(method) is None for method in DEFAULT_HOOK_POINTS)


def test_recover_leaves_methods_outside_default_points():
    registry = FaultRegistry()
    message = InjectMessage(methods=["open", "read"])
    registry.inject(message)
    registry.recover()
    assert "open" not in DEFAULT_HOOK_POINTS
    assert registry.lookup("open") is message
    assert registry.lookup("read") is None