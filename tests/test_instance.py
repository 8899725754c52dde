import pytest

from arbor.core.instance import HANDLES, Instance, is_system_prop


def test_attribute_access_falls_through_to_data():
    vm = Instance()
    vm.count = 1
    vm.count += 1

    assert vm.data == {"count": 2}
    assert vm.count == 2
    assert "count" in vm


def test_handles_are_not_data():
    vm = Instance()
    vm.is_ready = True
    assert vm.is_ready is True
    assert "is_ready" not in vm.data


def test_methods_are_visible_as_attributes():
    vm = Instance()
    vm.methods["greet"] = lambda: "hi"
    assert vm.greet() == "hi"


def test_missing_attribute_raises():
    with pytest.raises(AttributeError):
        Instance().missing


def test_delete_data_attribute():
    vm = Instance()
    vm.x = 1
    del vm.x
    assert "x" not in vm.data
    with pytest.raises(AttributeError):
        del vm.x
    with pytest.raises(AttributeError):
        del vm.el


def test_set_and_get_keypath():
    vm = Instance()
    vm.set("user.profile.name", "ada")

    assert vm.data == {"user": {"profile": {"name": "ada"}}}
    assert vm.get("user.profile.name") == "ada"
    assert vm.get("user.missing", "default") == "default"


def test_get_reads_object_attributes():
    class Point:
        x = 3

    vm = Instance()
    vm.point = Point()
    assert vm.get("point.x") == 3
    assert vm.get("point.y") is None


def test_is_system_prop():
    assert is_system_prop("$el")
    assert is_system_prop("_private")
    assert not is_system_prop("children")
    assert not is_system_prop("options")
    assert not is_system_prop("title")
    assert HANDLES >= {"el", "parent", "root", "data"}


def test_parent_methods_are_never_system():
    parent = Instance()
    parent.methods["_helper"] = lambda: None
    assert not is_system_prop("_helper", parent)
    assert is_system_prop("_other", parent)


def test_context_exposes_data_methods_and_handles():
    parent = Instance()
    vm = Instance()
    vm.parent = parent
    vm.title = "t"
    vm.methods["shout"] = lambda: "!"

    ctx = vm.context()
    assert ctx["title"] == "t"
    assert ctx["shout"]() == "!"
    assert ctx["_parent"] is parent
    assert ctx["_root"] is vm


def test_next_tick_runs_after_current_pass():
    import asyncio

    calls = []

    async def main():
        vm = Instance()
        vm.state.loop = asyncio.get_running_loop()
        vm.next_tick(lambda v: calls.append(v))
        calls.append("sync")
        await asyncio.sleep(0)
        return vm

    vm = asyncio.run(main())
    assert calls == ["sync", vm]
