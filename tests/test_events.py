from arbor.core.events import EventBus
from arbor.core.instance import Instance


def test_on_and_emit_in_order():
    bus = EventBus()
    calls = []
    bus.on("ping", lambda x: calls.append(("a", x)))
    bus.on("ping", lambda x: calls.append(("b", x)))

    assert bus.emit("ping", 1) is False
    assert calls == [("a", 1), ("b", 1)]


def test_emit_without_handlers():
    assert EventBus().emit("nothing") is False


def test_once_runs_a_single_time():
    bus = EventBus()
    calls = []
    bus.once("ping", lambda: calls.append(1))

    bus.emit("ping")
    bus.emit("ping")
    assert calls == [1]
    assert not bus.has("ping")


def test_off_variants():
    bus = EventBus()
    a = bus.on("a", lambda: None)
    bus.on("a", lambda: None)
    bus.on("b", lambda: None)

    bus.off("a", a)
    assert bus.count("a") == 1
    bus.off("a")
    assert not bus.has("a")
    bus.off()
    assert not bus.has("b")


def test_handler_can_unsubscribe_while_emitting():
    bus = EventBus()
    calls = []

    def first():
        calls.append("first")
        bus.off("ping", first)

    bus.on("ping", first)
    bus.on("ping", lambda: calls.append("second"))
    bus.emit("ping")
    bus.emit("ping")
    assert calls == ["first", "second", "second"]


def test_emit_reports_propagation():
    bus = EventBus()
    bus.on("ping", lambda: None)
    bus.on("ping", lambda: True)
    assert bus.emit("ping") is True


def _chain():
    root, middle, leaf = Instance(), Instance(), Instance()
    middle.parent = root
    leaf.parent = middle
    root.children = [middle]
    middle.children = [leaf]
    return root, middle, leaf


def test_dispatch_goes_up_until_handled():
    root, middle, leaf = _chain()
    calls = []
    middle.on("save", lambda: calls.append("middle"))
    root.on("save", lambda: calls.append("root"))

    leaf.dispatch("save")
    assert calls == ["middle"]


def test_dispatch_continues_when_handler_returns_true():
    root, middle, leaf = _chain()
    calls = []
    middle.on("save", lambda: calls.append("middle") or True)
    root.on("save", lambda: calls.append("root"))

    leaf.dispatch("save")
    assert calls == ["middle", "root"]


def test_broadcast_goes_down_until_handled():
    root, middle, leaf = _chain()
    calls = []
    leaf.on("refresh", lambda arg: calls.append(("leaf", arg)))

    root.broadcast("refresh", 42)
    assert calls == [("leaf", 42)]

    middle.on("refresh", lambda arg: calls.append(("middle", arg)))
    calls.clear()
    root.broadcast("refresh", 1)
    assert calls == [("middle", 1)]
