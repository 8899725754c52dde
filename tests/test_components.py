import asyncio
import logging

from arbor import (
    ComponentConstructor,
    Directive,
    DirectiveValue,
    RendererConfig,
    component,
    component_tag,
    directive,
    element,
    text,
)


def leaf(name="child", **options):
    options.setdefault("template", lambda: [element("span", None, text(name))])
    return component(name=name, **options)


def app(*nodes, **options):
    return component(name="app", template=lambda: [n.clone() for n in nodes], **options)


def test_custom_tag_builds_component(render):
    Child = leaf(data=lambda vm: {"label": "x"})
    root = render(app(element("child"), components={"child": Child}))

    (child,) = root.children
    assert child.state.is_component
    assert child.parent is root
    assert child.label == "x"
    assert child.is_ready
    assert root.state.children == [child]


def test_replace_and_merge_modes(render):
    Single = leaf("single")
    Many = component(name="many", template=lambda: [element("a"), element("b")])
    Wrapped = leaf("wrapped", replace=False)
    tree = [element("single"), element("many"), element("wrapped")]
    root = render(app(*tree, components={"single": Single, "many": Many, "wrapped": Wrapped}))

    single, many, wrapped = root.el.inner
    assert single.name == "$merge" and single.original["name"] == "single"
    assert many.name == "template"
    assert [n.name for n in many.inner] == ["a", "b"]
    assert wrapped.name == "wrapped"
    assert [n.name for n in wrapped.inner] == ["span"]
    assert all(n.compile_self_in_parent for n in (single, many, wrapped))


def test_config_replace_default(render):
    Child = leaf()
    root = render(
        app(element("child"), components={"child": Child}),
        config=RendererConfig(replace=False),
    )
    assert root.el.inner[0].name == "child"


def test_component_without_template(render):
    Empty = component(name="empty")
    root = render(app(element("empty"), components={"empty": Empty}))

    host = root.el.inner[0]
    assert host.name == "template"
    assert host.component_empty_template
    assert root.children[0].is_ready


def test_host_content_moves_to_content_node(render):
    Child = leaf()
    host = element("child", None, text("projected"))
    root = render(app(host, components={"child": Child}))

    content, built = root.el.inner
    assert content.type == "$content"
    assert content.inner[0].text == "projected"
    assert built.name == "$merge"
    assert [n.name for n in built.inner] == ["span"]


def test_is_attribute_selects_component(render):
    Child = leaf()
    root = render(app(element("div", {"is": "child"}), components={"child": Child}))

    host = root.el.inner[0]
    assert host.attribs["is"] is None
    assert host.dirs["component"].value == "child"
    assert root.children[0].options.name == "child"


def test_component_tag_helper(render):
    Child = leaf()
    root = render(app(component_tag("child", {"class": "box"}), components={"child": Child}))

    host = root.el.inner[0]
    assert host.attribs == {"class": "box", "is": None}
    assert root.children[0].options.name == "child"


def test_bound_is_attribute(render):
    A, B = leaf("a"), leaf("b")
    host = element("div", dirs={"bind": {"is": directive("kind")}})
    root = render(app(host, components={"a": A, "b": B}, data={"kind": "b"}))
    assert root.children[0].options.name == "b"


def test_native_tag_never_matches_component(render):
    Div = leaf("div")
    root = render(app(element("div"), components={"div": Div}))
    assert root.children == []


def test_pascal_case_registration(render):
    TodoItem = leaf("todo")
    root = render(app(element("todo-item"), components={"TodoItem": TodoItem}))
    assert root.children[0].options.name == "todo"


def test_unresolved_component_is_cleared_and_siblings_survive(render, caplog):
    tree = [element("p", {"id": "before"}), element("div", {"is": "ghost"}, text("x")), element("p", {"id": "after"})]
    with caplog.at_level(logging.WARNING, logger="arbor"):
        root = render(app(*tree))

    before, content, ghost, after = root.el.inner
    assert ghost.inner == []
    assert ghost.dirs["component"].status == "unresolved"
    assert (before.attribs["id"], after.attribs["id"]) == ("before", "after")
    assert 'Failed to resolve component: "ghost"' in caplog.text
    assert root.is_ready


def test_descriptor_is_composed_and_cached(render):
    root = render(
        app(element("child"), element("child"), components={"child": {"name": "child", "template": lambda: [element("i")]}})
    )

    assert len(root.children) == 2
    assert isinstance(root.options.components["child"], ComponentConstructor)


def test_recursive_component_by_own_name(render):
    # Registered as "n" at the root; its template refers to itself as "node"
    def tree_template():
        return [element("node", dirs={"repeat": directive("kids")})]

    Node = component(name="node", template=tree_template, props=["kids"])
    nested = {"kids": [{"kids": [{"kids": []}]}]}
    host = element("n", dirs={"bind": {"kids": directive("tree.kids")}})
    root = render(app(host, components={"n": Node}, data={"tree": nested}))

    top = root.children[0]
    assert len(top.children) == 1
    assert len(top.children[0].children) == 1
    assert top.children[0].children[0].children == []


def test_inheriting_registries(render):
    Grand = leaf("grand")
    Child = component(name="child", template=lambda: [element("grand")])
    root = render(app(element("child"), components={"child": Child, "grand": Grand}))

    child = root.children[0]
    assert child.children[0].options.name == "grand"


def test_strict_registries(render, caplog):
    Grand = leaf("grand")
    Child = component(name="child", template=lambda: [element("div", {"is": "grand"})])
    with caplog.at_level(logging.WARNING, logger="arbor"):
        root = render(
            app(element("child"), components={"child": Child, "grand": Grand}),
            config=RendererConfig(strict=True),
        )

    assert root.children[0].children == []
    assert 'Failed to resolve component: "grand"' in caplog.text


def test_global_components(render):
    Child = leaf()
    root = render(app(element("child")), components={"child": Child})
    assert root.children[0].options.name == "child"


def test_refs(render):
    Child = leaf()
    host = element("child", dirs={"ref": Directive(value="main-child")})
    root = render(app(host, components={"child": Child}))
    assert root.refs["mainChild"] is root.children[0]


def test_repeat_components_are_refs_lists(render):
    Child = leaf(props=["label"])
    host = element(
        "child",
        dirs={
            "repeat": directive("labels", arg="label"),
            "ref": Directive(value="items"),
        },
    )
    root = render(app(host, components={"child": Child}, data={"labels": ["a", "b"]}))

    items = root.refs["items"]
    assert [vm.data["label"] for vm in items] == ["a", "b"]
    assert all(vm.state.is_repeat and vm.state.is_component for vm in items)
    assert [n.name for n in root.el.inner] == ["$merge", "$merge"]


def test_repeat_plain_element_gets_child_scope(render):
    host = element("li", dirs={"repeat": directive("items")})
    root = render(app(host, data={"items": ["x", "y"], "title": "t"}))

    items = root.children
    assert [vm.data["_value"] for vm in items] == ["x", "y"]
    assert all(vm.data["title"] == "t" for vm in items)
    assert all(vm.state.is_repeat and not vm.state.not_public for vm in items)


def test_components_inside_for_belong_to_public_parent(render):
    Child = leaf(props=["n"])
    row = element("child", dirs={"for": directive("items"), "bind": {"n": directive("_value")}})
    root = render(app(row, components={"child": Child}, data={"items": [1, 2]}))

    assert [vm.n for vm in root.children] == [1, 2]
    assert all(vm.parent is root for vm in root.children)
    assert all(vm.state.parent.state.not_public for vm in root.children)


def test_methods_are_bound(render):
    Child = leaf(data=lambda vm: {"n": 2}, methods={"double": lambda vm: vm.n * 2})
    root = render(app(element("child"), components={"child": Child}))
    assert root.children[0].double() == 4


def test_inherit_option_copies_parent_data(render):
    Child = leaf(inherit=True)
    root = render(app(element("child"), components={"child": Child}, data={"theme": "dark"}))
    assert root.children[0].theme == "dark"


def test_invalid_data_option(render, caplog):
    Child = leaf(data={"shared": True})
    with caplog.at_level(logging.WARNING, logger="arbor"):
        root = render(app(element("child"), components={"child": Child}))
    assert "The data option type is not valid" in caplog.text
    assert "shared" not in root.children[0].data


def test_computed_properties(render, caplog):
    Child = leaf(
        data=lambda vm: {"n": 3},
        computed={"double": lambda vm: vm.n * 2, "tripled": {"get": lambda vm: vm.n * 3}, "broken": lambda vm: vm.nope},
    )
    with caplog.at_level(logging.DEBUG, logger="arbor"):
        root = render(app(element("child"), components={"child": Child}))

    child = root.children[0]
    assert (child.double, child.tripled) == (6, 9)
    assert "broken" not in child.data
    assert 'Computed property "broken"' in caplog.text


def test_mixins(render):
    calls = []
    Base = {"data": lambda vm: {"a": 1, "b": 1}, "on_created": lambda vm: calls.append(("mixin", vm.options.name))}
    Child = leaf(mixins=[Base], data=lambda vm: {"b": 2}, on_created=lambda vm: calls.append(("own", vm.options.name)))
    root = render(app(element("child"), components={"child": Child}))

    child = root.children[0]
    assert (child.a, child.b) == (1, 2)
    assert calls == [("mixin", "child"), ("own", "child")]


def test_global_mixin_applies_to_descriptors(render):
    readies = []
    mixin = {"data": lambda vm: {"theme": "dark"}, "on_ready": lambda vm: readies.append(vm.options.name)}
    Root = {"name": "root", "template": lambda: [element("child")], "components": {"child": {"name": "child"}}}
    root = render(Root, mixin=mixin)

    assert root.theme == "dark"
    assert root.children[0].theme == "dark"
    assert sorted(readies) == ["child", "root"]


def test_events_option_and_host_listeners(render):
    calls = []
    Child = leaf(events={"ping": lambda vm, value: calls.append(("ping", value))})
    on = {
        "hook:on-created": Directive(value=DirectiveValue(handler="record")),
        "saved": Directive(value=DirectiveValue(handler="record_args('saved')", has_args=True)),
    }
    host = element("child", dirs={"on": on})
    root = render(
        app(
            host,
            components={"child": Child},
            methods={
                "record": lambda vm: calls.append("created"),
                "record_args": lambda vm, what: calls.append(what),
            },
        )
    )

    child = root.children[0]
    child.emit("ping", 1)
    child.emit("saved")
    assert calls == ["created", ("ping", 1), "saved"]


def test_hook_errors_are_logged(render, caplog):
    def boom(vm):
        raise RuntimeError("boom")

    Child = leaf(on_created=boom)
    with caplog.at_level(logging.ERROR, logger="arbor"):
        root = render(app(element("child"), components={"child": Child}))
    assert 'Hook "on_created" raised RuntimeError: boom' in caplog.text
    assert root.children[0].is_ready


# -- async components ----------------------------------------------------


def test_factory_component(render):
    Child = leaf()
    root = render(app(element("lazy"), components={"lazy": lambda resolve, reject: resolve(Child)}))

    assert root.children[0].options.name == "child"
    assert root.is_ready


def test_factory_resolving_later(render):
    def lazy(resolve, reject):
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, resolve, {"name": "later", "template": lambda: [element("i")]})

    root = render(app(element("lazy"), components={"lazy": lazy}))
    assert root.children[0].options.name == "later"
    assert root.el.inner[0].inner[0].name == "i"


def test_settled_factory_is_cached_in_registry(render):
    calls = []

    def lazy(resolve, reject):
        calls.append(1)
        resolve({"name": "lazy", "template": lambda: [element("i")]})

    host = element("lazy", dirs={"repeat": directive("3")})
    root = render(app(host, components={"lazy": lazy}))

    assert len(calls) == 1
    assert [vm.options.name for vm in root.children] == ["lazy"] * 3
    assert isinstance(root.options.components["lazy"], ComponentConstructor)


def test_coroutine_component(render):
    async def lazy():
        await asyncio.sleep(0.01)
        return {"name": "coro", "template": lambda: [element("i")]}

    root = render(app(element("lazy"), components={"lazy": lazy}))
    assert root.children[0].options.name == "coro"


def test_declared_order_is_kept_for_async_children(render):
    async def slow():
        await asyncio.sleep(0.02)
        return {"name": "slow"}

    tree = [element("slow"), element("fast")]
    root = render(app(*tree, components={"slow": slow, "fast": leaf("fast")}))

    assert [vm.options.name for vm in root.state.children] == ["slow", "fast"]


def test_rejected_component(render, caplog):
    with caplog.at_level(logging.WARNING, logger="arbor"):
        root = render(
            app(
                element("lazy", None, text("content")),
                element("p"),
                components={"lazy": lambda resolve, reject: reject("offline")},
            )
        )

    host = root.el.inner[1]
    assert host.inner == []
    assert host.dirs["component"].status == "unresolved"
    assert 'Failed to resolve component: "lazy". Reason: offline' in caplog.text
    assert root.state.children == [None]
    assert root.is_ready


def test_failing_coroutine_component(render, caplog):
    async def lazy():
        raise ValueError("bad")

    with caplog.at_level(logging.WARNING, logger="arbor"):
        root = render(app(element("lazy"), components={"lazy": lazy}))
    assert "Reason: bad" in caplog.text
    assert root.is_ready


def test_async_root_component(render):
    async def load():
        return {"name": "app", "template": lambda: [element("p")]}

    root = render(load)
    assert root.options.name == "app"
    assert root.el.inner[0].name == "p"


def test_root_by_registered_name(render):
    root = render("main", components={"main": leaf("main")})
    assert root.options.name == "main"
