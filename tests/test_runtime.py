"""
Unit tests for the runtime used by generated factories.
"""
import pytest

from hakoc.runtime import core
from hakoc.runtime.common import ForOfDirective, IfDirective, SlicePipe, UpperPipe
from hakoc.runtime.dom import Element, Text
from hakoc.runtime.view import (
    UNINITIALIZED, AppView, ComponentFactory, ComponentFactoryResolver, CyclicDependencyError, ModuleFactory,
    NoProviderError, RendererType, bootstrap_module, check_changed, interpolate, provider, stringify,
)


def dep(token, optional=False):
    return (token, optional, False, False, False)


class AppModule:
    pass


class Logger:
    pass


class Service:
    def __init__(self, logger):
        self.logger = logger


class TestChangeDetectionHelpers:
    """Tests for the helpers generated views call during checks."""

    def test_check_changed(self):
        """Values change unless they are identical or equal."""
        items = [1]
        assert check_changed(UNINITIALIZED, None)
        assert not check_changed(items, items)
        assert not check_changed("a", "a")
        assert check_changed(1, 2)
        assert check_changed([1], [1])

    def test_interpolate_and_stringify(self):
        """Interpolation renders None as empty and booleans in lower case."""
        assert interpolate(("a", "b", "c"), (1, None)) == "a1bc"
        assert stringify(True) == "true"
        assert stringify(None) == ""

    def test_renderer_type_assigns_its_id_once(self):
        """A renderer type gets one component id and scopes its styles with it."""
        renderer_type = RendererType("emulated", ["p[_hc-content-%COMP%] {}"])
        assert renderer_type.id is None
        component_id = renderer_type.ensure_id()
        assert renderer_type.ensure_id() == component_id
        assert renderer_type.styles == [f"p[_hc-content-{component_id}] {{}}"]
        assert renderer_type.content_attr == f"_hc-content-{component_id}"
        assert RendererType("none").host_attr is None


class TestModuleInjector:
    """Tests for module level dependency injection."""

    def injector(self, *providers, parent=None):
        return ModuleFactory(AppModule, providers).create(parent).injector

    def test_module_instance_and_injector_token(self):
        """The module instance is created and the injector provides itself."""
        injector = self.injector()
        assert isinstance(injector.instance, AppModule)
        assert injector.get(core.Injector) is injector

    def test_later_providers_win(self):
        """A later provider for the same token replaces an earlier one."""
        injector = self.injector(provider("URL", use_value="a"), provider("URL", use_value="b"))
        assert injector.get("URL") == "b"

    def test_class_providers_are_singletons_with_deps(self):
        """Class providers are created once, with their dependencies injected."""
        injector = self.injector(provider(Logger, use_class=Logger),
                                 provider(Service, use_class=Service, deps=[dep(Logger)]))
        service = injector.get(Service)
        assert injector.get(Service) is service
        assert service.logger is injector.get(Logger)

    def test_multi_providers_collect(self):
        """Multi providers collect their values into a list."""
        injector = self.injector(provider("HOOKS", use_value=1, multi=True), provider("HOOKS", use_value=2, multi=True))
        assert injector.get("HOOKS") == [1, 2]

    def test_factories_existing_and_optional(self):
        """Existing aliases, factories and optional dependencies resolve."""
        injector = self.injector(
            provider("NAME", use_value="hako"),
            provider("ALIAS", use_existing="NAME"),
            provider("MAYBE", use_factory=lambda value: value, deps=[dep("MISSING", optional=True)]),
        )
        assert injector.get("ALIAS") == "hako"
        assert injector.get("MAYBE") is None

    def test_missing_and_cyclic(self):
        """Missing tokens and cyclic providers raise NoProviderError."""
        injector = self.injector(
            provider("A", use_factory=lambda b: b, deps=[dep("B")]),
            provider("B", use_factory=lambda a: a, deps=[dep("A")]),
        )
        with pytest.raises(NoProviderError, match="No provider for Logger!"):
            injector.get(Logger)
        assert injector.get(Logger, None) is None
        with pytest.raises(CyclicDependencyError):
            injector.get("A")

    def test_parent_injector(self):
        """Tokens missing here are looked up in the parent injector."""
        parent = self.injector(provider("URL", use_value="parent"))
        assert self.injector(parent=parent).get("URL") == "parent"

    def test_component_factory_resolver(self):
        """Only entry components can be resolved to factories."""
        with pytest.raises(NoProviderError, match="entry_components"):
            ComponentFactoryResolver().resolve_component_factory(Service)


class Greeting:
    def __init__(self, title):
        self.title = title


class GreetingView(AppView):
    renderer_type = RendererType("emulated", ["h1[_hc-content-%COMP%] {}"])

    def create_internal(self):
        self.create_element(0, None, "h1", [("id", "title")])
        self.create_text(1, 0)

    def detect_changes_internal(self):
        value = self.interpolate(("Hi ", "!"), (self.component.title,))
        if self.check_binding(1, value):
            self.set_text(1, value)


class GreetingHostView(AppView):

    def create_internal(self):
        host = self.create_element(0, None, "x-greeting")
        self.component_view = GreetingView(self, 0)
        component = self.create_directive(0, Greeting, [dep("TITLE")])
        self.component_view.create(component, host_element=host)

    def detect_changes_internal(self):
        self.component_view.detect_changes()


class TestAppView:
    """Tests for views, embedded views and element injectors."""

    def test_bootstrap_renders_the_component(self):
        """Bootstrapping creates, checks and renders the root component."""
        factory = ComponentFactory("x-greeting", GreetingHostView, Greeting)
        module_ref = bootstrap_module(ModuleFactory(AppModule, [provider("TITLE", use_value="Ann")], [factory]))
        component_id = GreetingView.renderer_type.id
        assert module_ref.components[0].instance.title == "Ann"
        assert module_ref.components[0].html == (
            f'<x-greeting _hc-host-{component_id}><h1 id="title" _hc-content-{component_id}>Hi Ann!</h1></x-greeting>')

    def test_on_push_views_wait_for_mark_for_check(self):
        """On push views skip checks until marked."""
        view = GreetingView()
        view.change_detection = core.ChangeDetectionStrategy.ON_PUSH.value
        component = Greeting("a")
        view.create(component)
        view.detect_changes()
        component.title = "b"
        view.detect_changes()
        assert view.nodes[1].value == "Hi a!"
        view.mark_for_check()
        view.detect_changes()
        assert view.nodes[1].value == "Hi b!"

    def test_listeners_mark_the_view(self):
        """Handling an event calls the listener and marks the view dirty."""
        view = GreetingView().create(Greeting("a"))
        view.detect_changes()
        clicks = []
        view.listen(0, "click", clicks.append)
        assert view.nodes[0].dispatch_event("click", "payload")
        assert clicks == ["payload"] and view.dirty

    def test_element_injector(self):
        """Element injectors walk up the element tree and then to the module."""
        view = AppView(injector=ModuleFactory(AppModule, [provider("URL", use_value="u")]).create().injector)
        view.create(object())
        view.create_element(0, None, "div")
        view.create_element(1, 0, "span")
        element_ref = view.inject(1, core.ElementRef, skip_self=True)
        assert element_ref.native_element is view.nodes[0]
        assert view.inject(1, "URL") == "u"
        assert view.inject(1, "URL", self_only=True, optional=True) is None
        with pytest.raises(NoProviderError):
            view.inject(1, "OTHER")

    def test_pure_pipes_rerun_on_changed_arguments(self):
        """A pure pipe call reruns only when its arguments change."""
        calls = []

        class Counting:
            def transform(self, value):
                calls.append(value)
                return value * 2

        view = AppView()
        pipe = Counting()
        assert view.pure_pipe("k", pipe, 2) == 4
        assert view.pure_pipe("k", pipe, 2) == 4
        assert view.pure_pipe("k", pipe, 3) == 6
        assert calls == [2, 3]


class LabelView(AppView):

    def create_internal(self):
        self.create_text(0, None)

    def detect_changes_internal(self):
        self.set_text(0, stringify(self.context.implicit))


class ListView(AppView):

    def create_internal(self):
        self.create_element(0, None, "ul")
        template_ref, view_container = self.create_template(1, 0, LabelView)
        self.for_of = self.create_directive(1, ForOfDirective, [dep(core.ViewContainerRef), dep(core.TemplateRef)])
        self.show = IfDirective(view_container, template_ref)
        self.container = view_container

    def detect_changes_internal(self):
        self.for_of.for_of = self.component
        self.for_of.do_check()
        self.container.detect_changes()


class TestCommonDirectives:
    """Tests for the if and for_of directives and the common pipes."""

    def test_for_of_stamps_and_removes_views(self):
        """for_of keeps one embedded view per item."""
        items = ["a", "b", "c"]
        view = ListView().create(items)
        view.detect_changes()
        assert view.root_nodes[0].render() == "<ul><!--container-->abc</ul>"
        del items[1:]
        view.detect_changes()
        assert view.root_nodes[0].render() == "<ul><!--container-->a</ul>"
        assert view.container.get(0).context.first

    def test_if_toggles_its_view(self):
        """if creates its view for a truthy condition and removes it otherwise."""
        view = ListView().create([])
        view.show.condition = "yes"
        view.container.detect_changes()
        assert view.root_nodes[0].render() == "<ul><!--container-->yes</ul>"
        view.show.condition = None
        assert view.root_nodes[0].render() == "<ul><!--container--></ul>"

    def test_pipes(self):
        """The common pipes transform their input."""
        assert UpperPipe().transform("hi") == "HI"
        assert SlicePipe().transform([1, 2, 3], 1) == [2, 3]


class TestDom:
    """Tests for the in-memory DOM."""

    def test_element_rendering(self):
        """Elements render attributes, classes, styles and children."""
        element = Element("div")
        element.attributes["class"] = "a b"
        element.classes.update({"b": False, "c": True})
        element.styles["width"] = "10px"
        element.properties["title"] = "T"
        element.append_child(Text("<b>"))
        assert element.render() == '<div title="T" class="a c" style="width: 10px">&lt;b&gt;</div>'
        assert element.text_content == "<b>"

    def test_query(self):
        """query finds the first matching descendant."""
        root = Element("section")
        inner = Element("p")
        root.append_child(Element("div"))
        root.children[0].append_child(inner)
        assert root.query("p") is inner
        assert root.query("table") is None
