"""
Data-driven view engine.

Views compiled with the engine strategy are described by a ViewDef: a flat
list of node definitions plus three generated functions that push binding
values into the view (``update_directives``, ``update_renderer``) and
dispatch events (``handle_event``). EngineView interprets the definition
on top of the AppView node and injection helpers.
"""
from typing import Any, Callable, NamedTuple, Optional, Tuple

from hakoc.runtime.core import ChangeDetectionStrategy
from hakoc.runtime.view import AppView, SimpleChange, UNINITIALIZED, interpolate


class ElementDef(NamedTuple):
    parent: Optional[int]
    name: str
    attrs: Tuple = ()
    # (binding type, name, unit)
    bindings: Tuple = ()
    outputs: Tuple[str, ...] = ()
    component_view: Optional[Callable] = None
    content_index: Optional[int] = None
    # element level providers of the directives on this element
    providers: Tuple = ()


class TextDef(NamedTuple):
    parent: Optional[int]
    value: str = ""
    # interpolation strings of a bound text
    strings: Optional[Tuple[str, ...]] = None
    content_index: Optional[int] = None


class AnchorDef(NamedTuple):
    parent: Optional[int]
    template: Optional[Callable] = None
    content_index: Optional[int] = None


class ProjectionDef(NamedTuple):
    parent: Optional[int]
    slot: int
    content_index: Optional[int] = None


class DirectiveDef(NamedTuple):
    parent: int
    type: Any
    deps: Tuple = ()
    inputs: Tuple[str, ...] = ()
    # (directive property, event name)
    outputs: Tuple = ()
    hooks: Tuple[str, ...] = ()
    host_bindings: Tuple = ()
    host_listeners: Tuple[str, ...] = ()
    is_component: bool = False


class PipeDef(NamedTuple):
    type: Any
    deps: Tuple = ()
    parent: Optional[int] = None


class ViewDef(NamedTuple):
    renderer_type: Any
    nodes: Tuple
    update_directives: Optional[Callable] = None
    update_renderer: Optional[Callable] = None
    handle_event: Optional[Callable] = None
    change_detection: str = ChangeDetectionStrategy.DEFAULT.value
    log_bindings: bool = False


element_def = ElementDef
text_def = TextDef
anchor_def = AnchorDef
projection_def = ProjectionDef
directive_def = DirectiveDef
pipe_def = PipeDef


def view_def(renderer_type, nodes, update_directives=None, update_renderer=None, handle_event=None,
             change_detection=ChangeDetectionStrategy.DEFAULT.value, log_bindings=False):
    return ViewDef(renderer_type, tuple(nodes), update_directives, update_renderer, handle_event,
                   change_detection, log_bindings)


_view_defs = {}


def _resolve(definition_factory):
    definition = _view_defs.get(definition_factory)
    if definition is None:
        definition = _view_defs.setdefault(definition_factory, definition_factory())
    return definition


def view_factory(definition_factory):
    """Adapt a generated ``view_def_*`` function to the AppView factory signature."""
    def create(parent_view=None, declaration_index=None, injector=None):
        return EngineView(_resolve(definition_factory), parent_view, declaration_index, injector)
    return create


class EngineView(AppView):

    def __init__(self, definition, parent_view=None, declaration_index=None, injector=None):
        super().__init__(parent_view, declaration_index, injector)
        self.definition = definition
        self.renderer_type = definition.renderer_type
        self.change_detection = definition.change_detection
        self.instances = {}
        self.component_views = {}
        self.containers = []
        self._changes = {}
        self._inputs_changed = set()

    def _emit(self, index, event_name):
        handle_event = self.definition.handle_event

        def callback(event):
            if handle_event is None:
                return True
            return handle_event(self, index, event_name, event)
        return callback

    def create_internal(self):
        nodes = self.definition.nodes
        hosts = set()
        for index, node in enumerate(nodes):
            detached = node.parent in hosts
            if isinstance(node, ElementDef):
                self.create_element(index, node.parent, node.name, node.attrs, detached)
                for definition in node.providers:
                    self.create_provider(index, definition)
                for event_name in node.outputs:
                    self.listen(index, event_name, self._emit(index, event_name))
                if node.component_view is not None:
                    hosts.add(index)
            elif isinstance(node, TextDef):
                self.create_text(index, node.parent, node.value, detached)
            elif isinstance(node, AnchorDef):
                if node.template is not None:
                    _, container = self.create_template(index, node.parent, view_factory(node.template), detached)
                    self.containers.append(container)
                else:
                    self.create_template(index, node.parent, None, detached)
            elif isinstance(node, ProjectionDef):
                self.project(index, node.parent, node.slot, detached)
            elif isinstance(node, DirectiveDef):
                self._create_directive(index, node)
            elif isinstance(node, PipeDef):
                self.instances[index] = self.create_pipe(node.type, node.deps)
        for host in sorted(hosts):
            self._create_component_view(host)

    def _create_directive(self, index, node):
        instance = self.create_directive(node.parent, node.type, node.deps)
        self.instances[index] = instance
        for event_name in node.host_listeners:
            self.listen(node.parent, event_name, self._emit(index, event_name))
        for prop, event_name in node.outputs:
            self.subscribe(getattr(instance, prop), self._emit(index, event_name))
        if "on_destroy" in node.hooks:
            self.on_destroy(instance.on_destroy)

    def _create_component_view(self, host):
        nodes = self.definition.nodes
        element = nodes[host]
        projectable = []
        for index, node in enumerate(nodes):
            if node.parent != host or isinstance(node, (DirectiveDef, PipeDef)):
                continue
            slot = node.content_index
            if slot is None:
                continue
            while len(projectable) <= slot:
                projectable.append([])
            projectable[slot].append(self.nodes[index])
        if not projectable and self.parent_view is None:
            projectable = self.projectable_nodes
        component = next(self.instances[i] for i, n in enumerate(nodes)
                         if isinstance(n, DirectiveDef) and n.parent == host and n.is_component)
        view = view_factory(element.component_view)(self, host)
        self.component_views[host] = view
        view.create(component, host_element=self.nodes[host], projectable_nodes=projectable)

    # --- change detection ---

    def check(self, index, values):
        """Push new binding values into node ``index``."""
        node = self.definition.nodes[index]
        if isinstance(node, DirectiveDef):
            instance = self.instances[index]
            for prop, value in zip(node.inputs, values):
                key = (index, prop)
                previous = self._bindings.get(key, UNINITIALIZED)
                if self.check_binding(key, value):
                    setattr(instance, prop, value)
                    if self.definition.log_bindings:
                        self.debug_binding(node.parent, prop, value)
                    self._inputs_changed.add(node.parent)
                    if "on_changes" in node.hooks:
                        self._changes.setdefault(index, {})[prop] = SimpleChange(
                            previous, value, previous is UNINITIALIZED)
        elif isinstance(node, ElementDef):
            self._apply(index, index, node.bindings, values)
        elif isinstance(node, TextDef):
            text = interpolate(node.strings, values)
            if self.check_binding(index, text):
                self.set_text(index, text)

    def check_host(self, index, values):
        node = self.definition.nodes[index]
        self._apply(("host", index), node.parent, node.host_bindings, values)

    def _apply(self, key, element_index, bindings, values):
        for (binding_type, name, unit), value in zip(bindings, values):
            if not self.check_binding((key, name), value):
                continue
            if binding_type == "property":
                self.set_property(element_index, name, value)
                if self.definition.log_bindings:
                    self.debug_binding(element_index, name, value)
            elif binding_type == "attribute":
                self.set_attribute(element_index, name, value)
            elif binding_type == "class":
                self.set_class(element_index, name, value)
            else:
                self.set_style(element_index, name, value, unit)

    def pipe(self, index):
        return self.instances[index]

    def _call_hooks(self, *hooks):
        for index, node in enumerate(self.definition.nodes):
            if not isinstance(node, DirectiveDef):
                continue
            instance = self.instances[index]
            for hook in hooks:
                if hook not in node.hooks:
                    continue
                if hook == "on_changes":
                    changes = self._changes.pop(index, None)
                    if changes:
                        instance.on_changes(changes)
                elif hook.endswith("_init"):
                    if self.first_check:
                        getattr(instance, hook)()
                else:
                    getattr(instance, hook)()

    def detect_changes_internal(self):
        definition = self.definition
        if definition.update_directives is not None:
            definition.update_directives(self)
        self._call_hooks("on_changes", "on_init", "do_check")
        for container in self.containers:
            container.detect_changes()
        self._call_hooks("after_content_init", "after_content_checked")
        if definition.update_renderer is not None:
            definition.update_renderer(self)
        for host, view in self.component_views.items():
            if host in self._inputs_changed:
                view.mark_for_check()
            view.detect_changes()
        self._inputs_changed.clear()
        self._call_hooks("after_view_init", "after_view_checked")

    def destroy_internal(self):
        for view in self.component_views.values():
            view.destroy()
