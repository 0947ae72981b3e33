"""
Runtime support for generated views, component factories and module injectors.

Generated code subclasses AppView (classic strategy) or describes its
nodes as data interpreted by hakoc.runtime.engine; both build on the
node, binding and dependency injection helpers defined here.
"""
import itertools
from typing import Any, NamedTuple, Optional, Tuple

from hakoc.runtime import core
from hakoc.runtime.dom import Anchor, Element, ProjectionSlot, Text

UNINITIALIZED = object()
_NOT_FOUND = object()
_VALUE_TYPES = (str, int, float, bool, type(None), tuple, frozenset)
_type_ids = itertools.count()


class NoProviderError(Exception):
    pass


class CyclicDependencyError(Exception):
    pass


def check_changed(old, new):
    if old is UNINITIALIZED:
        return True
    if old is new:
        return False
    if isinstance(old, _VALUE_TYPES) and isinstance(new, _VALUE_TYPES):
        return old != new
    return True


def stringify(value):
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def interpolate(strings, values):
    parts = [strings[0]]
    for value, string in zip(values, strings[1:]):
        parts.append(stringify(value))
        parts.append(string)
    return "".join(parts)


def token_name(token):
    return getattr(token, "__name__", None) or repr(token)


class SimpleChange:

    def __init__(self, previous_value, current_value, first_change=None):
        if first_change is None:
            first_change = previous_value is UNINITIALIZED
        self.previous_value = None if previous_value is UNINITIALIZED else previous_value
        self.current_value = current_value
        self.first_change = first_change

    def __repr__(self):
        return f"SimpleChange({self.previous_value!r} -> {self.current_value!r})"


class RendererType:
    """Styles and encapsulation of one component; the id is assigned on first use."""

    def __init__(self, encapsulation, styles=()):
        self.encapsulation = encapsulation
        self.raw_styles = list(styles)
        self.id = None
        self.styles = []

    def ensure_id(self):
        if self.id is None:
            self.id = f"c{next(_type_ids)}"
            self.styles = [style.replace("%COMP%", self.id) for style in self.raw_styles]
        return self.id

    @property
    def content_attr(self):
        if self.encapsulation != core.ViewEncapsulation.EMULATED.value:
            return None
        return f"_hc-content-{self.ensure_id()}"

    @property
    def host_attr(self):
        if self.encapsulation != core.ViewEncapsulation.EMULATED.value:
            return None
        return f"_hc-host-{self.ensure_id()}"


class ElementRef(core.ElementRef):
    pass


class TemplateRef(core.TemplateRef):
    """Creates embedded views of a ``<template>`` declared in ``parent_view``."""

    def __init__(self, parent_view, anchor_index, view_factory):
        self.parent_view = parent_view
        self.anchor_index = anchor_index
        self.view_factory = view_factory

    @property
    def element_ref(self):
        return self.parent_view.get_provider(self.anchor_index, core.ElementRef)

    def create_embedded_view(self, context=None):
        view = self.view_factory(self.parent_view, self.anchor_index)
        return view.create(self.parent_view.component, context if context is not None else object())


class ViewContainerRef(core.ViewContainerRef):
    """Embedded views attached to an anchor node, rendered in order after it."""

    def __init__(self, parent_view, anchor_index):
        self.parent_view = parent_view
        self.anchor = parent_view.nodes[anchor_index]

    @property
    def views(self):
        return self.anchor.views

    def __len__(self):
        return len(self.anchor.views)

    def get(self, index):
        return self.anchor.views[index]

    def index_of(self, view):
        return self.anchor.views.index(view)

    def create_embedded_view(self, template_ref, context=None, index=None):
        view = template_ref.create_embedded_view(context)
        return self.insert(view, index)

    def insert(self, view, index=None):
        if index is None:
            self.anchor.views.append(view)
        else:
            self.anchor.views.insert(index, view)
        view.container = self
        return view

    def move(self, view, index):
        self.anchor.views.remove(view)
        self.anchor.views.insert(index, view)
        return view

    def detach(self, index=None):
        view = self.anchor.views.pop(-1 if index is None else index)
        view.container = None
        return view

    def remove(self, index=None):
        self.detach(index).destroy()

    def clear(self):
        while self.anchor.views:
            self.remove()

    def detect_changes(self):
        for view in list(self.anchor.views):
            view.detect_changes()


class AppView:
    """Base class of generated views.

    Nodes are addressed by their index in the template. Each node can carry
    providers (its ElementRef, the directives on it); dependency lookups
    walk node parents, then the declaring node in the parent view, then
    the module injector.
    """
    renderer_type: Optional[RendererType] = None
    change_detection = core.ChangeDetectionStrategy.DEFAULT.value

    def __init__(self, parent_view=None, declaration_index=None, injector=None):
        self.parent_view = parent_view
        self.declaration_index = declaration_index
        if injector is None and parent_view is not None:
            injector = parent_view.injector
        self.injector = injector
        self.component = None
        self.context = None
        self.host_element = None
        self.container = None
        self.nodes = {}
        self.root_nodes = []
        self.projectable_nodes = []
        self.first_check = True
        self.dirty = True
        self.destroyed = False
        self._node_parent = {}
        self._providers = {}
        self._bindings = {}
        self._disposables = []
        self._destroy_hooks = []

    # --- lifecycle ---

    def create(self, component, context=None, host_element=None, projectable_nodes=None):
        self.component = component
        self.context = component if context is None else context
        self.host_element = host_element
        self.projectable_nodes = list(projectable_nodes or ())
        if host_element is not None and self.renderer_type is not None:
            host_attr = self.renderer_type.host_attr
            if host_attr:
                host_element.attributes[host_attr] = ""
        self.create_internal()
        return self

    def create_internal(self):
        pass

    def detect_changes_internal(self):
        pass

    def destroy_internal(self):
        pass

    def detect_changes(self):
        if self.destroyed:
            raise RuntimeError("Cannot check a destroyed view")
        if (self.change_detection == core.ChangeDetectionStrategy.ON_PUSH.value
                and not self.dirty and not self.first_check):
            return
        self.detect_changes_internal()
        self.first_check = False
        self.dirty = False

    def mark_for_check(self):
        view = self
        while view is not None:
            view.dirty = True
            view = view.parent_view

    def destroy(self):
        if self.destroyed:
            return
        self.destroyed = True
        for node in self.nodes.values():
            if isinstance(node, Anchor):
                for view in list(node.views):
                    view.destroy()
        self.destroy_internal()
        for hook in self._destroy_hooks:
            hook()
        for dispose in self._disposables:
            dispose()

    def on_destroy(self, hook):
        self._destroy_hooks.append(hook)

    # --- nodes ---

    def _attach(self, index, parent_index, node, detached):
        self.nodes[index] = node
        self._node_parent[index] = parent_index
        if detached:
            return node
        if parent_index is not None:
            self.nodes[parent_index].append_child(node)
        elif self.host_element is not None:
            self.host_element.append_child(node)
        else:
            self.root_nodes.append(node)
        return node

    def create_element(self, index, parent_index, name, attrs=(), detached=False):
        element = Element(name)
        for attr_name, value in attrs:
            element.attributes[attr_name] = value
        if self.renderer_type is not None:
            content_attr = self.renderer_type.content_attr
            if content_attr:
                element.attributes[content_attr] = ""
        self.add_provider(index, core.ElementRef, ElementRef(element))
        return self._attach(index, parent_index, element, detached)

    def create_text(self, index, parent_index, value="", detached=False):
        return self._attach(index, parent_index, Text(value), detached)

    def create_template(self, index, parent_index, view_factory, detached=False):
        """Anchor for an embedded template; returns its (TemplateRef, ViewContainerRef)."""
        anchor = self._attach(index, parent_index, Anchor(), detached)
        self.add_provider(index, core.ElementRef, ElementRef(anchor))
        template_ref = TemplateRef(self, index, view_factory)
        view_container = ViewContainerRef(self, index)
        self.add_provider(index, core.TemplateRef, template_ref)
        self.add_provider(index, core.ViewContainerRef, view_container)
        return template_ref, view_container

    def project(self, index, parent_index, slot, detached=False):
        nodes = self.projectable_nodes[slot] if slot < len(self.projectable_nodes) else ()
        return self._attach(index, parent_index, ProjectionSlot(nodes), detached)

    def listen(self, index, event_name, handler):
        def callback(event):
            self.mark_for_check()
            return handler(event)
        self.nodes[index].add_listener(event_name, callback)

    def subscribe(self, emitter, handler):
        def callback(event):
            self.mark_for_check()
            return handler(event)
        self._disposables.append(emitter.subscribe(callback))

    # --- bindings ---

    def check_binding(self, key, value):
        old = self._bindings.get(key, UNINITIALIZED)
        if check_changed(old, value):
            self._bindings[key] = value
            return True
        return False

    def set_property(self, index, name, value):
        self.nodes[index].properties[name] = value

    def set_attribute(self, index, name, value):
        attributes = self.nodes[index].attributes
        if value is None:
            attributes.pop(name, None)
        else:
            attributes[name] = stringify(value)

    def set_class(self, index, name, value):
        self.nodes[index].classes[name] = bool(value)

    def set_style(self, index, name, value, unit=None):
        styles = self.nodes[index].styles
        if value is None:
            styles.pop(name, None)
        else:
            styles[name] = f"{value}{unit or ''}"

    def set_text(self, index, value):
        self.nodes[index].value = value

    def debug_binding(self, index, name, value):
        self.nodes[index].attributes[f"hc-reflect-{name}"] = stringify(value)[:30]

    def interpolate(self, strings, values):
        return interpolate(strings, values)

    def pure_pipe(self, key, pipe, *args):
        """Call ``pipe.transform(*args)`` unless the arguments are unchanged since the last call."""
        previous = self._bindings.get(("pipe", key), UNINITIALIZED)
        if previous is not UNINITIALIZED and not any(
                check_changed(old, new) for old, new in zip(previous[0], args)):
            return previous[1]
        result = pipe.transform(*args)
        self._bindings[("pipe", key)] = (args, result)
        return result

    # --- dependency injection ---

    def add_provider(self, index, token, value):
        self._providers.setdefault(index, {})[token] = value

    def get_provider(self, index, token):
        return self._providers.get(index, {}).get(token)

    def create_directive(self, index, directive_type, deps=()):
        instance = directive_type(*[self.inject(index, *dep) for dep in deps])
        self.add_provider(index, directive_type, instance)
        return instance

    def create_pipe(self, pipe_type, deps=()):
        return pipe_type(*[self.inject(None, *dep) for dep in deps])

    def create_provider(self, index, definition):
        """Instantiate an element level provider and register it on node ``index``."""
        if definition.use_value is not UNINITIALIZED:
            value = definition.use_value
        elif definition.use_existing is not None:
            value = self.inject(index, definition.use_existing)
        else:
            args = [self.inject(index, *dep) for dep in definition.deps]
            if definition.use_factory is not None:
                value = definition.use_factory(*args)
            else:
                value = (definition.use_class or definition.token)(*args)
        if definition.multi:
            value = self._providers.get(index, {}).get(definition.token, []) + [value]
        self.add_provider(index, definition.token, value)
        return value

    def template_ref(self, index):
        return self.get_provider(index, core.TemplateRef)

    def inject(self, index, token, optional=False, self_only=False, skip_self=False, host=False):
        view = self
        if skip_self and index is not None:
            index = self._node_parent.get(index)
        while view is not None:
            while index is not None:
                providers = view._providers.get(index)
                if providers and token in providers:
                    return providers[token]
                if self_only:
                    return self._not_found(token, optional)
                index = view._node_parent.get(index)
            if host and view.host_element is not None:
                return self._not_found(token, optional)
            index = view.declaration_index
            view = view.parent_view
        if self.injector is not None and not self_only:
            value = self.injector.get(token, _NOT_FOUND)
            if value is not _NOT_FOUND:
                return value
        return self._not_found(token, optional)

    def _not_found(self, token, optional):
        if optional:
            return None
        raise NoProviderError(f"No provider for {token_name(token)}!")


class ComponentRef:

    def __init__(self, host_view, instance, location):
        self.host_view = host_view
        self.instance = instance
        self.location = location

    def detect_changes(self):
        self.host_view.detect_changes()

    def destroy(self):
        self.host_view.destroy()

    @property
    def html(self):
        return self.location.render()


class ComponentFactory:
    """Creates a component together with its host element from a host view factory."""

    def __init__(self, selector, host_view_factory, component_type):
        self.selector = selector
        self.host_view_factory = host_view_factory
        self.component_type = component_type

    def create(self, injector, projectable_nodes=None):
        view = self.host_view_factory(None, None, injector)
        view.create(None, None, projectable_nodes=projectable_nodes)
        return ComponentRef(view, view.get_provider(0, self.component_type), view.nodes[0])


class ComponentFactoryResolver:

    def __init__(self, factories=()):
        self._factories = {factory.component_type: factory for factory in factories}

    def resolve_component_factory(self, component_type):
        factory = self._factories.get(component_type)
        if factory is None:
            raise NoProviderError(f"No component factory found for {token_name(component_type)}. "
                                  f"Did you add it to entry_components?")
        return factory


class ProviderDef(NamedTuple):
    token: Any
    use_class: Any = None
    use_value: Any = UNINITIALIZED
    use_existing: Any = None
    use_factory: Any = None
    deps: Tuple = ()
    multi: bool = False


provider = ProviderDef


class ModuleInjector(core.Injector):
    """Lazily instantiates module providers; later providers override earlier ones."""

    def __init__(self, factory, parent=None):
        self.factory = factory
        self.parent = parent
        self._defs = {}
        self._instances = {}
        self._resolving = set()
        for definition in factory.providers:
            if definition.multi:
                self._defs.setdefault(definition.token, []).append(definition)
            else:
                self._defs[definition.token] = [definition]
        self._defs.setdefault(factory.module_type, [ProviderDef(factory.module_type, use_class=factory.module_type)])
        self.instance = self.get(factory.module_type)

    def get(self, token, not_found_value=core.Injector.THROW_IF_NOT_FOUND):
        if token is core.Injector or token is ModuleInjector:
            return self
        if token in self._instances:
            return self._instances[token]
        definitions = self._defs.get(token)
        if definitions is None:
            if self.parent is not None:
                return self.parent.get(token, not_found_value)
            if not_found_value is core.Injector.THROW_IF_NOT_FOUND:
                raise NoProviderError(f"No provider for {token_name(token)}!")
            return not_found_value
        if token in self._resolving:
            raise CyclicDependencyError(f"Cannot instantiate cyclic dependency! {token_name(token)}")
        self._resolving.add(token)
        try:
            if definitions[0].multi:
                value = [self._instantiate(d) for d in definitions]
            else:
                value = self._instantiate(definitions[0])
        finally:
            self._resolving.discard(token)
        self._instances[token] = value
        return value

    def _resolve_deps(self, deps):
        values = []
        for token, optional, *_ in deps:
            values.append(self.get(token, None if optional else core.Injector.THROW_IF_NOT_FOUND))
        return values

    def _instantiate(self, definition):
        if definition.use_value is not UNINITIALIZED:
            return definition.use_value
        if definition.use_existing is not None:
            return self.get(definition.use_existing)
        if definition.use_factory is not None:
            return definition.use_factory(*self._resolve_deps(definition.deps))
        cls = definition.use_class or definition.token
        return cls(*self._resolve_deps(definition.deps))


class ModuleFactory:

    def __init__(self, module_type, providers=(), bootstrap=(), entry_components=()):
        self.module_type = module_type
        self.providers = list(providers)
        self.bootstrap = list(bootstrap)
        self.entry_components = list(entry_components)

    def create(self, parent=None):
        return ModuleRef(self, ModuleInjector(self, parent))


class ModuleRef:

    def __init__(self, factory, injector):
        self.factory = factory
        self.injector = injector
        self.instance = injector.instance
        self.components = []

    def bootstrap(self):
        for factory in self.factory.bootstrap:
            component_ref = factory.create(self.injector)
            component_ref.detect_changes()
            self.components.append(component_ref)
        return self.components


def bootstrap_module(module_factory, parent=None):
    """Create the module injector and render its bootstrap components."""
    module_ref = module_factory.create(parent)
    module_ref.bootstrap()
    return module_ref
