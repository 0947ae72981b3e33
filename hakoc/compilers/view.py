"""
View compilation: template AST to view factories.

A component template becomes one component view plus one embedded view
per ``<template>``. Nodes of a view are numbered depth first; each
directive takes the index right after its element, and the pipes used by
the template are numbered after the last node of the component view.
Both strategies share that numbering and the name scoping of binding
expressions:

* ClassicViewCompiler emits one AppView subclass per view, with directive
  wrapper classes doing input tracking and lifecycle hooks.
* EngineViewCompiler emits ``view_def_*`` functions describing the nodes
  as data, plus update and event functions run by hakoc.runtime.engine.
"""
import re

from hakoc.compilers.expression import ExpressionConverter, NameScope, binding_target, renderer_call
from hakoc.compilers.providers import deps_expr, provider_expr
from hakoc.compilers.wrapper import WrapperRegistry
from hakoc.config import ChangeDetectionStrategy
from hakoc.host import factory_file_name
from hakoc.identifiers import Identifiers
from hakoc.output.ast import (
    Assign, ClassDef, Comment, CompileResult, ExprStatement, ExternalReference, FunctionDef, If, Lambda,
    ListExpr, Raw, Return, TupleExpr, call, expr, method,
)
from hakoc.template.ast import BoundTextAst, ContentAst, ElementAst, EmbeddedTemplateAst, PropertyBindingType, TextAst
from hakoc.template.selector import CssSelector

HOOKS_AFTER_CONTENT = ("after_content_init", "after_content_checked")
HOOKS_AFTER_VIEW = ("after_view_init", "after_view_checked")


def _line(source):
    return ExprStatement(Raw(source))


def _identifier(name):
    return re.sub(r"\W", "_", name)


class _NodeModel:

    def __init__(self, kind, ast, index, parent, detached):
        self.kind = kind
        self.ast = ast
        self.index = index
        self.parent = parent
        self.detached = detached
        # (DirectiveAst, node index)
        self.directives = []
        self.children = []
        self.embedded = None

    @property
    def component(self):
        for directive_ast, index in self.directives:
            if directive_ast.directive.is_component:
                return directive_ast, index
        return None


class _ViewModel:

    def __init__(self, component, view_index, parent=None, variables=()):
        self.component = component
        self.view_index = view_index
        self.parent = parent
        self.variables = list(variables)
        self.nodes = []
        self.references = {}
        self.pipes = {}
        self._next_index = 0

    def allocate(self):
        index = self._next_index
        self._next_index += 1
        return index

    def add(self, kind, ast, parent, detached):
        node = _NodeModel(kind, ast, self.allocate(), parent.index if parent is not None else None, detached)
        self.nodes.append(node)
        if parent is not None:
            parent.children.append(node)
        return node

    def chain(self):
        """This view and its declaring views, with their distance from this one."""
        view, distance = self, 0
        while view is not None:
            yield view, distance
            view = view.parent
            distance += 1


def build_view_models(component, template_ast, used_pipes=()):
    root = _ViewModel(component, 0)
    views = [root]
    _add_nodes(root, template_ast, None, views)
    for pipe in used_pipes:
        root.pipes[pipe.name] = root.allocate()
    return views


def _add_nodes(view, asts, parent, views):
    # children of a component host are projected, not attached
    detached = parent is not None and parent.component is not None
    for ast in asts:
        if isinstance(ast, TextAst):
            view.add("text", ast, parent, detached)
        elif isinstance(ast, BoundTextAst):
            view.add("bound_text", ast, parent, detached)
        elif isinstance(ast, ContentAst):
            view.add("content", ast, parent, detached)
        elif isinstance(ast, ElementAst):
            node = view.add("element", ast, parent, detached)
            _add_directives(view, node, ast)
            _add_nodes(view, ast.children, node, views)
        elif isinstance(ast, EmbeddedTemplateAst):
            node = view.add("template", ast, parent, detached)
            _add_directives(view, node, ast)
            embedded = _ViewModel(view.component, len(views), view, ast.variables)
            views.append(embedded)
            node.embedded = embedded
            _add_nodes(embedded, ast.children, None, views)


def _add_directives(view, node, ast):
    for directive_ast in ast.directives:
        node.directives.append((directive_ast, view.allocate()))
    for reference in ast.references:
        if reference.is_template_ref:
            view.references[reference.name] = ("template", node.index)
        elif reference.value is None:
            view.references[reference.name] = ("element", node.index)
        else:
            index = next(i for d, i in node.directives if d.directive.type.reference == reference.value)
            view.references[reference.name] = ("directive", index)


def host_element(component):
    """Tag name and attributes of the element a component factory creates."""
    name = "div"
    attrs = []
    if component.selector:
        selector = CssSelector.parse(component.selector)[0]
        name = selector.element or "div"
        if selector.class_names:
            attrs.append(("class", " ".join(selector.class_names)))
        attrs.extend(a for a in selector.attrs if a[0].lower() != "class")
    attrs.extend(component.host_attributes.items())
    return name, attrs


class _ViewCompilerBase:
    root = "self"

    def __init__(self, config, schema_registry, binding_parser_factory):
        self.config = config
        self.schema_registry = schema_registry
        self.binding_parser_factory = binding_parser_factory

    # --- naming ---

    def _reference_source(self, root, kind, index):
        raise NotImplementedError

    def _pipe_source(self, root, component_view, name):
        raise NotImplementedError

    def _component_ref(self, current, target, name):
        """Reference to a generated name of ``target``'s factory file as seen from ``current``'s."""
        if target.source_file == current.source_file:
            return Raw(name)
        return expr(ExternalReference(name, file_path=factory_file_name(target.source_file)))

    def _encapsulation(self, component):
        return component.template.encapsulation or self.config.default_encapsulation

    def _renderer_type(self, var_name, component, styles_var):
        encapsulation = self._encapsulation(component)
        return Assign(var_name, call(expr(Identifiers.RendererType), encapsulation.value, Raw(styles_var)))

    def _is_on_push(self, component):
        return component.change_detection == ChangeDetectionStrategy.ON_PUSH

    def _doc(self, component, view):
        if not self.config.gen_debug_info:
            return None
        source = component.template.template_url or component.source_file
        kind = "component view" if view.view_index == 0 else "embedded view"
        return f"{component.name} {kind} {view.view_index} ({source})"

    # --- expressions ---

    def _converter(self, view, used_pipes):
        names = {}
        chain = list(view.chain())
        for ancestor, distance in reversed(chain):
            root = self.root + ".parent_view" * distance
            for variable in ancestor.variables:
                names[variable.name] = f"{root}.context.{variable.value}"
            for name, (kind, index) in ancestor.references.items():
                names[name] = self._reference_source(root, kind, index)
        component_view, depth = chain[-1]
        pipes_root = self.root + ".parent_view" * depth
        pure = frozenset(p.name for p in used_pipes if p.pure)
        return ExpressionConverter(NameScope(self.root, f"{self.root}.component", names),
                                   lambda name: self._pipe_source(pipes_root, component_view, name), pure)

    def _host_converter(self, directive_source):
        return ExpressionConverter(NameScope(self.root, directive_source))

    def _action_statements(self, converter, handler):
        statements = []
        for source, is_expression in converter.convert_action(handler):
            if is_expression:
                statements.append(If(Raw(f"({source}) is False"), (Assign("allow_default", expr(False)),)))
            else:
                statements.append(_line(source))
        return statements

    def _parsed_host_properties(self, directive):
        parser = self.binding_parser_factory(directive)
        result = []
        for name, source in directive.host_properties.items():
            binding = parser.parse_binding(source, directive.line)
            if binding is not None:
                result.append((binding_target(name, self.schema_registry), binding))
        return result

    def _parsed_host_listeners(self, directive):
        parser = self.binding_parser_factory(directive)
        result = []
        for event_name, source in directive.host_listeners.items():
            handler = parser.parse_action(source, directive.line)
            if handler is not None:
                result.append((event_name, handler))
        return result

    # --- nodes ---

    def _element_attrs(self, node):
        attrs = [(a.name, a.value) for a in node.ast.attrs]
        for directive_ast, _ in node.directives:
            attrs.extend(directive_ast.directive.host_attributes.items())
        return attrs

    def _element_providers(self, node):
        providers = []
        for directive_ast, _ in node.directives:
            directive = directive_ast.directive
            providers.extend(directive.providers)
            providers.extend(directive.view_providers)
        return providers

    def _projectable_slots(self, node):
        slots = []
        for child in node.children:
            slot = child.ast.content_index
            if slot is None:
                continue
            while len(slots) <= slot:
                slots.append([])
            slots[slot].append(child.index)
        return slots


class ClassicViewCompiler(_ViewCompilerBase):
    """One AppView subclass per view; directives are driven through generated wrapper classes."""
    root = "self"

    def __init__(self, config, schema_registry, binding_parser_factory, wrapper_compiler):
        super().__init__(config, schema_registry, binding_parser_factory)
        self.wrapper_compiler = wrapper_compiler

    def _reference_source(self, root, kind, index):
        if kind == "template":
            return f"{root}.template_ref({index})"
        if kind == "directive":
            return f"{root}._dir_{index}.directive"
        return f"{root}.nodes[{index}]"

    def _pipe_source(self, root, component_view, name):
        return f"{root}._pipe_{name}"

    def view_class_name(self, component, view_index=0):
        return f"View_{component.name}{view_index}"

    def compile_component(self, component, template_ast, styles_var, used_pipes=(), wrappers=None):
        """Views, host view and ``<Name>Factory`` of one component.

        Wrapper classes are collected in ``wrappers`` when given (one
        registry per factory file); otherwise they are added to the result.
        """
        own_wrappers = wrappers is None
        if own_wrappers:
            wrappers = WrapperRegistry()
        name = component.name
        renderer_var = f"renderer_type_{name}"
        result = CompileResult([self._renderer_type(renderer_var, component, styles_var)])
        views = build_view_models(component, template_ast, used_pipes)
        for view in views:
            result.statements.append(self._view_class(view, renderer_var, used_pipes, wrappers))
        host_view_name = f"HostView_{name}"
        result.statements.append(self._host_view(component, host_view_name, wrappers))
        factory_name = f"{name}Factory"
        result.statements.append(Assign(factory_name, call(
            expr(Identifiers.ComponentFactory), component.selector, Raw(host_view_name), component.type.reference)))
        result.exported_vars.extend([self.view_class_name(component), factory_name])
        if own_wrappers:
            result.statements[0:0] = wrappers.compile(self.wrapper_compiler)
        return result

    def _view_class(self, view, renderer_var, used_pipes, wrappers):
        component = view.component
        converter = self._converter(view, used_pipes)
        log = self.config.log_binding_update
        create, update_directives, containers, after_content = [], [], [], []
        update_renderer, component_views, after_view, destroy, handlers = [], [], [], [], []
        if view.view_index == 0:
            for pipe in used_pipes:
                create.append(Assign(f"self._pipe_{pipe.name}", method(
                    "self", "create_pipe", pipe.type.reference, deps_expr(pipe.type.di_deps))))
        for node in view.nodes:
            index = node.index
            ast = node.ast
            placement = {"detached": True} if node.detached else {}
            if self.config.gen_debug_info and ast.line:
                create.append(Comment(f"line {ast.line}"))
            if node.kind == "text":
                create.append(ExprStatement(method("self", "create_text", index, node.parent, ast.value, **placement)))
            elif node.kind == "bound_text":
                create.append(ExprStatement(method("self", "create_text", index, node.parent, "", **placement)))
                update_renderer.append(Assign("value", Raw(converter.convert_interpolation(ast.value, str(index)))))
                update_renderer.append(If(Raw(f"self.check_binding({index}, value)"), (
                    _line(f"self.set_text({index}, value)"),)))
            elif node.kind == "content":
                create.append(ExprStatement(method("self", "project", index, node.parent, ast.index, **placement)))
            elif node.kind == "template":
                class_name = self.view_class_name(component, node.embedded.view_index)
                create.append(Assign(f"_, self._vc_{index}", method(
                    "self", "create_template", index, node.parent, Raw(class_name), **placement)))
                containers.append(_line(f"self._vc_{index}.detect_changes()"))
            else:
                create.append(ExprStatement(method(
                    "self", "create_element", index, node.parent, ast.name, self._element_attrs(node), **placement)))
                for event in ast.outputs:
                    handler_name = f"_handle_{index}_{_identifier(event.name)}"
                    create.append(ExprStatement(method("self", "listen", index, event.name,
                                                       Raw(f"self.{handler_name}"))))
                    handlers.append(self._handler_method(handler_name, converter, event.handler))
                for prop in ast.inputs:
                    update_renderer.extend(self._element_binding(converter, index, prop, log))
            for provider in self._element_providers(node):
                create.append(ExprStatement(method("self", "create_provider", index, provider_expr(provider))))
            for directive_ast, dir_index in node.directives:
                self._directive(view, node, directive_ast, dir_index, converter, wrappers, create,
                                update_directives, after_content, update_renderer, after_view, destroy, handlers)
        for node in view.nodes:
            component_node = node.component
            if component_node is None:
                continue
            directive_ast, dir_index = component_node
            child = directive_ast.directive
            slots = ListExpr(tuple(ListExpr(tuple(Raw(f"self.nodes[{i}]") for i in slot))
                                   for slot in self._projectable_slots(node)))
            attr = f"self._comp_view_{node.index}"
            create.append(Assign(attr, call(self._component_ref(component, child, self.view_class_name(child)),
                                             Raw("self"), node.index)))
            create.append(ExprStatement(method(attr, "create", Raw(f"self._dir_{dir_index}.directive"),
                                               host_element=Raw(f"self.nodes[{node.index}]"),
                                               projectable_nodes=slots)))
            component_views.append(_line(f"{attr}.detect_changes()"))
            destroy.append(_line(f"{attr}.destroy()"))
        body = [Assign("renderer_type", Raw(renderer_var))]
        if view.view_index == 0 and self._is_on_push(component):
            body.append(Assign("change_detection", expr(ChangeDetectionStrategy.ON_PUSH.value)))
        body.append(FunctionDef("create_internal", ("self",), tuple(create)))
        detect = update_directives + containers + after_content + update_renderer + component_views + after_view
        if detect:
            body.append(FunctionDef("detect_changes_internal", ("self",), tuple(detect)))
        if destroy:
            body.append(FunctionDef("destroy_internal", ("self",), tuple(destroy)))
        body.extend(handlers)
        return ClassDef(self.view_class_name(component, view.view_index), (expr(Identifiers.AppView),),
                        tuple(body), self._doc(component, view))

    def _element_binding(self, converter, index, prop, log):
        statements = [_line(renderer_call("self", prop.type.value, index, prop.name, "value", prop.unit))]
        if log and prop.type == PropertyBindingType.PROPERTY:
            statements.append(_line(f"self.debug_binding({index}, {prop.name!r}, value)"))
        return [
            Assign("value", Raw(converter.convert_value(prop.value, str(index)))),
            If(Raw(f"self.check_binding(({index}, {prop.name!r}), value)"), tuple(statements)),
        ]

    def _directive(self, view, node, directive_ast, dir_index, converter, wrappers, create, update_directives,
                   after_content, update_renderer, after_view, destroy, handlers):
        directive = directive_ast.directive
        hooks = set(directive.type.lifecycle_hooks)
        attr = f"self._dir_{dir_index}"
        wrapper = wrappers.name_for(directive)
        create.append(Assign(attr, call(wrapper, method(
            "self", "create_directive", node.index, directive.type.reference, deps_expr(directive.type.di_deps)))))
        for prop, handler in directive_ast.outputs:
            handler_name = f"_handle_{dir_index}_{_identifier(prop)}"
            create.append(ExprStatement(method("self", "subscribe", Raw(f"{attr}.directive.{prop}"),
                                               Raw(f"self.{handler_name}"))))
            handlers.append(self._handler_method(handler_name, converter, handler))
        for event_name in directive.host_listeners:
            create.append(ExprStatement(method("self", "listen", node.index, event_name, Lambda(
                ("event",), Raw(f"{attr}.handle_event({event_name!r}, event)")))))
        for input_ast in directive_ast.inputs:
            update_directives.append(Assign("value", Raw(converter.convert_value(input_ast.value, str(dir_index)))))
            update_directives.append(_line(f"{attr}.check_{input_ast.directive_name}(value)"))
            if self.config.log_binding_update:
                update_directives.append(If(
                    Raw(f"self.check_binding(({dir_index}, {input_ast.directive_name!r}), value)"),
                    (_line(f"self.debug_binding({node.index}, {input_ast.directive_name!r}, value)"),)))
        if directive.is_component:
            update_directives.append(If(Raw(f"{attr}.detect_changes_internal(self)"), (
                _line(f"self._comp_view_{node.index}.mark_for_check()"),)))
        else:
            update_directives.append(_line(f"{attr}.detect_changes_internal(self)"))
        if hooks.intersection(HOOKS_AFTER_CONTENT):
            after_content.append(_line(f"{attr}.after_content(self)"))
        if directive.host_properties:
            update_renderer.append(_line(f"{attr}.check_host(self, {node.index})"))
        if hooks.intersection(HOOKS_AFTER_VIEW):
            after_view.append(_line(f"{attr}.after_view(self)"))
        if "on_destroy" in hooks:
            destroy.append(_line(f"{attr}.destroy()"))

    def _handler_method(self, name, converter, handler):
        body = [Assign("allow_default", expr(True))]
        body.extend(self._action_statements(converter, handler))
        body.append(Return(Raw("allow_default")))
        return FunctionDef(name, ("self", "event"), tuple(body))

    def _host_view(self, component, class_name, wrappers):
        hooks = set(component.type.lifecycle_hooks)
        wrapper = wrappers.name_for(component)
        element_name, attrs = host_element(component)
        create = [ExprStatement(method("self", "create_element", 0, None, element_name, attrs))]
        for provider in component.providers + component.view_providers:
            create.append(ExprStatement(method("self", "create_provider", 0, provider_expr(provider))))
        create.append(Assign("self._dir_1", call(wrapper, method(
            "self", "create_directive", 0, component.type.reference, deps_expr(component.type.di_deps)))))
        for event_name in component.host_listeners:
            create.append(ExprStatement(method("self", "listen", 0, event_name, Lambda(
                ("event",), Raw(f"self._dir_1.handle_event({event_name!r}, event)")))))
        create.append(Assign("self._comp_view_0", call(
            self._component_ref(component, component, self.view_class_name(component)), Raw("self"), 0)))
        create.append(ExprStatement(method("self._comp_view_0", "create", Raw("self._dir_1.directive"),
                                           host_element=Raw("self.nodes[0]"),
                                           projectable_nodes=Raw("self.projectable_nodes"))))
        detect = [_line("self._dir_1.detect_changes_internal(self)")]
        if hooks.intersection(HOOKS_AFTER_CONTENT):
            detect.append(_line("self._dir_1.after_content(self)"))
        if component.host_properties:
            detect.append(_line("self._dir_1.check_host(self, 0)"))
        detect.append(_line("self._comp_view_0.detect_changes()"))
        if hooks.intersection(HOOKS_AFTER_VIEW):
            detect.append(_line("self._dir_1.after_view(self)"))
        destroy = [_line("self._dir_1.destroy()")] if "on_destroy" in hooks else []
        destroy.append(_line("self._comp_view_0.destroy()"))
        return ClassDef(class_name, (expr(Identifiers.AppView),), (
            FunctionDef("create_internal", ("self",), tuple(create)),
            FunctionDef("detect_changes_internal", ("self",), tuple(detect)),
            FunctionDef("destroy_internal", ("self",), tuple(destroy)),
        ))


class EngineViewCompiler(_ViewCompilerBase):
    """Views as data: ``view_def_*`` functions interpreted by hakoc.runtime.engine."""
    root = "view"

    def _reference_source(self, root, kind, index):
        if kind == "template":
            return f"{root}.template_ref({index})"
        if kind == "directive":
            return f"{root}.instances[{index}]"
        return f"{root}.nodes[{index}]"

    def _pipe_source(self, root, component_view, name):
        return f"{root}.pipe({component_view.pipes[name]})"

    def view_def_name(self, component, view_index=0):
        return f"view_def_{component.name}{view_index}"

    def compile_component(self, component, template_ast, styles_var, used_pipes=(), wrappers=None):
        name = component.name
        renderer_var = f"renderer_type_{name}"
        result = CompileResult([self._renderer_type(renderer_var, component, styles_var)])
        for view in build_view_models(component, template_ast, used_pipes):
            result.statements.extend(self._view_def(view, renderer_var, used_pipes))
        host_def_name = f"host_view_def_{name}"
        result.statements.extend(self._host_view_def(component, host_def_name))
        factory_name = f"{name}Factory"
        result.statements.append(Assign(factory_name, call(
            expr(Identifiers.ComponentFactory), component.selector,
            call(expr(Identifiers.view_factory), Raw(host_def_name)), component.type.reference)))
        result.exported_vars.extend([self.view_def_name(component), factory_name])
        return result

    def _functions(self, suffix, update_directives, update_renderer, events):
        """update_directives, update_renderer and handle_event functions; None for the empty ones."""
        statements = []
        names = []
        for prefix, body in (("update_directives", update_directives), ("update_renderer", update_renderer)):
            if body:
                statements.append(FunctionDef(f"{prefix}_{suffix}", ("view",), tuple(body)))
                names.append(Raw(f"{prefix}_{suffix}"))
            else:
                names.append(expr(None))
        if events:
            body = [Assign("allow_default", expr(True))]
            for index, event_name, handler_body in events:
                body.append(If(Raw(f"index == {index} and event_name == {event_name!r}"), tuple(handler_body)))
            body.append(Return(Raw("allow_default")))
            statements.append(FunctionDef(f"handle_event_{suffix}", ("view", "index", "event_name", "event"),
                                          tuple(body)))
            names.append(Raw(f"handle_event_{suffix}"))
        else:
            names.append(expr(None))
        return statements, names

    def _check(self, index, sources):
        return ExprStatement(method("view", "check", index, TupleExpr(tuple(Raw(s) for s in sources))))

    def _view_def(self, view, renderer_var, used_pipes):
        component = view.component
        converter = self._converter(view, used_pipes)
        nodes, update_directives, update_renderer, events = [], [], [], []
        for node in view.nodes:
            index = node.index
            ast = node.ast
            placement = {}
            if ast.content_index is not None:
                placement["content_index"] = ast.content_index
            if node.kind == "text":
                nodes.append(call(expr(Identifiers.text_def), node.parent, ast.value, **placement))
            elif node.kind == "bound_text":
                interpolation = ast.value
                nodes.append(call(expr(Identifiers.text_def), node.parent, "", tuple(interpolation.strings),
                                  **placement))
                update_renderer.append(self._check(index, [
                    converter.convert_binding(e, str(index)) for e in interpolation.expressions]))
            elif node.kind == "content":
                nodes.append(call(expr(Identifiers.projection_def), node.parent, ast.index, **placement))
            elif node.kind == "template":
                nodes.append(call(expr(Identifiers.anchor_def), node.parent,
                                  Raw(self.view_def_name(component, node.embedded.view_index)), **placement))
            else:
                nodes.append(self._element_def(component, node, placement))
                if ast.inputs:
                    update_renderer.append(self._check(index, [
                        converter.convert_value(p.value, str(index)) for p in ast.inputs]))
                for event in ast.outputs:
                    events.append((index, event.name, self._action_statements(converter, event.handler)))
            for directive_ast, dir_index in node.directives:
                directive = directive_ast.directive
                nodes.append(self._directive_def(node.index, directive, directive_ast))
                if directive_ast.inputs:
                    update_directives.append(self._check(dir_index, [
                        converter.convert_value(i.value, str(dir_index)) for i in directive_ast.inputs]))
                host_converter = self._host_converter(f"view.instances[{dir_index}]")
                if directive_ast.host_properties:
                    update_renderer.append(ExprStatement(method("view", "check_host", dir_index, TupleExpr(tuple(
                        Raw(host_converter.convert_value(p.value)) for p in directive_ast.host_properties)))))
                for prop, handler in directive_ast.outputs:
                    events.append((dir_index, directive.outputs[prop], self._action_statements(converter, handler)))
                for event in directive_ast.host_events:
                    events.append((dir_index, event.name, self._action_statements(host_converter, event.handler)))
        for pipe in used_pipes if view.view_index == 0 else ():
            nodes.append(call(expr(Identifiers.pipe_def), pipe.type.reference, deps_expr(pipe.type.di_deps)))
        suffix = f"{component.name}{view.view_index}"
        statements, functions = self._functions(suffix, update_directives, update_renderer, events)
        change_detection = ChangeDetectionStrategy.DEFAULT.value
        if view.view_index == 0 and self._is_on_push(component):
            change_detection = ChangeDetectionStrategy.ON_PUSH.value
        args = [Raw(renderer_var), ListExpr(tuple(nodes))] + functions + [expr(change_detection)]
        kwargs = {"log_bindings": True} if self.config.log_binding_update else {}
        statements.append(FunctionDef(self.view_def_name(component, view.view_index), (), (
            Return(call(expr(Identifiers.view_def), *args, **kwargs)),), doc=self._doc(component, view)))
        return statements

    def _element_def(self, component, node, placement):
        ast = node.ast
        kwargs = dict(placement)
        component_node = node.component
        if component_node is not None:
            child = component_node[0].directive
            kwargs["component_view"] = self._component_ref(component, child, self.view_def_name(child))
        providers = self._element_providers(node)
        if providers:
            kwargs["providers"] = ListExpr(tuple(provider_expr(p) for p in providers))
        bindings = [(p.type.value, p.name, p.unit) for p in ast.inputs]
        return call(expr(Identifiers.element_def), node.parent, ast.name, self._element_attrs(node), bindings,
                    [e.name for e in ast.outputs], **kwargs)

    def _directive_def(self, element_index, directive, directive_ast=None, host_bindings=None, host_listeners=None):
        if directive_ast is not None:
            inputs = [i.directive_name for i in directive_ast.inputs]
            outputs = [(prop, directive.outputs[prop]) for prop, _ in directive_ast.outputs]
            host_bindings = [(p.type.value, p.name, p.unit) for p in directive_ast.host_properties]
            host_listeners = [e.name for e in directive_ast.host_events]
        else:
            inputs, outputs = [], []
        kwargs = {"is_component": True} if directive.is_component else {}
        return call(expr(Identifiers.directive_def), element_index, directive.type.reference,
                    deps_expr(directive.type.di_deps), inputs, outputs, list(directive.type.lifecycle_hooks),
                    host_bindings or [], host_listeners or [], **kwargs)

    def _host_view_def(self, component, def_name):
        element_name, attrs = host_element(component)
        kwargs = {"component_view": self._component_ref(component, component, self.view_def_name(component))}
        providers = component.providers + component.view_providers
        if providers:
            kwargs["providers"] = ListExpr(tuple(provider_expr(p) for p in providers))
        host_properties = self._parsed_host_properties(component)
        host_listeners = self._parsed_host_listeners(component)
        nodes = [
            call(expr(Identifiers.element_def), None, element_name, attrs, **kwargs),
            self._directive_def(0, component, host_bindings=[target for target, _ in host_properties],
                                host_listeners=[event_name for event_name, _ in host_listeners]),
        ]
        converter = self._host_converter("view.instances[1]")
        update_renderer = []
        if host_properties:
            update_renderer.append(ExprStatement(method("view", "check_host", 1, TupleExpr(tuple(
                Raw(converter.convert_binding(binding)) for _, binding in host_properties)))))
        events = [(1, event_name, self._action_statements(converter, handler))
                  for event_name, handler in host_listeners]
        statements, functions = self._functions(f"host_{component.name}", [], update_renderer, events)
        statements.append(FunctionDef(def_name, (), (
            Return(call(expr(Identifiers.view_def), None, ListExpr(tuple(nodes)), *functions)),)))
        return statements
