"""
Directive wrappers for the classic view strategy.

A wrapper owns one directive instance inside a generated view. It tracks
the last value of every input, records changes for ``on_changes``, runs
the directive's lifecycle hooks, applies its host bindings and dispatches
its host listeners. One wrapper class is generated per directive per
factory file.
"""
from hakoc.compilers.expression import ExpressionConverter, NameScope, binding_target, renderer_call
from hakoc.identifiers import Identifiers
from hakoc.output.ast import Assign, ClassDef, ExprStatement, FunctionDef, If, Raw, Return, call, expr

DIRECTIVE = "self.directive"


def _line(source):
    return ExprStatement(Raw(source))


def wrapper_class_name(directive):
    return f"Wrapper_{directive.name}"


class DirectiveWrapperCompiler:

    def __init__(self, config, schema_registry, binding_parser_factory):
        self.config = config
        self.schema_registry = schema_registry
        # builds a BindingParser for host expressions of one directive
        self.binding_parser_factory = binding_parser_factory

    def compile(self, directive, class_name=None):
        hooks = set(directive.type.lifecycle_hooks)
        body = [self._init(directive, hooks)]
        for prop in directive.inputs:
            body.append(self._check_input(prop, "on_changes" in hooks))
        body.append(self._detect_changes(hooks))
        body.append(self._hook_method("after_content", hooks, ("after_content_init", "after_content_checked")))
        body.append(self._hook_method("after_view", hooks, ("after_view_init", "after_view_checked")))
        body.append(self._check_host(directive))
        body.append(self._handle_event(directive))
        body.append(FunctionDef("destroy", ("self",),
                                (_line(f"{DIRECTIVE}.on_destroy()"),) if "on_destroy" in hooks else ()))
        return ClassDef(class_name or wrapper_class_name(directive), (), tuple(body))

    def _init(self, directive, hooks):
        body = [
            Assign("self.directive", Raw("directive")),
            Assign("self.changed", expr(False)),
        ]
        if "on_changes" in hooks:
            body.append(Assign("self.changes", expr({})))
        for prop in directive.inputs:
            body.append(Assign(f"self._expr_{prop}", expr(Identifiers.UNINITIALIZED)))
        return FunctionDef("__init__", ("self", "directive"), tuple(body))

    def _check_input(self, prop, records_changes):
        previous = f"self._expr_{prop}"
        changed = [Assign("self.changed", expr(True))]
        if records_changes:
            change = call(expr(Identifiers.SimpleChange), Raw(previous), Raw("value"))
            changed.append(Assign(f"self.changes[{prop!r}]", change))
        changed.append(Assign(f"{DIRECTIVE}.{prop}", Raw("value")))
        changed.append(Assign(previous, Raw("value")))
        condition = call(expr(Identifiers.check_changed), Raw(previous), Raw("value"))
        return FunctionDef(f"check_{prop}", ("self", "value"), (If(condition, tuple(changed)),))

    def _detect_changes(self, hooks):
        body = [Assign("changed", Raw("self.changed")), Assign("self.changed", expr(False))]
        if "on_changes" in hooks:
            body.append(If(Raw("self.changes"), (
                _line(f"{DIRECTIVE}.on_changes(self.changes)"),
                Assign("self.changes", expr({})),
            )))
        if "on_init" in hooks:
            body.append(If(Raw("view.first_check"), (_line(f"{DIRECTIVE}.on_init()"),)))
        if "do_check" in hooks:
            body.append(_line(f"{DIRECTIVE}.do_check()"))
        body.append(Return(Raw("changed")))
        return FunctionDef("detect_changes_internal", ("self", "view"), tuple(body))

    def _hook_method(self, name, hooks, names):
        init_hook, checked_hook = names
        body = []
        if init_hook in hooks:
            body.append(If(Raw("view.first_check"), (_line(f"{DIRECTIVE}.{init_hook}()"),)))
        if checked_hook in hooks:
            body.append(_line(f"{DIRECTIVE}.{checked_hook}()"))
        return FunctionDef(name, ("self", "view"), tuple(body))

    def _check_host(self, directive):
        body = []
        if directive.host_properties:
            parser = self.binding_parser_factory(directive)
            converter = ExpressionConverter(NameScope("view", DIRECTIVE))
            for name, source in directive.host_properties.items():
                binding = parser.parse_binding(source, directive.line)
                if binding is None:
                    continue
                binding_type, target, unit = binding_target(name, self.schema_registry)
                key = ("host", name)
                body.append(Assign("value", Raw(converter.convert_binding(binding))))
                body.append(If(Raw(f"view.check_binding((index, {key!r}), value)"), (
                    _line(renderer_call("view", binding_type, "index", target, "value", unit)),
                )))
        return FunctionDef("check_host", ("self", "view", "index"), tuple(body))

    def _handle_event(self, directive):
        body = []
        if directive.host_listeners:
            parser = self.binding_parser_factory(directive)
            converter = ExpressionConverter(NameScope("view", DIRECTIVE))
            for event_name, source in directive.host_listeners.items():
                handler = parser.parse_action(source, directive.line)
                if handler is None:
                    continue
                statements = tuple(_line(s) for s, _ in converter.convert_action(handler))
                body.append(If(Raw(f"event_name == {event_name!r}"), statements))
        body.append(Return(expr(True)))
        return FunctionDef("handle_event", ("self", "event_name", "event"), tuple(body))


class WrapperRegistry:
    """Wrapper classes needed by one factory file, in order of first use."""

    def __init__(self):
        self._names = {}
        self._directives = []

    def name_for(self, directive):
        key = directive.type.reference
        name = self._names.get(key)
        if name is None:
            base = name = wrapper_class_name(directive)
            taken = set(self._names.values())
            suffix = 1
            while name in taken:
                name = f"{base}_{suffix}"
                suffix += 1
            self._names[key] = name
            self._directives.append(directive)
        return name

    def compile(self, compiler):
        return [compiler.compile(d, self._names[d.type.reference]) for d in self._directives]
