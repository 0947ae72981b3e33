"""
Template parser: markup plus the directives and pipes in scope -> binding IR.

Binding expressions are Python expressions checked with ``ast``. A ``|``
chain at the top level of a binding whose right hand sides are pipe names
(optionally called with arguments) applies pipes. Event handlers are one
or more expression or assignment statements separated by ``;`` and see
the event payload as ``event`` (``$event`` is accepted too).
"""
import ast as pyast
import re
from typing import List, NamedTuple

from hakoc.console import debug_log
from hakoc.errors import HakoCompileError, ParseError, SchemaError, get_line_context
from hakoc.template.ast import (
    AttrAst, BindingExpression, BoundDirectivePropertyAst, BoundElementPropertyAst, BoundEventAst,
    BoundTextAst, ContentAst, DirectiveAst, ElementAst, EmbeddedTemplateAst, Interpolation,
    PropertyBindingType, ReferenceAst, TextAst, VariableAst,
)
from hakoc.template.html_parser import HtmlElement, HtmlText
from hakoc.template.selector import CssSelector, SelectorMatcher

_BIND_NAME_RE = re.compile(
    r"^(?:(bind-)|(let-)|(ref-|#)|(on-)|(bindon-))(.+)$"
    r"|^\[\(([^\)]+)\)\]$"
    r"|^\[([^\]]+)\]$"
    r"|^\(([^\)]+)\)$"
)
_INTERPOLATION_START = "{{"
_INTERPOLATION_END = "}}"
_EVENT_ALIAS_RE = re.compile(r"\$event\b")
_LET_RE = re.compile(r"let\s+([A-Za-z_]\w*)\s*(?:=\s*([A-Za-z_]\w*))?\s*")
_KEY_RE = re.compile(r"([A-Za-z_]\w*)\s*:?\s*")
# @trigger, [@trigger] and (@trigger.done)
_ANIMATION_RE = re.compile(r"^(?:\[\(?|\(|bind-|on-|bindon-)?@")

EVENT_VARIABLE = "event"
IMPLICIT_VARIABLE = "implicit"
TEMPLATE_ELEMENT = "template"
CONTENT_ELEMENT = "content"
LEGACY_TEMPLATE_ATTR = "template"
TEMPLATE_ATTR_PREFIX = "*"

_FORBIDDEN = {
    pyast.Lambda: "lambdas",
    pyast.NamedExpr: "assignment expressions",
    pyast.Yield: "yield",
    pyast.YieldFrom: "yield",
    pyast.Await: "await",
    pyast.Starred: "unpacking",
}


def _pipe_name(node):
    if isinstance(node, pyast.Name):
        return node.id
    if isinstance(node, pyast.Call) and isinstance(node.func, pyast.Name):
        return node.func.id
    return None


class TemplateParseResult(NamedTuple):
    template_ast: list
    used_pipes: list
    errors: List[HakoCompileError]
    warnings: List[HakoCompileError]


class BindingParser:
    """Parses binding, action and interpolation expressions, collecting errors."""

    def __init__(self, pipes_by_name, url, source):
        self.pipes_by_name = pipes_by_name
        self.url = url
        self.source = source
        self.used_pipes = {}
        self.errors = []

    def _location(self, line, column):
        return f"{self.url}@{line}:{column}"

    def _error(self, message, source, line, column):
        self.errors.append(ParseError(
            f"Parser Error: {message} in [{source}] in {self._location(line, column)}",
            line_number=line, column=column, context=get_line_context(self.source, line),
            file_path=self.url,
        ))

    def _check(self, tree, source, line, column):
        for node in pyast.walk(tree):
            for kind, label in _FORBIDDEN.items():
                if isinstance(node, kind):
                    self._error(f"Bindings cannot contain {label}", source, line, column)
                    return False
        return True

    def _split_pipes(self, node, source, line, column):
        pipes = []
        while isinstance(node, pyast.BinOp) and isinstance(node.op, pyast.BitOr):
            right = node.right
            if isinstance(right, pyast.Name):
                name, args = right.id, ()
            elif (isinstance(right, pyast.Call) and isinstance(right.func, pyast.Name)
                  and not right.keywords):
                name, args = right.func.id, tuple(right.args)
            else:
                break
            pipe = self.pipes_by_name.get(name)
            if pipe is None:
                self._error(f"The pipe '{name}' could not be found", source, line, column)
                return None, ()
            self.used_pipes.setdefault(name, pipe)
            pipes.append((name, args))
            node = node.left
        pipes.reverse()
        return node, tuple(pipes)

    def parse_binding(self, source, line=None, column=None):
        text = _EVENT_ALIAS_RE.sub(EVENT_VARIABLE, source).strip()
        if not text:
            self._error("Empty expressions are not allowed", source, line, column)
            return None
        try:
            tree = pyast.parse(text, mode="eval")
        except SyntaxError as e:
            self._error(e.msg, source, line, column)
            return None
        if not self._check(tree, source, line, column):
            return None
        expression, pipes = self._split_pipes(tree.body, source, line, column)
        if expression is None:
            return None
        return BindingExpression(source.strip(), expression, pipes, self._location(line, column))

    def parse_action(self, source, line=None, column=None):
        text = _EVENT_ALIAS_RE.sub(EVENT_VARIABLE, source).strip()
        if not text:
            self._error("Empty expressions are not allowed", source, line, column)
            return None
        try:
            tree = pyast.parse(text, mode="exec")
        except SyntaxError as e:
            self._error(e.msg, source, line, column)
            return None
        for statement in tree.body:
            if not isinstance(statement, (pyast.Expr, pyast.Assign, pyast.AugAssign)):
                self._error("Event handlers may only contain expressions and assignments", source, line, column)
                return None
            value = statement.value
            if (isinstance(value, pyast.BinOp) and isinstance(value.op, pyast.BitOr)
                    and _pipe_name(value.right) in self.pipes_by_name):
                self._error("Cannot have a pipe in an action expression", source, line, column)
                return None
        if not self._check(tree, source, line, column):
            return None
        return BindingExpression(source.strip(), tree, (), self._location(line, column))

    def parse_interpolation(self, source, line=None, column=None):
        """Interpolation for text containing ``{{ }}``, or None if there is none."""
        if _INTERPOLATION_START not in source:
            return None
        strings = []
        expressions = []
        position = 0
        while True:
            start = source.find(_INTERPOLATION_START, position)
            if start < 0:
                strings.append(source[position:])
                break
            end = source.find(_INTERPOLATION_END, start + 2)
            if end < 0:
                self._error("Unterminated interpolation, missing '}}'", source, line, column)
                return None
            strings.append(source[position:start])
            inner = source[start + 2:end]
            if not inner.strip():
                self._error("Blank expressions are not allowed in interpolated strings", source, line, column)
                return None
            expression = self.parse_binding(inner, line, column)
            if expression is None:
                return None
            expressions.append(expression)
            position = end + 2
        return Interpolation(source, tuple(strings), tuple(expressions), self._location(line, column))


def parse_template_bindings(directive_name, value):
    """Parse structural microsyntax, e.g. ``let item of items; let i = index``.

    Returns ``(bindings, variables)``: bindings are ``(key, expression
    source or None)`` with keys prefixed by the directive name, variables
    are ``(name, context key)``.
    """
    bindings = [(directive_name, None)]
    variables = []
    for index, segment in enumerate(value.split(";")):
        text = segment.strip()
        first_expression = index == 0
        while text:
            let = _LET_RE.match(text)
            if let:
                variables.append((let.group(1), let.group(2) or IMPLICIT_VARIABLE))
                text = text[let.end():].strip()
                first_expression = False
                continue
            if first_expression:
                bindings[0] = (directive_name, text)
                break
            key = _KEY_RE.match(text)
            if key is None:
                raise ParseError(f"Invalid microsyntax '{segment.strip()}'")
            expression = text[key.end():].strip()
            bindings.append((f"{directive_name}_{key.group(1)}", expression or None))
            break
    return bindings, variables


class _ContentProjector:
    """Finds which ``<content>`` slot of a component a child node is projected into."""

    def __init__(self, selectors):
        self.matcher = SelectorMatcher()
        self.wildcard = None
        for index, selector in enumerate(selectors):
            if selector == "*":
                if self.wildcard is None:
                    self.wildcard = index
            else:
                self.matcher.add_selectables(CssSelector.parse(selector), index)

    def find_index(self, node):
        if not isinstance(node, HtmlElement):
            return self.wildcard
        indexes = []
        subject = CssSelector.for_element(node.name, [(a.name, a.value) for a in node.attrs])
        self.matcher.match(subject, lambda selector, index: indexes.append(index))
        return min(indexes) if indexes else self.wildcard


class _ParsedAttrs:

    def __init__(self):
        self.attrs = []
        self.props = []
        self.events = []
        self.refs = []
        self.variables = []
        self.template_bindings = None


class _TemplateBuilder:

    def __init__(self, parser, binding_parser, matcher, schemas, url, source):
        self.parser = parser
        self.config = parser.config
        self.schema_registry = parser.schema_registry
        self.binding_parser = binding_parser
        self.matcher = matcher
        self.schemas = schemas
        self.url = url
        self.source = source
        self.errors = []
        self.warnings = []
        self.content_count = 0

    def _error(self, message, line=None, column=None, error_class=ParseError):
        self.errors.append(error_class(message, line_number=line, column=column,
                                       context=get_line_context(self.source, line), file_path=self.url))

    def _report_schema(self, message, line=None, column=None):
        problem = SchemaError(message, line_number=line, column=column,
                              context=get_line_context(self.source, line), file_path=self.url)
        if self.config.schema_error_severity == "error":
            self.errors.append(problem)
        else:
            self.warnings.append(problem)

    def build(self, nodes, projector=None):
        result = []
        for node in nodes:
            index = projector.find_index(node) if projector is not None else None
            if isinstance(node, HtmlText):
                built = self._text(node, index)
            elif isinstance(node, HtmlElement):
                built = self._element(node, index)
            else:
                built = None
            if built is not None:
                result.append(built)
        return result

    def _text(self, node, content_index):
        value = re.sub(r"\s+", " ", node.value)
        if not value.strip():
            return None
        interpolation = self.binding_parser.parse_interpolation(value, node.line, node.column)
        if interpolation is not None:
            return BoundTextAst(interpolation, content_index, node.line)
        return TextAst(value, content_index, node.line)

    def _parse_attrs(self, node, is_template):
        parsed = _ParsedAttrs()
        for attr in node.attrs:
            name, value, line, column = attr.name, attr.value, attr.line, attr.column
            if name == "i18n" or name.startswith("i18n-"):
                continue
            if name.startswith(TEMPLATE_ATTR_PREFIX):
                self._structural(parsed, name[1:], value, line, column)
                continue
            if name == LEGACY_TEMPLATE_ATTR and not is_template and self.config.enable_legacy_template:
                key, _, rest = value.strip().partition(" ")
                self._structural(parsed, key, rest, line, column)
                continue
            if _ANIMATION_RE.match(name):
                self._error(f"Animation trigger '{name}' is not supported; templates can't declare animations.",
                            line, column)
                continue
            match = _BIND_NAME_RE.match(name)
            if match is None:
                interpolation = self.binding_parser.parse_interpolation(value, line, column)
                if interpolation is not None:
                    parsed.props.append((name, interpolation, line, column))
                else:
                    parsed.attrs.append(AttrAst(name, value, line))
            elif match.group(1) or match.group(8):
                self._property(parsed, match.group(6) or match.group(8), value, line, column)
            elif match.group(2):
                if is_template:
                    parsed.variables.append(VariableAst(match.group(6), value or IMPLICIT_VARIABLE, line))
                else:
                    self._error('"let-" is only supported on template elements.', line, column)
            elif match.group(3):
                parsed.refs.append((match.group(6), value, line))
            elif match.group(4) or match.group(9):
                self._event(parsed, match.group(6) or match.group(9), value, line, column)
            else:
                target = match.group(6) or match.group(7)
                self._property(parsed, target, value, line, column)
                self._event(parsed, f"{target}_change", f"{value} = {EVENT_VARIABLE}", line, column)
        return parsed

    def _structural(self, parsed, key, value, line, column):
        if parsed.template_bindings is not None:
            self._error("Can't have multiple template bindings on one element. Use only one attribute "
                        "prefixed with *", line, column)
            return
        try:
            bindings, variables = parse_template_bindings(key, value)
        except ParseError as e:
            self._error(e.message, line, column)
            return
        parsed.template_bindings = (bindings, variables, line, column)

    def _property(self, parsed, name, value, line, column):
        expression = self.binding_parser.parse_binding(value, line, column)
        if expression is not None:
            parsed.props.append((name, expression, line, column))

    def _event(self, parsed, name, value, line, column):
        handler = self.binding_parser.parse_action(value, line, column)
        if handler is not None:
            parsed.events.append(BoundEventAst(name, handler, line))

    def _match(self, element_name, attrs, props):
        subject = CssSelector.for_element(
            element_name, [(a.name, a.value) for a in attrs] + [(p[0], "") for p in props])
        matched = []
        self.matcher.match(subject, lambda selector, directive: matched.append(directive))
        # components first, otherwise registration order
        return sorted(matched, key=lambda d: not d.is_component)

    def _directive_asts(self, matched, parsed, line, column):
        props = {p[0]: p for p in parsed.props}
        attrs = {a.name: a.value for a in parsed.attrs}
        consumed_props = set()
        consumed_events = set()
        directive_asts = []
        for directive in matched:
            directive_ast = DirectiveAst(directive)
            for prop, template_name in directive.inputs.items():
                if template_name in props:
                    directive_ast.inputs.append(
                        BoundDirectivePropertyAst(prop, template_name, props[template_name][1], line))
                    consumed_props.add(template_name)
                elif template_name in attrs:
                    directive_ast.inputs.append(
                        BoundDirectivePropertyAst(prop, template_name, attrs[template_name], line))
            for prop, event_name in directive.outputs.items():
                for event in parsed.events:
                    if event.name == event_name:
                        directive_ast.outputs.append((prop, event.handler))
                        consumed_events.add(id(event))
            for name, source in directive.host_properties.items():
                expression = self.binding_parser.parse_binding(source, line, column)
                if expression is not None:
                    directive_ast.host_properties.append(self._element_property(
                        None, name, expression, line, column, validate=False))
            for name, source in directive.host_listeners.items():
                handler = self.binding_parser.parse_action(source, line, column)
                if handler is not None:
                    directive_ast.host_events.append(BoundEventAst(name, handler, line))
            directive_asts.append(directive_ast)
        remaining_props = [p for p in parsed.props if p[0] not in consumed_props]
        remaining_events = [e for e in parsed.events if id(e) not in consumed_events]
        return directive_asts, remaining_props, remaining_events

    def _references(self, parsed, matched, is_template):
        references = []
        seen = set()
        component = next((d for d in matched if d.is_component), None)
        for name, value, line in parsed.refs:
            if name in seen:
                self._error(f'Reference "#{name}" is defined several times', line)
                continue
            seen.add(name)
            if value:
                directive = next((d for d in matched if d.export_as == value), None)
                if directive is None:
                    self._error(f'There is no directive with "export_as" set to "{value}"', line)
                    continue
                references.append(ReferenceAst(name, directive.type.reference, line=line))
            elif is_template:
                references.append(ReferenceAst(name, None, is_template_ref=True, line=line))
            elif component is not None:
                references.append(ReferenceAst(name, component.type.reference, line=line))
            else:
                references.append(ReferenceAst(name, None, line=line))
        return references

    def _element_property(self, element_name, name, value, line, column, validate=True, has_component=False):
        parts = name.split(".")
        if parts[0] == "attr" and len(parts) > 1:
            attr_name = ".".join(parts[1:])
            problem = self.schema_registry.validate_attribute(attr_name)
            if problem is not None:
                self._error(problem.message, line, column, SchemaError)
            return BoundElementPropertyAst(attr_name, PropertyBindingType.ATTRIBUTE, value, None, line)
        if parts[0] == "class" and len(parts) > 1:
            return BoundElementPropertyAst(parts[1], PropertyBindingType.CLASS, value, None, line)
        if parts[0] == "style" and len(parts) > 1:
            unit = parts[2] if len(parts) > 2 else None
            return BoundElementPropertyAst(parts[1], PropertyBindingType.STYLE, value, unit, line)
        mapped = self.schema_registry.get_mapped_prop_name(name)
        problem = self.schema_registry.validate_property(mapped)
        if problem is not None:
            self._error(problem.message, line, column, SchemaError)
        elif validate and not self.schema_registry.has_property(element_name, mapped, self.schemas):
            message = f"Can't bind to '{name}' since it isn't a known property of '{element_name}'."
            if has_component:
                message += f" If '{element_name}' is a component, verify that it has a '{name}' input."
            self._report_schema(message, line, column)
        return BoundElementPropertyAst(mapped, PropertyBindingType.PROPERTY, value, None, line)

    def _element(self, node, content_index):
        name = node.name
        if name in ("script", "style"):
            return None
        if name == "link" and node.get_attribute("rel") == "stylesheet":
            return None
        if name == CONTENT_ELEMENT:
            index = self.content_count
            self.content_count += 1
            return ContentAst(index, content_index, node.line)
        is_template = name == TEMPLATE_ELEMENT
        parsed = self._parse_attrs(node, is_template)
        matched = self._match(name, parsed.attrs, parsed.props)
        directive_asts, props, events = self._directive_asts(matched, parsed, node.line, node.column)
        references = self._references(parsed, matched, is_template)
        components = [d for d in matched if d.is_component]
        if len(components) > 1:
            names = ", ".join(c.name for c in components)
            self._error(f"More than one component matched on this element: {names}", node.line, node.column)

        if is_template:
            for prop in props:
                self._error(f"Property binding {prop[0]} not used by any directive on an embedded template. "
                            f"Make sure that the property name is spelled correctly and all directives "
                            f"are listed in the module", prop[2], prop[3])
            for event in events:
                self._error(f"Event binding {event.name} not emitted by any directive on an embedded "
                            f"template", event.line)
            built = EmbeddedTemplateAst(parsed.attrs, references, parsed.variables, directive_asts,
                                        self.build(node.children), content_index, node.line, node.column)
        else:
            component = components[0] if components else None
            if component is None and not self.schema_registry.has_element(name, self.schemas):
                self._report_schema(f"'{name}' is not a known element. If '{name}' is a component, "
                                    f"verify that it is part of this module.", node.line, node.column)
            inputs = [self._element_property(name, p[0], p[1], p[2], p[3], has_component=component is not None)
                      for p in props]
            projector = None
            if component is not None and component.template is not None:
                projector = _ContentProjector(component.template.content_selectors)
            children = self.build(node.children, projector)
            built = ElementAst(name, parsed.attrs, inputs, events, references, directive_asts, children,
                               None if parsed.template_bindings else content_index, node.line, node.column)

        if parsed.template_bindings is not None:
            built = self._wrap_in_template(built, parsed.template_bindings, content_index)
        return built

    def _wrap_in_template(self, element, template_bindings, content_index):
        bindings, variables, line, column = template_bindings
        parsed = _ParsedAttrs()
        for key, source in bindings:
            if source is None:
                parsed.attrs.append(AttrAst(key, "", line))
            else:
                self._property(parsed, key, source, line, column)
        parsed.variables = [VariableAst(n, v, line) for n, v in variables]
        matched = self._match(TEMPLATE_ELEMENT, parsed.attrs, parsed.props)
        directive_asts, props, _ = self._directive_asts(matched, parsed, line, column)
        for prop in props:
            self._error(f"Property binding {prop[0]} not used by any directive on an embedded template. "
                        f"Make sure that the property name is spelled correctly and all directives are "
                        f"listed in the module", line, column)
        return EmbeddedTemplateAst(parsed.attrs, [], parsed.variables, directive_asts, [element],
                                   content_index, line, column)


class TemplateParser:
    """Parses normalized component templates into binding IR."""

    def __init__(self, config, schema_registry, html_parser):
        self.config = config
        self.schema_registry = schema_registry
        self.html_parser = html_parser

    def parse(self, component, template, directives, pipes, schemas=(), template_url=None):
        url = template_url or component.source_file
        debug_log(f"Parsing template of {component.name} ({url})")
        tree = self.html_parser.parse(template, url)
        if tree.errors:
            return TemplateParseResult([], [], list(tree.errors), [])
        errors = []
        matcher = SelectorMatcher()
        for directive in directives:
            if not directive.selector:
                continue
            try:
                matcher.add_selectables(CssSelector.parse(directive.selector), directive)
            except ParseError as e:
                errors.append(ParseError(f"{e.message} (selector of {directive.name})",
                                         file_path=directive.source_file, line_number=directive.line))
        pipes_by_name = {pipe.name: pipe for pipe in pipes}
        binding_parser = BindingParser(pipes_by_name, url, template)
        builder = _TemplateBuilder(self, binding_parser, matcher, tuple(schemas), url, template)
        template_ast = builder.build(tree.root_nodes)
        errors += binding_parser.errors + builder.errors
        return TemplateParseResult(template_ast, list(binding_parser.used_pipes.values()), errors, builder.warnings)
