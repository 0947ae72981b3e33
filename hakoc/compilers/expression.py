"""
Rewrites parsed binding expressions into Python source evaluated by a view.

Free names in a template expression refer to component members unless a
template variable or reference shadows them. The converter rewrites them
into attribute accesses on the view, applies pipes and renders the result
with ``ast.unparse``.
"""
import ast as pyast
import copy

from hakoc.errors import ParseError
from hakoc.template.ast import PropertyBindingType
from hakoc.template.parser import EVENT_VARIABLE

SAFE_BUILTINS = frozenset({
    "None", "True", "False", "abs", "all", "any", "bool", "dict", "enumerate", "float", "format",
    "int", "isinstance", "len", "list", "max", "min", "range", "reversed", "round", "set",
    "sorted", "str", "sum", "tuple", "zip",
})


def parse_source(source):
    return pyast.parse(source, mode="eval").body


class NameScope:
    """Names visible to the expressions of one view.

    ``names`` maps template variables and references to the source text that
    reads them; anything else is looked up on ``component_expr``.
    """

    def __init__(self, root, component_expr, names=None):
        self.root = root
        self.component_expr = component_expr
        self.names = dict(names or {})

    def lookup(self, name):
        return self.names.get(name)


class _NameRewriter(pyast.NodeTransformer):

    def __init__(self, scope, local_names=()):
        self.scope = scope
        self.bound = [set(local_names)]

    def _is_local(self, name):
        return any(name in names for names in self.bound)

    def visit_Name(self, node):
        if self._is_local(node.id):
            return node
        source = self.scope.lookup(node.id)
        if isinstance(node.ctx, pyast.Load):
            if source is not None:
                return pyast.copy_location(parse_source(source), node)
            if node.id in SAFE_BUILTINS:
                return node
        elif source is not None:
            raise ParseError(f"Cannot assign to a reference or variable '{node.id}'")
        target = pyast.Attribute(value=parse_source(self.scope.component_expr), attr=node.id, ctx=node.ctx)
        return pyast.copy_location(target, node)

    def _visit_comprehension(self, node):
        names = set()
        for generator in node.generators:
            names.update(n.id for n in pyast.walk(generator.target) if isinstance(n, pyast.Name))
        self.bound.append(names)
        self.generic_visit(node)
        self.bound.pop()
        return node

    visit_ListComp = visit_SetComp = visit_DictComp = visit_GeneratorExp = _visit_comprehension

    def visit_Lambda(self, node):
        self.bound.append({a.arg for a in node.args.args})
        self.generic_visit(node)
        self.bound.pop()
        return node


def _unparse(node):
    return pyast.unparse(pyast.fix_missing_locations(node))


class ExpressionConverter:
    """Converts bindings of one view.

    ``pipe_source(name)`` returns the source text that reads the pipe
    instance; ``pure_pipes`` names the pipes whose results are cached
    per call site.
    """

    def __init__(self, scope, pipe_source=None, pure_pipes=frozenset()):
        self.scope = scope
        self.pipe_source = pipe_source
        self.pure_pipes = pure_pipes
        self._pipe_calls = 0

    def _rewrite(self, node, local_names=()):
        return _NameRewriter(self.scope, local_names).visit(copy.deepcopy(node))

    def _apply_pipe(self, key, name, value, args):
        pipe = parse_source(self.pipe_source(name))
        if name in self.pure_pipes:
            self._pipe_calls += 1
            func = pyast.Attribute(value=parse_source(self.scope.root), attr="pure_pipe", ctx=pyast.Load())
            call_args = [pyast.Constant(f"{key}:{self._pipe_calls}"), pipe, value] + args
        else:
            func = pyast.Attribute(value=pipe, attr="transform", ctx=pyast.Load())
            call_args = [value] + args
        return pyast.Call(func=func, args=call_args, keywords=[])

    def _node(self, binding, key):
        node = self._rewrite(binding.expression)
        for name, args in binding.pipes:
            node = self._apply_pipe(key, name, node, [self._rewrite(a) for a in args])
        return node

    def convert_binding(self, binding, key=""):
        """Source text of a property or input binding."""
        return _unparse(self._node(binding, key))

    def convert_interpolation(self, interpolation, key=""):
        values = [self._node(e, key) for e in interpolation.expressions]
        node = pyast.Call(
            func=pyast.Attribute(value=parse_source(self.scope.root), attr="interpolate", ctx=pyast.Load()),
            args=[pyast.Constant(tuple(interpolation.strings)), pyast.Tuple(elts=values, ctx=pyast.Load())],
            keywords=[])
        return _unparse(node)

    def convert_value(self, value, key=""):
        """Binding, interpolation or a plain string attribute value."""
        if isinstance(value, str):
            return repr(value)
        if hasattr(value, "strings"):
            return self.convert_interpolation(value, key)
        return self.convert_binding(value, key)

    def convert_action(self, binding):
        """Statements of an event handler as (source, is_expression) pairs; ``event`` stays a local."""
        tree = self._rewrite(binding.expression, (EVENT_VARIABLE,))
        if isinstance(tree, pyast.Module):
            statements = tree.body
        else:
            statements = [pyast.Expr(tree)]
        return [(_unparse(s.value if isinstance(s, pyast.Expr) else s), isinstance(s, pyast.Expr))
                for s in statements]


def binding_target(name, schema_registry=None):
    """Split a host property key such as ``class.active`` into (type, name, unit)."""
    parts = name.split(".")
    if parts[0] == "attr" and len(parts) > 1:
        return PropertyBindingType.ATTRIBUTE.value, ".".join(parts[1:]), None
    if parts[0] == "class" and len(parts) > 1:
        return PropertyBindingType.CLASS.value, parts[1], None
    if parts[0] == "style" and len(parts) > 1:
        return PropertyBindingType.STYLE.value, parts[1], parts[2] if len(parts) > 2 else None
    if schema_registry is not None:
        name = schema_registry.get_mapped_prop_name(name)
    return PropertyBindingType.PROPERTY.value, name, None


def renderer_call(root, binding_type, index, name, value, unit=None):
    """Source of the AppView call that applies one element binding."""
    if binding_type == PropertyBindingType.ATTRIBUTE.value:
        return f"{root}.set_attribute({index}, {name!r}, {value})"
    if binding_type == PropertyBindingType.CLASS.value:
        return f"{root}.set_class({index}, {name!r}, {value})"
    if binding_type == PropertyBindingType.STYLE.value:
        return f"{root}.set_style({index}, {name!r}, {value}, {unit!r})"
    return f"{root}.set_property({index}, {name!r}, {value})"
