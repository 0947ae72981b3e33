"""
Static reflection over collected metadata.

The reflector evaluates decorator arguments, constants and simple
functions without running any user code. Every tagged metadata node is
handled by the simplifier registered for its ``__symbolic`` tag; calls to
known library symbols are dispatched through two registration tables,
one for decorators (which build annotation objects) and one for plain
functions. Anything that cannot be evaluated becomes an Opaque value
that carries the reason along.
"""
import builtins
import operator
import threading

from hakoc.collector import is_metadata_node
from hakoc.console import debug_log
from hakoc.errors import MetadataError
from hakoc.host import BUILTINS_FILE
from hakoc.symbols import StaticSymbol

LIFECYCLE_HOOKS = (
    "on_changes", "on_init", "do_check", "after_content_init",
    "after_content_checked", "after_view_init", "after_view_checked", "on_destroy",
)

_BINARY = {
    "+": operator.add, "-": operator.sub, "*": operator.mul, "/": operator.truediv,
    "//": operator.floordiv, "%": operator.mod, "**": operator.pow, "|": operator.or_,
    "&": operator.and_, "^": operator.xor, "<<": operator.lshift, ">>": operator.rshift,
}
_UNARY = {"not": operator.not_, "-": operator.neg, "+": operator.pos, "~": operator.invert}
_COMPARE = {
    "==": operator.eq, "!=": operator.ne, "<": operator.lt, "<=": operator.le,
    ">": operator.gt, ">=": operator.ge, "is": operator.is_, "is not": operator.is_not,
    "in": lambda a, b: a in b, "not in": lambda a, b: a not in b,
}


# largest integer (in bits) or repeated sequence (in items) a constant may evaluate to
MAX_VALUE_SIZE = 1 << 16


def _too_large(op, left, right):
    """True when ``left op right`` would build a value past MAX_VALUE_SIZE."""
    if op == "**" and isinstance(left, int) and isinstance(right, int):
        return right > 0 and abs(left) > 1 and right * abs(left).bit_length() > MAX_VALUE_SIZE
    if op == "<<" and isinstance(left, int) and isinstance(right, int):
        return left != 0 and right + left.bit_length() > MAX_VALUE_SIZE
    if op == "*":
        for sequence, count in ((left, right), (right, left)):
            if isinstance(sequence, (str, list, tuple)) and isinstance(count, int):
                return len(sequence) * count > MAX_VALUE_SIZE
    return False


class Opaque:
    """A value that could not be evaluated statically."""
    __slots__ = ('reason', 'node')

    def __init__(self, reason, node=None):
        self.reason = reason
        self.node = node

    def __repr__(self):
        return f"Opaque({self.reason!r})"


def is_opaque(value):
    return isinstance(value, Opaque)


def find_opaque(value):
    """Return the first Opaque nested anywhere in an evaluated value, or None."""
    if isinstance(value, Opaque):
        return value
    if isinstance(value, (list, tuple)):
        for item in value:
            found = find_opaque(item)
            if found is not None:
                return found
    elif isinstance(value, dict):
        for item in value.values():
            found = find_opaque(item)
            if found is not None:
                return found
    return None


class Closure:
    """An evaluated lambda, callable from registered functions."""

    def __init__(self, reflector, context, parameters, body, scope):
        self.reflector = reflector
        self.context = context
        self.parameters = parameters
        self.body = body
        self.scope = scope

    def __call__(self, *args):
        if len(args) != len(self.parameters):
            return Opaque(f"lambda expects {len(self.parameters)} arguments, got {len(args)}")
        scope = dict(self.scope)
        scope.update(zip(self.parameters, args))
        return self.reflector.simplify(self.context, self.body, scope)


def _pure(fn):
    """Adapt a plain Python callable to the registered-function signature."""
    def call(context, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (TypeError, ValueError) as e:
            return Opaque(f"{fn.__name__}() failed: {e}")
    return call


_PURE_BUILTINS = ("len", "str", "int", "float", "bool", "min", "max", "sorted",
                  "list", "tuple", "abs", "round")


class StaticReflector:
    """Evaluates metadata trees served by a StaticSymbolResolver."""

    def __init__(self, symbol_resolver):
        self.symbol_resolver = symbol_resolver
        self.symbol_cache = symbol_resolver.symbol_cache
        self._decorators = {}
        self._functions = {}
        self._annotation_cache = {}
        self._prop_cache = {}
        self._parameter_cache = {}
        self._local = threading.local()
        self._simplifiers = {
            "reference": self._simplify_reference,
            "select": self._simplify_select,
            "index": self._simplify_index,
            "call": self._simplify_call,
            "binop": self._simplify_binop,
            "unary": self._simplify_unary,
            "boolop": self._simplify_boolop,
            "compare": self._simplify_compare,
            "if": self._simplify_if,
            "lambda": self._simplify_lambda,
            "parameter": self._simplify_parameter,
            "spread": lambda context, node, scope: Opaque("Spread outside of a list", node),
            "error": lambda context, node, scope: Opaque(node.get("message", "error"), node),
            "module": lambda context, node, scope: node,
        }
        for name in _PURE_BUILTINS:
            self.register_function(self.symbol_cache.get(BUILTINS_FILE, name), _pure(getattr(builtins, name)))

    # --- registration ---

    def register_decorator(self, symbol, factory):
        """``factory(context, args, kwargs)`` builds the annotation for a call to ``symbol``."""
        self._decorators[symbol] = factory

    def register_function(self, symbol, fn):
        """``fn(context, *args, **kwargs)`` evaluates a call to ``symbol``."""
        self._functions[symbol] = fn

    def is_decorator(self, symbol):
        return symbol in self._decorators

    # --- symbols ---

    def get_static_symbol(self, file_path, name, members=None):
        return self.symbol_cache.get(file_path, name, members)

    def find_declaration(self, module, name, containing_file=None):
        symbol = self.symbol_resolver.get_symbol_by_module(module, name, containing_file)
        return self.resolve_alias(symbol)

    def resolve_alias(self, symbol):
        return self.symbol_resolver.get_declaring_symbol(symbol)

    def _class_metadata(self, symbol):
        symbol = self.resolve_alias(symbol)
        metadata = self.symbol_resolver.resolve_symbol(symbol).metadata
        return symbol, metadata if is_metadata_node(metadata, "class") else None

    def _class_chain(self, symbol):
        """The class and its statically known ancestors, base-most first."""
        chain = []
        seen = set()
        current = symbol
        while current is not None:
            current, metadata = self._class_metadata(current)
            if metadata is None or current in seen:
                break
            seen.add(current)
            chain.append((current, metadata))
            parent = None
            for base in metadata.get("bases", ()):
                value = self.simplify(current, base)
                if isinstance(value, StaticSymbol):
                    _, base_metadata = self._class_metadata(value)
                    if base_metadata is not None:
                        parent = value
                        break
            current = parent
        chain.reverse()
        return chain

    # --- reflection ---

    def annotations(self, type_symbol):
        """Evaluated class decorators of a type, own class only."""
        cached = self._annotation_cache.get(type_symbol)
        if cached is not None:
            return cached
        symbol, metadata = self._class_metadata(type_symbol)
        result = []
        for decorator in (metadata or {}).get("decorators", ()):
            value = self.simplify(symbol, decorator)
            if isinstance(value, StaticSymbol) and value in self._decorators:
                # bare decorator without parentheses
                value = self._decorators[value](symbol, [], {})
            result.append(value)
        return self._annotation_cache.setdefault(type_symbol, result)

    def decorator_types(self, type_symbol):
        """Symbols called by the class decorators, without evaluating their arguments."""
        symbol, metadata = self._class_metadata(type_symbol)
        result = []
        for decorator in (metadata or {}).get("decorators", ()):
            callee = decorator["expression"] if is_metadata_node(decorator, "call") else decorator
            value = self.simplify(symbol, callee)
            if isinstance(value, StaticSymbol):
                result.append(value)
        return result

    def prop_metadata(self, type_symbol):
        """Member name -> evaluated member decorators, including inherited members."""
        cached = self._prop_cache.get(type_symbol)
        if cached is not None:
            return cached
        result = {}
        for symbol, metadata in self._class_chain(type_symbol):
            for name, entries in metadata.get("members", {}).items():
                decorators = [self.simplify(symbol, d)
                              for entry in entries if entry.get("__symbolic") in ("property", "method")
                              for d in entry.get("decorators", ())]
                if decorators:
                    result.setdefault(name, []).extend(decorators)
        return self._prop_cache.setdefault(type_symbol, result)

    def parameters(self, type_symbol):
        """Constructor parameters as lists of [type token, *parameter decorators].

        A class without its own ``__init__`` inherits its nearest
        ancestor's parameters.
        """
        cached = self._parameter_cache.get(type_symbol)
        if cached is not None:
            return cached
        result = []
        for symbol, metadata in reversed(self._class_chain(type_symbol)):
            constructors = metadata.get("members", {}).get("__init__")
            if not constructors:
                continue
            ctor = constructors[-1]
            for annotation, decorators in zip(ctor["parameters"], ctor["parameter_decorators"]):
                token = self.simplify(symbol, annotation) if annotation is not None else None
                result.append([token] + [self.simplify(symbol, d) for d in decorators])
            break
        return self._parameter_cache.setdefault(type_symbol, result)

    def has_lifecycle_hook(self, type_symbol, hook):
        if hook not in LIFECYCLE_HOOKS:
            raise ValueError(f"Unknown lifecycle hook '{hook}'")
        return any(hook in metadata.get("members", {}) for _, metadata in self._class_chain(type_symbol))

    def line_of(self, type_symbol):
        _, metadata = self._class_metadata(type_symbol)
        return metadata.get("line") if metadata else None

    # --- evaluation ---

    @property
    def _in_progress(self):
        active = getattr(self._local, "active", None)
        if active is None:
            active = self._local.active = set()
        return active

    def simplify(self, context, value, scope=None):
        """Evaluate a metadata value in the context of the symbol that declares it."""
        scope = scope or {}
        if isinstance(value, StaticSymbol):
            return self._simplify_symbol(context, value)
        if isinstance(value, list):
            result = []
            for item in value:
                if is_metadata_node(item, "spread"):
                    spread = self.simplify(context, item["expression"], scope)
                    if isinstance(spread, list):
                        result.extend(spread)
                    else:
                        result.append(Opaque("Only lists can be spread into a list", item))
                else:
                    result.append(self.simplify(context, item, scope))
            return result
        if isinstance(value, dict):
            tag = value.get("__symbolic")
            if tag is None:
                return {k: self.simplify(context, v, scope) for k, v in value.items()}
            simplifier = self._simplifiers.get(tag)
            if simplifier is None:
                return Opaque(f"Cannot evaluate '{tag}' metadata", value)
            return simplifier(context, value, scope)
        return value

    def _simplify_symbol(self, context, symbol):
        if symbol.members:
            base = self.symbol_cache.get(symbol.file_path, symbol.name)
            value = self._simplify_symbol(context, base)
            for member in symbol.members:
                value = self._select(context, value, member, symbol)
            return value
        declaring = self.resolve_alias(symbol)
        metadata = self.symbol_resolver.resolve_symbol(declaring).metadata
        if (is_metadata_node(metadata, "class") or is_metadata_node(metadata, "function")
                or is_metadata_node(metadata, "builtin")):
            return declaring
        if is_metadata_node(metadata, "module"):
            return metadata
        return self._evaluate_once(declaring, declaring, metadata)

    def _evaluate_once(self, key, context, metadata):
        """Evaluate ``metadata`` unless ``key`` is already being evaluated on this thread."""
        if key in self._in_progress:
            debug_log(f"Circular reference to {key!r}")
            return Opaque(f"Circular reference to '{key.qualified_name}'")
        self._in_progress.add(key)
        try:
            return self.simplify(context, metadata)
        finally:
            self._in_progress.discard(key)

    def _simplify_reference(self, context, node, scope):
        # references are normally converted to symbols by the resolver
        file_path = context.file_path if isinstance(context, StaticSymbol) else None
        if file_path is None:
            return Opaque(f"Unbound reference '{node['name']}'", node)
        return self._simplify_symbol(context, self.symbol_cache.get(file_path, node["name"]))

    def _simplify_parameter(self, context, node, scope):
        if node["name"] in scope:
            return scope[node["name"]]
        return Opaque(f"Unbound parameter '{node['name']}'", node)

    def _select(self, context, target, member, node):
        if is_opaque(target):
            return target
        if is_metadata_node(target, "module"):
            return self._simplify_symbol(context, self.symbol_cache.get(target["file"], member))
        if isinstance(target, StaticSymbol):
            owner, metadata = self._class_metadata(target)
            if metadata is not None:
                member_symbol = self.symbol_cache.get(owner.file_path, owner.name, [member])
                if member in metadata.get("statics", {}):
                    return self._evaluate_once(member_symbol, owner, metadata["statics"][member])
                if member in metadata.get("members", {}):
                    return member_symbol
            return Opaque(f"'{target.name}' has no static member '{member}'", node)
        return Opaque(f"Cannot select '{member}' from a {type(target).__name__}", node)

    def _simplify_select(self, context, node, scope):
        target = self.simplify(context, node["expression"], scope)
        return self._select(context, target, node["member"], node)

    def _simplify_index(self, context, node, scope):
        target = self.simplify(context, node["expression"], scope)
        index = self.simplify(context, node["index"], scope)
        if is_opaque(target) or is_opaque(index):
            return target if is_opaque(target) else index
        if isinstance(target, (list, dict, str)):
            try:
                return target[index]
            except (KeyError, IndexError, TypeError):
                return Opaque(f"Index {index!r} out of range", node)
        return Opaque("Only lists, dicts and strings can be indexed", node)

    def _simplify_call(self, context, node, scope):
        target = self.simplify(context, node["expression"], scope)
        args = self.simplify(context, node["arguments"], scope)
        kwargs = {k: self.simplify(context, v, scope) for k, v in node["keywords"].items()}
        if is_opaque(target):
            return target
        if isinstance(target, Closure):
            if kwargs:
                return Opaque("Keyword arguments to a lambda are not supported", node)
            return target(*args)
        if not isinstance(target, StaticSymbol):
            return Opaque(f"Cannot call a {type(target).__name__}", node)
        factory = self._decorators.get(target)
        if factory is not None:
            try:
                return factory(context, args, kwargs)
            except MetadataError as e:
                e.line_number = e.line_number or node.get("line")
                raise
        fn = self._functions.get(target)
        if fn is not None:
            if find_opaque(args) or find_opaque(kwargs):
                return find_opaque(args) or find_opaque(kwargs)
            return fn(context, *args, **kwargs)
        metadata = self.symbol_resolver.resolve_symbol(target).metadata
        if is_metadata_node(metadata, "function") and "value" in metadata:
            return self._expand(target, metadata, args, kwargs, node)
        return Opaque(f"Calling '{target.qualified_name}' is not statically evaluable", node)

    def _expand(self, function, metadata, args, kwargs, node):
        parameters = metadata["parameters"]
        defaults = metadata.get("defaults", [])
        if len(args) > len(parameters):
            return Opaque(f"Too many arguments for '{function.name}'", node)
        scope = {}
        first_default = len(parameters) - len(defaults)
        for i, name in enumerate(parameters):
            if i < len(args):
                scope[name] = args[i]
            elif name in kwargs:
                scope[name] = kwargs[name]
            elif i >= first_default:
                scope[name] = self.simplify(function, defaults[i - first_default])
            else:
                return Opaque(f"Missing argument '{name}' for '{function.name}'", node)
        if function in self._in_progress:
            return Opaque(f"Recursive call to '{function.name}'", node)
        self._in_progress.add(function)
        try:
            return self.simplify(function, metadata["value"], scope)
        finally:
            self._in_progress.discard(function)

    def _arithmetic(self, fn, operands, node):
        for value in operands:
            if is_opaque(value):
                return value
            if isinstance(value, StaticSymbol):
                return Opaque("Operators are not supported on symbols", node)
        try:
            return fn(*operands)
        except (TypeError, ValueError, ArithmeticError) as e:
            return Opaque(f"Invalid operation: {e}", node)

    def _simplify_binop(self, context, node, scope):
        left = self.simplify(context, node["left"], scope)
        right = self.simplify(context, node["right"], scope)
        op = node["operator"]
        if _too_large(op, left, right):
            return Opaque(f"Result of '{op}' is too large to evaluate statically", node)
        return self._arithmetic(_BINARY[op], (left, right), node)

    def _simplify_unary(self, context, node, scope):
        operand = self.simplify(context, node["operand"], scope)
        return self._arithmetic(_UNARY[node["operator"]], (operand,), node)

    def _simplify_boolop(self, context, node, scope):
        value = None
        for operand in node["values"]:
            value = self.simplify(context, operand, scope)
            if is_opaque(value):
                return value
            if (node["operator"] == "and") != bool(value):
                return value
        return value

    def _simplify_compare(self, context, node, scope):
        left = self.simplify(context, node["left"], scope)
        for op, comparator in zip(node["operators"], node["comparators"]):
            right = self.simplify(context, comparator, scope)
            if op in ("is", "is not", "==", "!=") and not (is_opaque(left) or is_opaque(right)):
                result = _COMPARE[op](left, right)
            else:
                result = self._arithmetic(_COMPARE[op], (left, right), node)
            if is_opaque(result) or not result:
                return result
            left = right
        return True

    def _simplify_if(self, context, node, scope):
        condition = self.simplify(context, node["condition"], scope)
        if is_opaque(condition):
            return condition
        return self.simplify(context, node["then"] if condition else node["else"], scope)

    def _simplify_lambda(self, context, node, scope):
        return Closure(self, context, node["parameters"], node["value"], scope)
