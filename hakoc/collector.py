"""
Metadata collection for Python source modules.

Turns a module's ``ast`` into a JSON-serializable metadata tree: classes
with their decorators, members and constructor parameters, module-level
constants, single-return functions, imports and ``__all__``. Expressions
are kept only in statically evaluable shapes; anything else becomes an
``error`` node that the reflector evaluates to an Opaque value.
"""
import ast

from hakoc.errors import ParseError, get_line_context

METADATA_VERSION = 1

_BINARY_OPS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/", ast.FloorDiv: "//",
    ast.Mod: "%", ast.Pow: "**", ast.BitOr: "|", ast.BitAnd: "&", ast.BitXor: "^",
    ast.LShift: "<<", ast.RShift: ">>",
}
_UNARY_OPS = {ast.Not: "not", ast.USub: "-", ast.UAdd: "+", ast.Invert: "~"}
_COMPARE_OPS = {
    ast.Eq: "==", ast.NotEq: "!=", ast.Lt: "<", ast.LtE: "<=", ast.Gt: ">", ast.GtE: ">=",
    ast.Is: "is", ast.IsNot: "is not", ast.In: "in", ast.NotIn: "not in",
}
_GENERIC_BASES = {"Generic", "Protocol"}


def is_metadata_node(value, tag=None):
    if not isinstance(value, dict) or "__symbolic" not in value:
        return False
    return tag is None or value["__symbolic"] == tag


def _error(node, message):
    return {"__symbolic": "error", "message": message, "line": getattr(node, "lineno", None)}


class MetadataCollector:
    """Collects module metadata from Python source without executing it."""

    def get_metadata(self, source, file_path):
        try:
            tree = ast.parse(source, filename=file_path)
        except SyntaxError as e:
            raise ParseError(
                f"Invalid Python syntax: {e.msg}",
                line_number=e.lineno,
                column=e.offset,
                context=get_line_context(source, e.lineno),
                file_path=file_path,
            )
        module = {
            "__symbolic": "module",
            "version": METADATA_VERSION,
            "metadata": {},
            "imports": {},
            "star_imports": [],
            "exports": None,
        }
        for stmt in tree.body:
            self._collect_statement(stmt, module)
        return module

    def _collect_statement(self, stmt, module):
        metadata = module["metadata"]
        if isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    module["imports"][alias.asname] = {
                        "module": alias.name, "level": 0, "name": None, "line": stmt.lineno}
                else:
                    # `import a.b` binds `a`
                    top = alias.name.split('.')[0]
                    module["imports"][top] = {
                        "module": top, "level": 0, "name": None, "line": stmt.lineno}
        elif isinstance(stmt, ast.ImportFrom):
            for alias in stmt.names:
                if alias.name == '*':
                    module["star_imports"].append({"module": stmt.module or "", "level": stmt.level})
                    continue
                module["imports"][alias.asname or alias.name] = {
                    "module": stmt.module or "",
                    "level": stmt.level,
                    "name": alias.name,
                    "line": stmt.lineno,
                }
        elif isinstance(stmt, ast.ClassDef):
            metadata[stmt.name] = self._class(stmt)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            metadata[stmt.name] = self._function(stmt)
        elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
            targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
            if stmt.value is None or len(targets) != 1 or not isinstance(targets[0], ast.Name):
                return
            name = targets[0].id
            if name == "__all__":
                module["exports"] = self._exports(stmt.value)
                return
            metadata[name] = self.expression(stmt.value)
        elif isinstance(stmt, ast.If):
            # `if TYPE_CHECKING:` style blocks still declare names
            for inner in stmt.body:
                if isinstance(inner, (ast.Import, ast.ImportFrom)):
                    self._collect_statement(inner, module)

    def _exports(self, node):
        if not isinstance(node, (ast.List, ast.Tuple)):
            return None
        names = []
        for element in node.elts:
            if isinstance(element, ast.Constant) and isinstance(element.value, str):
                names.append(element.value)
        return names

    def _class(self, node):
        members = {}
        statics = {}
        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if stmt.name == "__init__":
                    members.setdefault("__init__", []).append(self._constructor(stmt))
                else:
                    members.setdefault(stmt.name, []).append({
                        "__symbolic": "method",
                        "decorators": [self.expression(d) for d in stmt.decorator_list],
                        "line": stmt.lineno,
                    })
            elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
                if stmt.value is None or len(targets) != 1 or not isinstance(targets[0], ast.Name):
                    continue
                name = targets[0].id
                value = self.expression(stmt.value)
                statics[name] = value
                if isinstance(stmt.value, ast.Call):
                    members.setdefault(name, []).append({
                        "__symbolic": "property",
                        "decorators": [value],
                        "line": stmt.lineno,
                    })
        result = {
            "__symbolic": "class",
            "line": node.lineno,
            "decorators": [self.expression(d) for d in node.decorator_list],
            "bases": [self.expression(b) for b in node.bases],
            "arity": self._arity(node.bases),
            "members": members,
            "statics": statics,
        }
        return result

    def _arity(self, bases):
        for base in bases:
            if not isinstance(base, ast.Subscript):
                continue
            target = base.value
            name = target.id if isinstance(target, ast.Name) else getattr(target, "attr", None)
            if name not in _GENERIC_BASES:
                continue
            params = base.slice
            if isinstance(params, ast.Tuple):
                return len(params.elts)
            return 1
        return 0

    def _constructor(self, node):
        args = node.args.posonlyargs + node.args.args
        args = args[1:]  # self
        defaults = [None] * (len(args) - len(node.args.defaults)) + list(node.args.defaults)
        parameters = []
        parameter_decorators = []
        for arg, default in zip(args, defaults):
            parameters.append(self._annotation(arg.annotation))
            parameter_decorators.append(self._markers(default))
        for arg, default in zip(node.args.kwonlyargs, node.args.kw_defaults):
            parameters.append(self._annotation(arg.annotation))
            parameter_decorators.append(self._markers(default))
        return {
            "__symbolic": "constructor",
            "parameters": parameters,
            "parameter_names": [a.arg for a in args] + [a.arg for a in node.args.kwonlyargs],
            "parameter_decorators": parameter_decorators,
            "line": node.lineno,
        }

    def _markers(self, default):
        """DI markers given as a parameter default: one call or a tuple of calls."""
        if isinstance(default, ast.Call):
            return [self.expression(default)]
        if isinstance(default, ast.Tuple) and default.elts and all(isinstance(e, ast.Call) for e in default.elts):
            return [self.expression(e) for e in default.elts]
        return []

    def _annotation(self, node):
        if node is None:
            return None
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            # forward reference written as a string
            try:
                node = ast.parse(node.value, mode="eval").body
            except SyntaxError:
                return _error(node, f"Invalid type annotation '{node.value}'")
        if isinstance(node, ast.Subscript):
            # Optional[Foo] and friends: the token is the first type argument
            inner = node.slice.elts[0] if isinstance(node.slice, ast.Tuple) else node.slice
            return self._annotation(inner)
        return self.expression(node)

    def _function(self, node):
        body = [s for s in node.body
                if not (isinstance(s, ast.Expr) and isinstance(s.value, ast.Constant))]
        parameters = [a.arg for a in node.args.args]
        result = {"__symbolic": "function", "parameters": parameters, "line": node.lineno}
        if len(body) == 1 and isinstance(body[0], ast.Return) and body[0].value is not None:
            result["value"] = self.expression(body[0].value, frozenset(parameters))
            defaults = node.args.defaults
            if defaults:
                result["defaults"] = [self.expression(d) for d in defaults]
        return result

    def expression(self, node, params=frozenset()):
        """Convert one expression to its metadata form."""
        if isinstance(node, ast.Constant):
            if node.value is None or isinstance(node.value, (str, bool, int, float)):
                return node.value
            return _error(node, f"Constant of type '{type(node.value).__name__}' is not supported")
        if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
            return [self._element(e, params) for e in node.elts]
        if isinstance(node, ast.Dict):
            entries = {}
            for key, value in zip(node.keys, node.values):
                if key is None:
                    return _error(node, "Dictionary unpacking is not supported")
                if not (isinstance(key, ast.Constant) and isinstance(key.value, str)):
                    return _error(node, "Only string keys are supported in dictionary literals")
                entries[key.value] = self.expression(value, params)
            return entries
        if isinstance(node, ast.Name):
            if node.id in params:
                return {"__symbolic": "parameter", "name": node.id}
            return {"__symbolic": "reference", "name": node.id, "line": node.lineno}
        if isinstance(node, ast.Attribute):
            return {"__symbolic": "select", "expression": self.expression(node.value, params),
                    "member": node.attr}
        if isinstance(node, ast.Subscript):
            return {"__symbolic": "index", "expression": self.expression(node.value, params),
                    "index": self.expression(node.slice, params)}
        if isinstance(node, ast.Call):
            keywords = {}
            for keyword in node.keywords:
                if keyword.arg is None:
                    return _error(node, "Keyword argument unpacking is not supported")
                keywords[keyword.arg] = self.expression(keyword.value, params)
            return {
                "__symbolic": "call",
                "expression": self.expression(node.func, params),
                "arguments": [self._element(a, params) for a in node.args],
                "keywords": keywords,
                "line": node.lineno,
            }
        if isinstance(node, ast.BinOp):
            op = _BINARY_OPS.get(type(node.op))
            if op is None:
                return _error(node, f"Operator '{type(node.op).__name__}' is not supported")
            return {"__symbolic": "binop", "operator": op,
                    "left": self.expression(node.left, params),
                    "right": self.expression(node.right, params)}
        if isinstance(node, ast.UnaryOp):
            return {"__symbolic": "unary", "operator": _UNARY_OPS[type(node.op)],
                    "operand": self.expression(node.operand, params)}
        if isinstance(node, ast.BoolOp):
            return {"__symbolic": "boolop", "operator": "and" if isinstance(node.op, ast.And) else "or",
                    "values": [self.expression(v, params) for v in node.values]}
        if isinstance(node, ast.Compare):
            return {"__symbolic": "compare",
                    "left": self.expression(node.left, params),
                    "operators": [_COMPARE_OPS[type(op)] for op in node.ops],
                    "comparators": [self.expression(c, params) for c in node.comparators]}
        if isinstance(node, ast.IfExp):
            return {"__symbolic": "if",
                    "condition": self.expression(node.test, params),
                    "then": self.expression(node.body, params),
                    "else": self.expression(node.orelse, params)}
        if isinstance(node, ast.Lambda):
            names = [a.arg for a in node.args.args]
            return {"__symbolic": "lambda", "parameters": names,
                    "value": self.expression(node.body, params | frozenset(names))}
        return _error(node, f"Expression form '{type(node).__name__}' is not supported in metadata")

    def _element(self, node, params):
        if isinstance(node, ast.Starred):
            return {"__symbolic": "spread", "expression": self.expression(node.value, params)}
        return self.expression(node, params)
