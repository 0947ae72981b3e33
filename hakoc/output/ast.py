"""
Output statement tree produced by the backend passes.

Expressions that refer to other modules are kept symbolic (External,
TypeRef) until emission, where the emitter decides on imports and local
aliases. Everything else renders to Python source directly.
"""
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from hakoc.symbols import StaticSymbol


@dataclass(frozen=True)
class ExternalReference:
    """A name in another module: a fixed module name, or the module of a (generated) file."""
    name: str
    module_name: Optional[str] = None
    file_path: Optional[str] = None
    members: Tuple[str, ...] = ()


class Expr:
    pass


@dataclass(frozen=True)
class Raw(Expr):
    source: str


@dataclass(frozen=True)
class Literal(Expr):
    value: Any


@dataclass(frozen=True)
class External(Expr):
    # a StaticSymbol or an ExternalReference
    reference: Any


@dataclass(frozen=True)
class TypeRef(Expr):
    """Type annotation for a class symbol; generic classes get ``typing.Any`` arguments."""
    reference: Any


@dataclass(frozen=True)
class Attr(Expr):
    receiver: Expr
    name: str


@dataclass(frozen=True)
class Call(Expr):
    fn: Expr
    args: Tuple = ()
    kwargs: Tuple[Tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class ListExpr(Expr):
    items: Tuple = ()


@dataclass(frozen=True)
class TupleExpr(Expr):
    items: Tuple = ()


@dataclass(frozen=True)
class DictExpr(Expr):
    entries: Tuple[Tuple[Any, Any], ...] = ()


@dataclass(frozen=True)
class Lambda(Expr):
    params: Tuple[str, ...]
    body: Expr


class Statement:
    pass


@dataclass(frozen=True)
class Assign(Statement):
    target: str
    value: Any
    annotation: Optional[Expr] = None


@dataclass(frozen=True)
class ExprStatement(Statement):
    expr: Any


@dataclass(frozen=True)
class Return(Statement):
    value: Any = None


@dataclass(frozen=True)
class If(Statement):
    condition: Any
    body: Tuple = ()
    else_body: Tuple = ()


@dataclass(frozen=True)
class FunctionDef(Statement):
    name: str
    params: Tuple[str, ...] = ()
    body: Tuple = ()
    returns: Optional[Expr] = None
    doc: Optional[str] = None


@dataclass(frozen=True)
class ClassDef(Statement):
    name: str
    bases: Tuple = ()
    body: Tuple = ()
    doc: Optional[str] = None


@dataclass(frozen=True)
class Comment(Statement):
    text: str


@dataclass
class CompileResult:
    """Output of one backend pass: statements plus the names the unit exports."""
    statements: list = field(default_factory=list)
    exported_vars: list = field(default_factory=list)

    def extend(self, other):
        self.statements.extend(other.statements)
        self.exported_vars.extend(other.exported_vars)
        return self


def call(fn, *args, **kwargs):
    """Build a Call, wrapping plain Python values as literals. A str callee is source text."""
    fn = Raw(fn) if isinstance(fn, str) else fn
    return Call(fn, tuple(expr(a) for a in args), tuple((k, expr(v)) for k, v in kwargs.items()))


def method(receiver, name, *args, **kwargs):
    receiver = Raw(receiver) if isinstance(receiver, str) else receiver
    return call(Attr(receiver, name), *args, **kwargs)


def expr(value):
    if isinstance(value, Expr):
        return value
    if isinstance(value, (StaticSymbol, ExternalReference)):
        return External(value)
    if isinstance(value, (list, tuple)):
        items = tuple(expr(v) for v in value)
        return ListExpr(items) if isinstance(value, list) else TupleExpr(items)
    if isinstance(value, dict):
        return DictExpr(tuple((expr(k), expr(v)) for k, v in value.items()))
    return Literal(value)
