"""
Renders output statement trees to Python source text.

References to other modules are imported once per module, aliased
``i0``, ``i1``, ... in order of first use, so identical statement trees
always render to identical text.
"""
import re
from enum import Enum
from typing import Callable, NamedTuple

from hakoc.output.ast import (
    Assign, Attr, Call, ClassDef, Comment, DictExpr, ExprStatement, External, ExternalReference,
    FunctionDef, If, Lambda, ListExpr, Literal, Raw, Return, TupleExpr, TypeRef,
)
from hakoc.symbols import StaticSymbol

INDENT = "    "
HEADER = "# Generated by hakoc. Do not edit."


class ImportResolver(NamedTuple):
    """The narrow slice of the symbol resolver and host the emitter needs."""
    get_import_as: Callable
    file_name_to_module_name: Callable
    get_type_arity: Callable


class _EmitterContext:

    def __init__(self, gen_file):
        self.gen_file = gen_file
        self.imports = {}
        self.uses_typing = False
        self.lines = []

    def alias_for(self, module_name):
        alias = self.imports.get(module_name)
        if alias is None:
            alias = self.imports[module_name] = f"i{len(self.imports)}"
        return alias


class PythonEmitter:

    def __init__(self, import_resolver, use_jit=False):
        self.import_resolver = import_resolver
        self.use_jit = use_jit

    def emit_statements(self, gen_file, statements, exported_vars=()):
        """Render one generated unit."""
        ctx = _EmitterContext(gen_file)
        for statement in statements:
            self._statement(ctx, statement, 0)
        header = [HEADER]
        if self.use_jit:
            header.append("import importlib")
        if ctx.uses_typing:
            header.append("import typing")
        for module_name, alias in ctx.imports.items():
            if self.use_jit:
                header.append(f"{alias} = importlib.import_module({module_name!r})")
            else:
                header.append(f"import {module_name} as {alias}")
        body = re.sub(r"\n{4,}", "\n\n\n", "\n".join(ctx.lines)).strip("\n")
        parts = ["\n".join(header)]
        if body:
            parts.append(body)
        if exported_vars:
            names = ", ".join(repr(name) for name in exported_vars)
            parts.append(f"__all__ = [{names}]")
        return "\n\n\n".join(parts) + "\n"

    # --- references ---

    def _reference(self, ctx, reference):
        if isinstance(reference, StaticSymbol):
            declaring = self.import_resolver.get_import_as(reference)
            module_name = self.import_resolver.file_name_to_module_name(declaring.file_path, ctx.gen_file)
            path = (declaring.name,) + tuple(declaring.members)
        elif isinstance(reference, ExternalReference):
            module_name = reference.module_name
            if module_name is None:
                module_name = self.import_resolver.file_name_to_module_name(reference.file_path, ctx.gen_file)
            path = (reference.name,) + tuple(reference.members)
        else:
            raise TypeError(f"Cannot emit a reference to {reference!r}")
        if module_name == "builtins":
            return ".".join(path)
        return ".".join((ctx.alias_for(module_name),) + path)

    def _type_ref(self, ctx, reference):
        rendered = self._reference(ctx, reference)
        arity = None
        if isinstance(reference, StaticSymbol):
            arity = self.import_resolver.get_type_arity(reference)
        if not arity:
            return rendered
        ctx.uses_typing = True
        return f"{rendered}[{', '.join(['typing.Any'] * arity)}]"

    # --- expressions ---

    def _expr(self, ctx, node):
        if isinstance(node, Raw):
            return node.source
        if isinstance(node, Literal):
            value = node.value
            if isinstance(value, Enum):
                value = value.value
            return repr(value)
        if isinstance(node, External):
            return self._reference(ctx, node.reference)
        if isinstance(node, TypeRef):
            return self._type_ref(ctx, node.reference)
        if isinstance(node, Attr):
            return f"{self._expr(ctx, node.receiver)}.{node.name}"
        if isinstance(node, Call):
            args = [self._expr(ctx, a) for a in node.args]
            args += [f"{k}={self._expr(ctx, v)}" for k, v in node.kwargs]
            return f"{self._expr(ctx, node.fn)}({', '.join(args)})"
        if isinstance(node, ListExpr):
            return f"[{', '.join(self._expr(ctx, i) for i in node.items)}]"
        if isinstance(node, TupleExpr):
            items = [self._expr(ctx, i) for i in node.items]
            if len(items) == 1:
                return f"({items[0]},)"
            return f"({', '.join(items)})"
        if isinstance(node, DictExpr):
            entries = ", ".join(f"{self._expr(ctx, k)}: {self._expr(ctx, v)}" for k, v in node.entries)
            return f"{{{entries}}}"
        if isinstance(node, Lambda):
            params = ", ".join(node.params)
            return f"lambda {params}: {self._expr(ctx, node.body)}" if params else f"lambda: {self._expr(ctx, node.body)}"
        raise TypeError(f"Cannot emit expression {node!r}")

    # --- statements ---

    def _emit(self, ctx, depth, text):
        ctx.lines.append(f"{INDENT * depth}{text}")

    def _block(self, ctx, statements, depth):
        if not statements:
            self._emit(ctx, depth, "pass")
            return
        for statement in statements:
            self._statement(ctx, statement, depth)

    def _statement(self, ctx, node, depth):
        if isinstance(node, Assign):
            annotation = f": {self._expr(ctx, node.annotation)}" if node.annotation is not None else ""
            self._emit(ctx, depth, f"{node.target}{annotation} = {self._expr(ctx, node.value)}")
        elif isinstance(node, ExprStatement):
            self._emit(ctx, depth, self._expr(ctx, node.expr))
        elif isinstance(node, Return):
            self._emit(ctx, depth, "return" if node.value is None else f"return {self._expr(ctx, node.value)}")
        elif isinstance(node, If):
            self._emit(ctx, depth, f"if {self._expr(ctx, node.condition)}:")
            self._block(ctx, node.body, depth + 1)
            if node.else_body:
                self._emit(ctx, depth, "else:")
                self._block(ctx, node.else_body, depth + 1)
        elif isinstance(node, FunctionDef):
            if depth == 0:
                ctx.lines.append("")
            returns = f" -> {self._expr(ctx, node.returns)}" if node.returns is not None else ""
            self._emit(ctx, depth, f"def {node.name}({', '.join(node.params)}){returns}:")
            if node.doc:
                self._emit(ctx, depth + 1, repr(node.doc))
            self._block(ctx, node.body, depth + 1)
            ctx.lines.append("")
        elif isinstance(node, ClassDef):
            ctx.lines.append("")
            bases = ", ".join(self._expr(ctx, b) for b in node.bases)
            self._emit(ctx, depth, f"class {node.name}({bases}):" if bases else f"class {node.name}:")
            if node.doc:
                self._emit(ctx, depth + 1, repr(node.doc))
            self._block(ctx, node.body, depth + 1)
            ctx.lines.append("")
        elif isinstance(node, Comment):
            for line in node.text.splitlines() or [""]:
                self._emit(ctx, depth, f"# {line}".rstrip())
        else:
            raise TypeError(f"Cannot emit statement {node!r}")
