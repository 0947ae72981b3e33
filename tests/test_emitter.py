"""
Unit tests for rendering output statements to Python source.
"""
import pytest

from hakoc.config import ViewEncapsulation
from hakoc.host import MemoryHost
from hakoc.output.ast import (
    Assign, ClassDef, Comment, External, ExternalReference, FunctionDef, Literal, Raw, Return, TypeRef, call,
)
from hakoc.output.emitter import ImportResolver, PythonEmitter
from hakoc.symbols import StaticSymbolCache

VIEW = ExternalReference("AppView", module_name="hakoc.runtime.view")


@pytest.fixture
def symbols():
    return StaticSymbolCache()


def emitter_for(use_jit=False):
    host = MemoryHost()
    resolver = ImportResolver(
        get_import_as=lambda symbol: symbol,
        file_name_to_module_name=host.file_name_to_module_name,
        get_type_arity=lambda symbol: 2 if symbol.name == "Box" else 0,
    )
    return PythonEmitter(resolver, use_jit)


class TestPythonEmitter:
    """Tests for imports, aliases and statement layout."""

    def statements(self, symbols):
        card = symbols.get("/app/widgets/card.py", "Card")
        box = symbols.get("/app/box.py", "Box")
        return [
            Assign("x", External(card)),
            Assign("y", External(VIEW)),
            Assign("z", External(card)),
            FunctionDef("make", ("a",), (Return(Raw("a")),), returns=TypeRef(box)),
        ]

    def test_module_layout(self, symbols):
        """Imports are aliased in first-use order ahead of the statements and __all__."""
        source = emitter_for().emit_statements("/app/main_factory.py", self.statements(symbols), ["make"])
        assert source == (
            "# Generated by hakoc. Do not edit.\n"
            "import typing\n"
            "import widgets.card as i0\n"
            "import hakoc.runtime.view as i1\n"
            "import box as i2\n"
            "\n\n"
            "x = i0.Card\n"
            "y = i1.AppView\n"
            "z = i0.Card\n"
            "\n"
            "def make(a) -> i2.Box[typing.Any, typing.Any]:\n"
            "    return a\n"
            "\n\n"
            "__all__ = ['make']\n"
        )

    def test_output_is_deterministic(self, symbols):
        """Emitting the same statements twice yields the same text."""
        emitter = emitter_for()
        first = emitter.emit_statements("/app/main_factory.py", self.statements(symbols))
        assert emitter.emit_statements("/app/main_factory.py", self.statements(symbols)) == first

    def test_jit_imports(self, symbols):
        """JIT mode imports runtime modules through importlib."""
        source = emitter_for(use_jit=True).emit_statements("/app/main_factory.py", [Assign("v", External(VIEW))])
        assert "import importlib\ni0 = importlib.import_module('hakoc.runtime.view')" in source

    def test_classes_literals_and_comments(self):
        """Comments, class bodies, enums and nested literals are rendered as Python."""
        statements = [
            Comment("two\nlines"),
            ClassDef("View_Card0", (External(VIEW),), (), doc="Card view"),
            Assign("mode", Literal(ViewEncapsulation.NONE)),
            Assign("made", call("make", 1, [2], key={"a": (3,)})),
        ]
        source = emitter_for().emit_statements("/app/main_factory.py", statements)
        assert "# two\n# lines\n" in source
        assert "class View_Card0(i0.AppView):\n    'Card view'\n    pass\n" in source
        assert "mode = 'none'" in source
        assert "made = make(1, [2], key={'a': (3,)})" in source

    def test_builtins_are_not_imported(self, symbols):
        """Builtin symbols are referenced by bare name."""
        source = emitter_for().emit_statements("/app/main_factory.py", [
            Assign("t", External(symbols.get("<builtins>", "dict")))])
        assert "t = dict" in source
        assert "import" not in source.split("\n", 1)[1]
