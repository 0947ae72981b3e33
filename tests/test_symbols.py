"""
Unit tests for canonical symbols and the collector.
"""
import pytest

from hakoc.collector import MetadataCollector, is_metadata_node
from hakoc.errors import ParseError
from hakoc.symbols import StaticSymbolCache


class TestStaticSymbolCache:
    """Tests for symbol interning."""

    def test_same_identity_same_instance(self):
        """Equal (file, name, members) always give back the same object."""
        cache = StaticSymbolCache()
        first = cache.get("/app/a.py", "Foo")
        assert cache.get("/app/a.py", "Foo") is first
        assert cache.get("/app/a.py", "Foo", []) is first

    def test_members_are_part_of_the_identity(self):
        """Member paths give distinct symbols."""
        cache = StaticSymbolCache()
        base = cache.get("/app/a.py", "Foo")
        member = cache.get("/app/a.py", "Foo", ["bar"])
        assert member is not base
        assert cache.get("/app/a.py", "Foo", ("bar",)) is member
        assert member.qualified_name == "Foo.bar"

    def test_contains_and_len(self):
        """The cache counts and reports the symbols it holds."""
        cache = StaticSymbolCache()
        cache.get("/app/a.py", "Foo")
        cache.get("/app/b.py", "Foo")
        assert len(cache) == 2
        assert ("/app/a.py", "Foo") in cache
        assert ("/app/c.py", "Foo") not in cache


class TestMetadataCollector:
    """Tests for turning Python source into metadata without running it."""

    @pytest.fixture
    def collect(self):
        collector = MetadataCollector()
        return lambda source: collector.get_metadata(source, "/app/mod.py")

    def test_class_with_decorator_and_members(self, collect):
        """Classes keep their decorators, members and constructor shape."""
        module = collect(
            "from hakoc.runtime.core import Component, Input\n"
            "@Component(selector='x-card', template='<p></p>')\n"
            "class Card:\n"
            "    title = Input()\n"
            "    def __init__(self, service: 'Service'):\n"
            "        pass\n"
            "    def on_init(self):\n"
            "        pass\n"
        )
        card = module["metadata"]["Card"]
        assert is_metadata_node(card, "class")
        decorator = card["decorators"][0]
        assert decorator["expression"] == {"__symbolic": "reference", "name": "Component", "line": 2}
        assert decorator["keywords"]["selector"] == "x-card"
        assert card["members"]["title"][0]["__symbolic"] == "property"
        ctor = card["members"]["__init__"][0]
        assert ctor["parameter_names"] == ["service"]
        assert ctor["parameters"][0]["name"] == "Service"
        assert "on_init" in card["members"]

    def test_imports_are_recorded(self, collect):
        """Plain, relative and star imports are recorded."""
        module = collect("import os.path\nfrom .lib import helper as h\nfrom pkg import *\n")
        assert module["imports"]["os"]["module"] == "os"
        assert module["imports"]["h"] == {"module": "lib", "level": 1, "name": "helper", "line": 2}
        assert module["star_imports"] == [{"module": "pkg", "level": 0}]

    def test_all_is_collected_as_exports(self, collect):
        """__all__ becomes the export list."""
        module = collect("__all__ = ['A', 'B']\nA = 1\n")
        assert module["exports"] == ["A", "B"]

    def test_single_return_function_keeps_its_value(self, collect):
        """Single return functions keep their expression over parameters."""
        module = collect("def double(x):\n    '''doc'''\n    return x * 2\n")
        function = module["metadata"]["double"]
        assert function["value"]["operator"] == "*"
        assert function["value"]["left"] == {"__symbolic": "parameter", "name": "x"}

    def test_unsupported_expression_becomes_error_node(self, collect):
        """Expressions outside the subset become error nodes."""
        module = collect("VALUE = [x for x in range(3)]\n")
        assert is_metadata_node(module["metadata"]["VALUE"], "error")

    def test_generic_arity(self, collect):
        """Generic base classes set the class arity."""
        module = collect("from typing import Generic, TypeVar\nclass Box(Generic[T, U]):\n    pass\n")
        assert module["metadata"]["Box"]["arity"] == 2

    def test_syntax_error_is_a_parse_error(self, collect):
        """Syntax errors are parse errors with file and line."""
        with pytest.raises(ParseError) as exc_info:
            collect("class Broken(:\n    pass\n")
        assert exc_info.value.file_path == "/app/mod.py"
        assert exc_info.value.line_number == 1
