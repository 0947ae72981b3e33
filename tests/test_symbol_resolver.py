"""
Unit tests for static symbol resolution and library summaries.
"""
import json

import pytest

from hakoc.errors import ResolutionError
from hakoc.host import BUILTINS_FILE
from hakoc.summary import AotSummaryResolver, serialize_summary
from hakoc.symbol_resolver import StaticSymbolResolver
from hakoc.symbols import StaticSymbol, StaticSymbolCache


def resolver_for(host):
    cache = StaticSymbolCache()
    return StaticSymbolResolver(host, cache, AotSummaryResolver(host, cache))


class TestStaticSymbolResolver:
    """Tests for following names, imports and re-exports."""

    @pytest.fixture
    def host(self, memory_host):
        return memory_host({
            "/app/widgets/card.py": """
                class Card:
                    pass
            """,
            "/app/widgets/__init__.py": """
                from .card import Card
            """,
            "/app/barrel.py": """
                from widgets import Card
            """,
            "/app/main.py": """
                from barrel import Card as Tile
                LIMIT = 3
                def helper():
                    return LIMIT
            """,
        })

    def test_declared_symbols_skip_imports(self, host):
        """Only names a file declares itself are listed as declared."""
        resolver = resolver_for(host)
        names = [s.name for s in resolver.get_declared_symbols("/app/main.py")]
        assert names == ["LIMIT", "helper"]

    def test_import_resolves_to_alias_symbol(self, host):
        """An imported name resolves to the symbol it was imported from."""
        resolver = resolver_for(host)
        tile = resolver.get_static_symbol("/app/main.py", "Tile")
        resolved = resolver.resolve_symbol(tile)
        assert resolved.metadata is resolver.get_static_symbol("/app/barrel.py", "Card")

    def test_declaring_symbol_follows_reexport_chain(self, host):
        """Re-exports are followed to the declaring file."""
        resolver = resolver_for(host)
        tile = resolver.get_static_symbol("/app/main.py", "Tile")
        declaring = resolver.get_declaring_symbol(tile)
        assert declaring is resolver.get_static_symbol("/app/widgets/card.py", "Card")
        assert resolver.get_import_as(tile) is declaring

    def test_unknown_name_is_a_resolution_error(self, host):
        """A name a file doesn't have is a resolution error."""
        resolver = resolver_for(host)
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_symbol(resolver.get_static_symbol("/app/main.py", "Missing"))
        assert "Missing" in exc_info.value.message
        assert exc_info.value.symbol == "Missing"

    def test_builtins_resolve_to_builtins_file(self, host):
        """Builtin names resolve to builtin nodes."""
        resolver = resolver_for(host)
        resolved = resolver.resolve_symbol(resolver.get_static_symbol(BUILTINS_FILE, "len"))
        assert resolved.metadata == {"__symbolic": "builtin", "name": "len"}

    def test_unresolvable_import_fails_on_use(self, memory_host):
        """An import of an unknown module fails only when the name is used."""
        host = memory_host({"/app/main.py": "from nowhere import Thing\n"})
        resolver = resolver_for(host)
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_symbol(resolver.get_static_symbol("/app/main.py", "Thing"))
        assert "nowhere" in exc_info.value.message

    def test_imported_files(self, host):
        """Imported files are listed per importing file."""
        resolver = resolver_for(host)
        assert resolver.get_imported_files("/app/main.py") == ["/app/barrel.py"]
        assert "/app/widgets/__init__.py" in resolver.get_imported_files("/app/barrel.py")

    def test_circular_reexport_is_reported(self, memory_host):
        """Files re-exporting a name from each other are reported."""
        host = memory_host({
            "/app/a.py": "from b import Thing\n",
            "/app/b.py": "from a import Thing\n",
        })
        resolver = resolver_for(host)
        with pytest.raises(ResolutionError):
            resolver.get_declaring_symbol(resolver.get_static_symbol("/app/a.py", "Thing"))

    def test_sources_are_read_once(self, host):
        """Each source is read once however many lookups touch it."""
        resolver = resolver_for(host)
        resolver.get_declared_symbols("/app/main.py")
        resolver.resolve_symbol(resolver.get_static_symbol("/app/main.py", "LIMIT"))
        resolver.get_symbols_of("/app/main.py")
        assert host.source_reads["/app/main.py"] == 1


class TestSummaries:
    """Tests for summaries standing in for library sources."""

    @pytest.fixture
    def summary_text(self):
        return json.dumps({
            "version": 1,
            "module": "widgets",
            "symbols": [
                {"name": "Card", "metadata": {"__symbolic": "class", "decorators": [], "members": {}}},
                {"name": "DEFAULT", "metadata": {"__symbolic": "reference", "module": "widgets", "name": "Card"}},
            ],
        })

    def test_library_file_is_never_parsed(self, memory_host, summary_text):
        """A file with a summary is served from it and its source is never read."""
        host = memory_host(
            {
                "/app/main.py": "from widgets import Card\n",
                "/lib/widgets.py": "raise SystemExit('never read')\n",
            },
            summaries={"/lib/widgets.summary.json": summary_text},
        )
        resolver = resolver_for(host)
        card = resolver.get_static_symbol("/app/main.py", "Card")
        declaring = resolver.get_declaring_symbol(card)
        assert declaring.file_path == "/lib/widgets.py"
        assert resolver.resolve_symbol(declaring).metadata["__symbolic"] == "class"
        assert host.source_reads["/lib/widgets.py"] == 0

    def test_summary_references_become_symbols(self, memory_host, summary_text):
        """Reference nodes in a summary become symbols."""
        host = memory_host({}, summaries={"/lib/widgets.summary.json": summary_text})
        resolver = resolver_for(host)
        default = resolver.resolve_symbol(resolver.get_static_symbol("/lib/widgets.py", "DEFAULT"))
        assert isinstance(default.metadata, StaticSymbol)
        assert default.metadata is resolver.get_static_symbol("/lib/widgets.py", "Card")

    def test_symbol_missing_from_summary(self, memory_host, summary_text):
        """A name a summary doesn't list is a resolution error."""
        host = memory_host({}, summaries={"/lib/widgets.summary.json": summary_text})
        resolver = resolver_for(host)
        with pytest.raises(ResolutionError):
            resolver.resolve_symbol(resolver.get_static_symbol("/lib/widgets.py", "Nope"))

    def test_serialized_summary_round_trips_references(self, memory_host):
        """Serialized summaries write symbols as module references."""
        host = memory_host({
            "/app/card.py": "class Card:\n    pass\n",
            "/app/main.py": "from card import Card\nFAVORITE = Card\n",
        })
        resolver = resolver_for(host)
        summary = json.loads(serialize_summary("/app/main.py", resolver, host).to_json())
        assert summary["module"] == "main"
        by_name = {s["name"]: s["metadata"] for s in summary["symbols"]}
        assert by_name["FAVORITE"] == {"__symbolic": "reference", "module": "main", "name": "Card"}
        assert by_name["Card"] == {"__symbolic": "reference", "module": "card", "name": "Card"}
