"""
Summaries: serializable snapshots of a file's public metadata.

A summary lets a later run treat an already compiled file as a library:
the symbol resolver reads the summary instead of parsing the source.
Summaries are loaded at most once per compiler instance and are never
invalidated during a run; deciding when one is stale is up to the host.
"""
import json
from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from hakoc.console import debug_log
from hakoc.host import BUILTINS_FILE
from hakoc.symbols import StaticSymbol

SUMMARY_VERSION = 1


class ImportAs(BaseModel):
    module: str
    name: str


class SymbolSummary(BaseModel):
    name: str
    metadata: Any = None
    import_as: Optional[ImportAs] = None


class FileSummary(BaseModel):
    version: int = SUMMARY_VERSION
    module: str
    symbols: List[SymbolSummary] = Field(default_factory=list)

    def to_json(self):
        return json.dumps(self.model_dump(exclude_none=True), indent=2, sort_keys=True)


class Summary(NamedTuple):
    """In-memory summary entry, with symbol references already resolved."""
    symbol: StaticSymbol
    metadata: Any
    import_as: Optional[StaticSymbol] = None


def _module_of(host, file_path):
    if file_path == BUILTINS_FILE:
        return "builtins"
    return host.file_name_to_module_name(file_path)


def serialize_metadata(value, host):
    """Replace StaticSymbols in a resolved metadata tree by reference nodes."""
    if isinstance(value, StaticSymbol):
        node = {"__symbolic": "reference", "module": _module_of(host, value.file_path), "name": value.name}
        if value.members:
            node["members"] = list(value.members)
        return node
    if isinstance(value, list):
        return [serialize_metadata(v, host) for v in value]
    if isinstance(value, dict):
        return {k: serialize_metadata(v, host) for k, v in value.items()}
    return value


def serialize_summary(file_path, symbol_resolver, host):
    """Build the FileSummary of a source file from its resolved symbols."""
    symbols = []
    for symbol in symbol_resolver.get_symbols_of(file_path):
        resolved = symbol_resolver.resolve_symbol(symbol)
        symbols.append(SymbolSummary(
            name=symbol.name,
            metadata=serialize_metadata(resolved.metadata, host),
        ))
    return FileSummary(module=_module_of(host, file_path), symbols=symbols)


class AotSummaryResolver:
    """Serves cached public metadata for files outside the compilation unit."""

    def __init__(self, host, symbol_cache):
        self.host = host
        self.symbol_cache = symbol_cache
        self._summary_cache = {}
        self._file_symbols = {}
        self._library_files = {}

    def is_library_file(self, file_path):
        """True when only a summary, and no source, is available for the file."""
        known = self._library_files.get(file_path)
        if known is None:
            known = (not self.host.is_source_file(file_path)
                     and self.host.load_summary(file_path) is not None)
            known = self._library_files.setdefault(file_path, known)
        return known

    def resolve_summary(self, symbol):
        self._load_file(symbol.file_path)
        return self._summary_cache.get(symbol)

    def get_symbols_of(self, file_path):
        self._load_file(file_path)
        return list(self._file_symbols.get(file_path, ()))

    def get_import_as(self, symbol):
        summary = self.resolve_summary(symbol)
        return summary.import_as if summary else None

    def add_summary(self, summary):
        self._summary_cache.setdefault(summary.symbol, summary)

    def _load_file(self, file_path):
        if file_path in self._file_symbols:
            return
        if not self.is_library_file(file_path):
            self._file_symbols.setdefault(file_path, ())
            return
        text = self.host.load_summary(file_path)
        file_summary = FileSummary.model_validate_json(text)
        debug_log(f"Loaded summary for {file_path} ({len(file_summary.symbols)} symbols)")
        symbols = []
        for entry in file_summary.symbols:
            symbol = self.symbol_cache.get(file_path, entry.name)
            import_as = None
            if entry.import_as is not None:
                import_as = self._reference_symbol(entry.import_as.module, entry.import_as.name, ())
            self.add_summary(Summary(symbol, self._deserialize(entry.metadata), import_as))
            symbols.append(symbol)
        self._file_symbols.setdefault(file_path, tuple(symbols))

    def _reference_symbol(self, module, name, members):
        if module == "builtins":
            return self.symbol_cache.get(BUILTINS_FILE, name, members)
        file_path = self.host.module_name_to_file_name(module)
        if file_path is None:
            return None
        return self.symbol_cache.get(file_path, name, members)

    def _deserialize(self, value):
        if isinstance(value, list):
            return [self._deserialize(v) for v in value]
        if isinstance(value, dict):
            if value.get("__symbolic") == "reference" and "module" in value:
                symbol = self._reference_symbol(value["module"], value["name"], value.get("members", ()))
                if symbol is None:
                    return {"__symbolic": "error",
                            "message": f"Cannot resolve module '{value['module']}' referenced by a summary"}
                return symbol
            return {k: self._deserialize(v) for k, v in value.items()}
        return value
