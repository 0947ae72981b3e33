"""
Static symbol resolution.

Maps (file, name) references to canonical symbols and their metadata
without importing anything. Source files are read through the host and
collected once; files that only have a summary are served by the summary
resolver. Imported names resolve to alias entries whose metadata is the
target symbol, which is how re-export chains are followed.
"""
import builtins
import os
from typing import Any, NamedTuple

from hakoc.collector import MetadataCollector, is_metadata_node
from hakoc.console import debug_log
from hakoc.errors import ResolutionError
from hakoc.host import BUILTINS_FILE
from hakoc.symbols import StaticSymbol

BUILTIN_NAMES = frozenset(dir(builtins))


class ResolvedStaticSymbol(NamedTuple):
    symbol: StaticSymbol
    metadata: Any


class StaticSymbolResolver:

    def __init__(self, host, symbol_cache, summary_resolver):
        self.host = host
        self.symbol_cache = symbol_cache
        self.summary_resolver = summary_resolver
        self._collector = MetadataCollector()
        self._module_metadata = {}
        self._resolved = {}
        self._import_as = {}

    # --- symbols ---

    def get_static_symbol(self, file_path, name, members=None):
        return self.symbol_cache.get(file_path, name, members)

    def module_file(self, module_name, containing_file=None, level=0):
        return self.host.module_name_to_file_name(module_name, containing_file, level)

    def get_symbol_by_module(self, module_name, symbol_name, containing_file=None, level=0):
        file_path = self.module_file(module_name, containing_file, level)
        if file_path is None:
            origin = f" (imported from '{containing_file}')" if containing_file else ""
            raise ResolutionError(
                f"Cannot resolve module '{module_name}'{origin}",
                file_path=containing_file,
                suggestion="Check the module path and the configured source roots",
            )
        return self.symbol_cache.get(file_path, symbol_name)

    def is_known_file(self, file_path):
        return (file_path == BUILTINS_FILE
                or self.host.is_source_file(file_path)
                or self.summary_resolver.is_library_file(file_path))

    # --- resolution ---

    def resolve_symbol(self, symbol):
        """Return the ResolvedStaticSymbol for a symbol, raising ResolutionError if it is unknown."""
        if symbol.members:
            base = self.resolve_symbol(self.symbol_cache.get(symbol.file_path, symbol.name))
            return ResolvedStaticSymbol(symbol, self._select_members(base.metadata, symbol.members))
        resolved = self._resolved.get(symbol)
        if resolved is None:
            resolved = self._resolve_new(symbol)
        if is_metadata_node(resolved.metadata, "unresolved"):
            raise ResolutionError(resolved.metadata["message"], file_path=symbol.file_path,
                                  line_number=resolved.metadata.get("line"), symbol=symbol.name)
        return resolved

    def _select_members(self, metadata, members):
        value = metadata
        for member in members:
            if is_metadata_node(value, "class"):
                value = value.get("statics", {}).get(member)
            elif isinstance(value, dict) and not is_metadata_node(value):
                value = value.get(member)
            else:
                return None
        return value

    def _resolve_new(self, symbol):
        file_path = symbol.file_path
        if file_path == BUILTINS_FILE:
            if symbol.name not in BUILTIN_NAMES:
                raise ResolutionError(f"'{symbol.name}' is not a builtin")
            resolved = ResolvedStaticSymbol(symbol, {"__symbolic": "builtin", "name": symbol.name})
            return self._resolved.setdefault(symbol, resolved)
        if self.summary_resolver.is_library_file(file_path):
            summary = self.summary_resolver.resolve_summary(symbol)
            if summary is None:
                raise ResolutionError(
                    f"Symbol '{symbol.name}' is not exported by library module "
                    f"'{self.host.file_name_to_module_name(file_path)}'",
                    file_path=file_path, symbol=symbol.name)
            return self._resolved.setdefault(symbol, ResolvedStaticSymbol(symbol, summary.metadata))
        self._ensure_file(file_path)
        resolved = self._resolved.get(symbol)
        if resolved is not None:
            return resolved
        alias = self._find_in_star_imports(symbol) or self._find_submodule(symbol)
        if alias is None and symbol.name in BUILTIN_NAMES:
            alias = self.symbol_cache.get(BUILTINS_FILE, symbol.name)
        if alias is not None:
            return self._resolved.setdefault(symbol, ResolvedStaticSymbol(symbol, alias))
        raise ResolutionError(
            f"Symbol '{symbol.name}' is not defined in module "
            f"'{self.host.file_name_to_module_name(file_path)}'",
            file_path=file_path, symbol=symbol.name,
            suggestion=f"Declare or import '{symbol.name}' before referencing it")

    def _find_in_star_imports(self, symbol):
        module = self._module_metadata[symbol.file_path]
        for star in module["star_imports"]:
            target_file = self.module_file(star["module"], symbol.file_path, star["level"])
            if target_file is None:
                continue
            candidate = self.symbol_cache.get(target_file, symbol.name)
            if symbol.name in self._names_of(target_file):
                return candidate
        return None

    def _find_submodule(self, symbol):
        if os.path.basename(symbol.file_path) != '__init__.py':
            return None
        package_dir = os.path.dirname(symbol.file_path)
        for candidate in (os.path.join(package_dir, symbol.name + '.py'),
                          os.path.join(package_dir, symbol.name, '__init__.py')):
            if self.is_known_file(candidate):
                return {"__symbolic": "module", "file": candidate}
        return None

    def _names_of(self, file_path):
        if self.summary_resolver.is_library_file(file_path):
            return {s.name for s in self.summary_resolver.get_symbols_of(file_path)}
        try:
            module = self._ensure_file(file_path)
        except ResolutionError:
            return set()
        return set(module["metadata"]) | set(module["imports"])

    def _ensure_file(self, file_path):
        module = self._module_metadata.get(file_path)
        if module is not None:
            return module
        try:
            source = self.host.get_source(file_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ResolutionError(f"Cannot read source file '{file_path}': {e}", file_path=file_path,
                                  suggestion="Source files must be readable UTF-8 text files")
        if source is None:
            raise ResolutionError(f"Cannot find source file '{file_path}'", file_path=file_path)
        debug_log(f"Collecting metadata for {file_path}")
        module = self._collector.get_metadata(source, file_path)
        imports = module["imports"]
        for name, info in imports.items():
            symbol = self.symbol_cache.get(file_path, name)
            self._resolved.setdefault(symbol, ResolvedStaticSymbol(symbol, self._import_target(file_path, info)))
        for name, node in module["metadata"].items():
            symbol = self.symbol_cache.get(file_path, name)
            metadata = self._convert(file_path, node, module)
            self._resolved.setdefault(symbol, ResolvedStaticSymbol(symbol, metadata))
        return self._module_metadata.setdefault(file_path, module)

    def _import_target(self, file_path, info):
        module_name, level, name = info["module"], info["level"], info["name"]
        target_file = self.module_file(module_name, file_path, level)
        if name is None:
            if target_file is None:
                return self._unresolved(f"Cannot resolve module '{module_name}'", info)
            return {"__symbolic": "module", "file": target_file}
        if target_file is None:
            submodule = f"{module_name}.{name}" if module_name else name
            target_file = self.module_file(submodule, file_path, level)
            if target_file is not None:
                return {"__symbolic": "module", "file": target_file}
            return self._unresolved(f"Cannot resolve module '{'.' * level}{module_name}' for import of '{name}'", info)
        return self.symbol_cache.get(target_file, name)

    def _unresolved(self, message, info):
        return {"__symbolic": "unresolved", "message": message, "line": info.get("line")}

    def _convert(self, file_path, node, module):
        """Replace local name references by canonical symbols."""
        if isinstance(node, list):
            return [self._convert(file_path, n, module) for n in node]
        if not isinstance(node, dict):
            return node
        if node.get("__symbolic") == "reference":
            name = node["name"]
            if (name not in module["metadata"] and name not in module["imports"]
                    and not module["star_imports"] and name in BUILTIN_NAMES):
                return self.symbol_cache.get(BUILTINS_FILE, name)
            return self.symbol_cache.get(file_path, name)
        return {k: self._convert(file_path, v, module) for k, v in node.items()}

    # --- aliases and naming ---

    def get_declaring_symbol(self, symbol):
        """Follow import and re-export aliases to the symbol that declares the value."""
        seen = set()
        while True:
            if symbol in seen:
                raise ResolutionError(f"Circular re-export of '{symbol.name}'",
                                      file_path=symbol.file_path, symbol=symbol.name)
            seen.add(symbol)
            metadata = self.resolve_symbol(symbol).metadata
            if isinstance(metadata, StaticSymbol):
                symbol = metadata
                continue
            return symbol

    def get_import_as(self, symbol):
        """Symbol to import when referencing ``symbol`` from generated code.

        Re-export chains are followed to the declaring file; a library
        summary may name a shallower public path for its declarations.
        """
        if symbol.members:
            base = self.get_import_as(self.symbol_cache.get(symbol.file_path, symbol.name))
            return self.symbol_cache.get(base.file_path, base.name, symbol.members)
        cached = self._import_as.get(symbol)
        if cached is not None:
            return cached
        if not self.is_known_file(symbol.file_path):
            result = symbol
        else:
            result = self.get_declaring_symbol(symbol)
            if self.summary_resolver.is_library_file(result.file_path):
                result = self.summary_resolver.get_import_as(result) or result
        return self._import_as.setdefault(symbol, result)

    def get_type_arity(self, symbol):
        if not self.is_known_file(symbol.file_path):
            return None
        metadata = self.resolve_symbol(self.get_declaring_symbol(symbol)).metadata
        if is_metadata_node(metadata, "class"):
            return metadata.get("arity", 0)
        return None

    # --- file level queries ---

    def get_declared_symbols(self, file_path):
        """Symbols declared (not imported) in a source file, in source order."""
        module = self._ensure_file(file_path)
        return [self.symbol_cache.get(file_path, name) for name in module["metadata"]]

    def get_symbols_of(self, file_path):
        """Public symbols of a file: ``__all__`` when present, else declarations and from-imports."""
        if self.summary_resolver.is_library_file(file_path):
            return self.summary_resolver.get_symbols_of(file_path)
        module = self._ensure_file(file_path)
        if module["exports"] is not None:
            names = module["exports"]
        else:
            names = [n for n in module["metadata"] if not n.startswith('_')]
            names += [n for n, info in module["imports"].items()
                      if info["name"] is not None and not n.startswith('_') and n not in names]
        return [self.symbol_cache.get(file_path, name) for name in names]

    def get_imported_files(self, file_path):
        """Files this source file imports from, for building the program closure."""
        module = self._ensure_file(file_path)
        files = []
        entries = list(module["imports"].values()) + [dict(s, name=None) for s in module["star_imports"]]
        for info in entries:
            target = self.module_file(info["module"], file_path, info["level"])
            if info.get("name") is not None:
                submodule = f"{info['module']}.{info['name']}" if info["module"] else info["name"]
                sub_file = self.module_file(submodule, file_path, info["level"])
                if sub_file is not None:
                    files.append(sub_file)
            if target is None:
                debug_log(f"Import of '{info['module']}' in {file_path} does not resolve; skipping")
                continue
            files.append(target)
        return [f for f in dict.fromkeys(files) if f != file_path]
