"""
Compile metadata: the resolved, immutable description of each declaration.

Everything here is built once per declaration per run by the metadata
resolver and then only read. Type references are StaticSymbols.
"""
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from hakoc.config import ChangeDetectionStrategy, ViewEncapsulation
from hakoc.symbols import StaticSymbol


class _Metadata(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class CompileTokenMetadata(_Metadata):
    """A DI token: either a symbol or a literal value such as a string."""
    identifier: Optional[StaticSymbol] = None
    value: Any = None

    @property
    def name(self):
        if self.identifier is not None:
            return self.identifier.qualified_name
        return repr(self.value)


class CompileDiDependencyMetadata(_Metadata):
    token: Optional[CompileTokenMetadata] = None
    is_optional: bool = False
    is_self: bool = False
    is_skip_self: bool = False
    is_host: bool = False


class CompileTypeMetadata(_Metadata):
    reference: StaticSymbol
    di_deps: Tuple[CompileDiDependencyMetadata, ...] = ()
    lifecycle_hooks: Tuple[str, ...] = ()

    @property
    def name(self):
        return self.reference.name


class CompileFactoryMetadata(_Metadata):
    reference: StaticSymbol
    di_deps: Tuple[CompileDiDependencyMetadata, ...] = ()


class CompileProviderMetadata(_Metadata):
    token: CompileTokenMetadata
    use_class: Optional[CompileTypeMetadata] = None
    use_value: Any = None
    use_existing: Optional[CompileTokenMetadata] = None
    use_factory: Optional[CompileFactoryMetadata] = None
    deps: Tuple[CompileDiDependencyMetadata, ...] = ()
    multi: bool = False


class CompileStylesheetMetadata(_Metadata):
    module_url: Optional[str] = None
    styles: Tuple[str, ...] = ()
    style_urls: Tuple[str, ...] = ()


class CompileTemplateMetadata(_Metadata):
    encapsulation: Optional[ViewEncapsulation] = None
    template: Optional[str] = None
    template_url: Optional[str] = None
    styles: Tuple[str, ...] = ()
    style_urls: Tuple[str, ...] = ()
    external_stylesheets: Tuple[CompileStylesheetMetadata, ...] = ()
    content_selectors: Tuple[str, ...] = ()
    is_inline: bool = True


class CompileDirectiveMetadata(_Metadata):
    type: CompileTypeMetadata
    is_component: bool
    selector: Optional[str] = None
    export_as: Optional[str] = None
    change_detection: Optional[ChangeDetectionStrategy] = None
    # directive property -> template binding name
    inputs: Dict[str, str] = {}
    outputs: Dict[str, str] = {}
    host_attributes: Dict[str, str] = {}
    host_properties: Dict[str, str] = {}
    host_listeners: Dict[str, str] = {}
    providers: Tuple[CompileProviderMetadata, ...] = ()
    view_providers: Tuple[CompileProviderMetadata, ...] = ()
    entry_components: Tuple[StaticSymbol, ...] = ()
    template: Optional[CompileTemplateMetadata] = None
    source_file: str
    line: Optional[int] = None

    @property
    def name(self):
        return self.type.reference.name


class CompilePipeMetadata(_Metadata):
    type: CompileTypeMetadata
    name: str
    pure: bool = True


class CompileInjectableMetadata(_Metadata):
    type: CompileTypeMetadata


class TransitiveCompileModuleMetadata(_Metadata):
    """Everything visible through a module and the modules it imports."""
    modules: Tuple[StaticSymbol, ...] = ()
    providers: Tuple[Tuple[CompileProviderMetadata, StaticSymbol], ...] = ()
    directives: Tuple[StaticSymbol, ...] = ()
    pipes: Tuple[StaticSymbol, ...] = ()
    exported_directives: Tuple[StaticSymbol, ...] = ()
    exported_pipes: Tuple[StaticSymbol, ...] = ()
    entry_components: Tuple[StaticSymbol, ...] = ()


class CompileModuleMetadata(_Metadata):
    type: CompileTypeMetadata
    declared_directives: Tuple[StaticSymbol, ...] = ()
    exported_directives: Tuple[StaticSymbol, ...] = ()
    declared_pipes: Tuple[StaticSymbol, ...] = ()
    exported_pipes: Tuple[StaticSymbol, ...] = ()
    entry_components: Tuple[StaticSymbol, ...] = ()
    bootstrap_components: Tuple[StaticSymbol, ...] = ()
    providers: Tuple[CompileProviderMetadata, ...] = ()
    imported_modules: Tuple[StaticSymbol, ...] = ()
    exported_modules: Tuple[StaticSymbol, ...] = ()
    schemas: Tuple[str, ...] = ()
    id: Optional[str] = None
    transitive_module: TransitiveCompileModuleMetadata = TransitiveCompileModuleMetadata()
    source_file: str
    line: Optional[int] = None

    @property
    def name(self):
        return self.type.reference.name


class TransitiveModuleBuilder:
    """Mutable accumulator used while a module's transitive scope is computed."""

    def __init__(self):
        self.modules = []
        self.providers = []
        self.directives = []
        self.pipes = []
        self.exported_directives = []
        self.exported_pipes = []
        self.entry_components = []

    @staticmethod
    def _add(items, value):
        if value not in items:
            items.append(value)

    def add_module(self, symbol):
        self._add(self.modules, symbol)

    def add_provider(self, provider, module):
        self.providers.append((provider, module))

    def add_directive(self, symbol):
        self._add(self.directives, symbol)

    def add_pipe(self, symbol):
        self._add(self.pipes, symbol)

    def add_exported_directive(self, symbol):
        self._add(self.exported_directives, symbol)

    def add_exported_pipe(self, symbol):
        self._add(self.exported_pipes, symbol)

    def add_entry_component(self, symbol):
        self._add(self.entry_components, symbol)

    def build(self):
        return TransitiveCompileModuleMetadata(
            modules=tuple(self.modules),
            providers=tuple(self.providers),
            directives=tuple(self.directives),
            pipes=tuple(self.pipes),
            exported_directives=tuple(self.exported_directives),
            exported_pipes=tuple(self.exported_pipes),
            entry_components=tuple(self.entry_components),
        )
