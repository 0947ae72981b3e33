"""
Builds a fully wired AotCompiler.

Every run-scoped cache (symbols, summaries, resolved metadata, loaded
resources) is created here exactly once and handed to the components that
share it. The view strategy is chosen here too and stays fixed for every
file the compiler sees.
"""
from hakoc.annotations import install_core_annotations
from hakoc.compiler import AotCompiler
from hakoc.compilers import (
    ClassicViewCompiler, DirectiveWrapperCompiler, EngineViewCompiler, ModuleCompiler, StyleCompiler,
)
from hakoc.config import CompilerConfig, CompilerOptions
from hakoc.console import Console, debug_log
from hakoc.metadata_resolver import CompileMetadataResolver
from hakoc.normalizer import DirectiveNormalizer
from hakoc.output.emitter import ImportResolver, PythonEmitter
from hakoc.reflector import StaticReflector
from hakoc.schema import DomElementSchemaRegistry
from hakoc.summary import AotSummaryResolver
from hakoc.symbol_resolver import StaticSymbolResolver
from hakoc.symbols import StaticSymbolCache
from hakoc.template.html_parser import HtmlParser
from hakoc.template.i18n import I18nHtmlParser
from hakoc.template.parser import BindingParser, TemplateParser
from hakoc.url_resolver import UrlResolver


def host_binding_parser(directive):
    """Parser for the host bindings and listeners of one directive."""
    return BindingParser({}, directive.source_file, "")


def create_aot_compiler(host, options=None, console=None):
    options = options or CompilerOptions()
    console = console or Console()
    config = CompilerConfig.from_options(options)
    debug_log(f"Creating compiler (view engine: {config.use_view_engine}, jit: {config.use_jit})")

    symbol_cache = StaticSymbolCache()
    summary_resolver = AotSummaryResolver(host, symbol_cache)
    symbol_resolver = StaticSymbolResolver(host, symbol_cache, summary_resolver)
    reflector = StaticReflector(symbol_resolver)
    install_core_annotations(reflector)
    metadata_resolver = CompileMetadataResolver(config, reflector, console)

    html_parser = HtmlParser()
    i18n_parser = I18nHtmlParser(html_parser, options.translations, options.i18n_format, options.locale,
                                 options.missing_translation, console)
    normalizer = DirectiveNormalizer(host, html_parser, i18n_parser, config, UrlResolver(), console)
    schema_registry = DomElementSchemaRegistry()
    template_parser = TemplateParser(config, schema_registry, html_parser)

    if config.use_view_engine:
        view_compiler = EngineViewCompiler(config, schema_registry, host_binding_parser)
        wrapper_compiler = None
    else:
        wrapper_compiler = DirectiveWrapperCompiler(config, schema_registry, host_binding_parser)
        view_compiler = ClassicViewCompiler(config, schema_registry, host_binding_parser, wrapper_compiler)

    import_resolver = ImportResolver(
        symbol_resolver.get_import_as, host.file_name_to_module_name, symbol_resolver.get_type_arity)
    emitter = PythonEmitter(import_resolver, config.use_jit)

    return AotCompiler(
        options, config, host, symbol_resolver, metadata_resolver, normalizer, template_parser,
        StyleCompiler(config), view_compiler, ModuleCompiler(metadata_resolver), emitter,
        wrapper_compiler=wrapper_compiler, console=console,
    )
