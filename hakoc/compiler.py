"""
The AOT orchestrator.

One AotCompiler compiles one closed program: every source file reachable
through imports from the given entry files. Each file goes through the
same pipeline: metadata for its declarations, loaded resources, one
template parse per component, the backend passes and finally the
emitter, which renders the merged statement tree to Python source.

Declaration failures never escape a run. They are recorded as
diagnostics and, depending on the failure policy, either skip the
declaration or suppress the whole file's output.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, NamedTuple

from hakoc.compilers.wrapper import WrapperRegistry
from hakoc.config import FailurePolicy
from hakoc.console import Console, debug_log
from hakoc.errors import HakoCompileError, ProgramError, Severity, merge_diagnostics
from hakoc.host import factory_file_name, summary_file_name
from hakoc.metadata import CompileProviderMetadata, CompileTokenMetadata
from hakoc.output.ast import CompileResult
from hakoc.summary import serialize_summary

LOCALE_ID = "LOCALE_ID"


class FileAnalysis(NamedTuple):
    """Declarations of one source file, in source order, as (kind, symbol) pairs."""
    file_path: str
    declarations: list


class ProgramAnalysis(NamedTuple):
    files: List[FileAnalysis]
    # first module declaring each directive
    module_of: dict
    diagnostics: list


class FileResult(NamedTuple):
    file_path: str
    gen_file: str
    source: object
    summary: object
    diagnostics: list


class CompileRun(NamedTuple):
    """Result of compile_all: generated sources by path, diagnostics, summaries by path."""
    generated_files: Dict[str, str]
    diagnostics: list
    summaries: Dict[str, str]

    @property
    def has_errors(self):
        return any(d.severity == Severity.ERROR for d in self.diagnostics)


class AotCompiler:
    """Runs the per-file pipeline over a program.

    All collaborators are built once by ``create_aot_compiler`` and shared by
    every file of the run, including the view compiler strategy.
    """

    def __init__(self, options, config, host, symbol_resolver, metadata_resolver, normalizer,
                 template_parser, style_compiler, view_compiler, module_compiler, emitter,
                 wrapper_compiler=None, console=None):
        self.options = options
        self.config = config
        self.host = host
        self.symbol_resolver = symbol_resolver
        self.metadata_resolver = metadata_resolver
        self.normalizer = normalizer
        self.template_parser = template_parser
        self.style_compiler = style_compiler
        self.view_compiler = view_compiler
        self.module_compiler = module_compiler
        self.emitter = emitter
        self.wrapper_compiler = wrapper_compiler
        self.console = console or Console()
        self.extra_providers = ()
        if options.locale:
            self.extra_providers = (CompileProviderMetadata(
                token=CompileTokenMetadata(value=LOCALE_ID), use_value=options.locale),)

    # --- program analysis ---

    def _is_compiled(self, file_path):
        return (self.host.is_source_file(file_path)
                and not self.symbol_resolver.summary_resolver.is_library_file(file_path))

    def analyze_program(self, root_files):
        """Collect the files reachable from ``root_files`` and classify their declarations."""
        diagnostics = []
        order = []
        visited = set()
        pending = []
        for root in root_files:
            if not self.host.file_exists(root):
                raise ProgramError(f"Entry file '{root}' does not exist", file_path=root,
                                   suggestion="Check the path and the configured source roots")
            pending.append(root)
        while pending:
            file_path = pending.pop(0)
            if file_path in visited:
                continue
            visited.add(file_path)
            order.append(file_path)
            try:
                imported = self.symbol_resolver.get_imported_files(file_path)
            except HakoCompileError as e:
                diagnostics.append(e.to_diagnostic(file_path))
                continue
            for dependency in imported:
                if dependency not in visited and self._is_compiled(dependency):
                    pending.append(dependency)
        debug_log(f"Program has {len(order)} source files")

        files = []
        module_of = {}
        for file_path in order:
            declarations = []
            try:
                symbols = self.symbol_resolver.get_declared_symbols(file_path)
            except HakoCompileError:
                # already reported while walking the imports
                continue
            for symbol in symbols:
                try:
                    kind = self._classify(symbol)
                except HakoCompileError as e:
                    diagnostics.append(e.to_diagnostic(file_path, symbol.name))
                    continue
                if kind is not None:
                    declarations.append((kind, symbol))
            files.append(FileAnalysis(file_path, declarations))
            for kind, symbol in declarations:
                if kind != "module":
                    continue
                try:
                    module = self.metadata_resolver.get_module_metadata(symbol)
                except HakoCompileError as e:
                    # reported when the module's file is compiled
                    debug_log(f"Module {symbol.name} failed to resolve: {e.message}")
                    continue
                for directive in module.declared_directives:
                    module_of.setdefault(directive, module)
        return ProgramAnalysis(files, module_of, diagnostics)

    def _classify(self, symbol):
        resolved = self.symbol_resolver.resolve_symbol(symbol)
        if not isinstance(resolved.metadata, dict) or resolved.metadata.get("__symbolic") != "class":
            return None
        if self.metadata_resolver.is_module(symbol):
            return "module"
        if self.metadata_resolver.is_directive(symbol):
            return "directive"
        if self.metadata_resolver.is_pipe(symbol):
            return "pipe"
        if self.metadata_resolver.is_injectable(symbol):
            return "injectable"
        return None

    # --- compilation ---

    def compile_all(self, root_files, cancel_token=None):
        """Compile every file of the program rooted at ``root_files``.

        Raises ProgramError when an entry file is missing and
        CompilationCancelled when ``cancel_token`` is cancelled mid-run;
        everything else ends up in the returned diagnostics.
        """
        analysis = self.analyze_program(root_files)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        def compile_one(file_analysis):
            return self._compile_file(file_analysis, analysis, cancel_token)

        if self.options.workers > 1 and len(analysis.files) > 1:
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                results = list(pool.map(compile_one, analysis.files))
        else:
            results = [compile_one(f) for f in analysis.files]

        generated = {}
        summaries = {}
        for result in results:
            if result.source is not None:
                generated[result.gen_file] = result.source
            if result.summary is not None:
                summaries[summary_file_name(result.file_path)] = result.summary
        diagnostics = merge_diagnostics(analysis.diagnostics, *[r.diagnostics for r in results])
        for diagnostic in diagnostics:
            if diagnostic.severity == Severity.ERROR:
                debug_log(str(diagnostic))
        return CompileRun(generated, diagnostics, summaries)

    def _compile_file(self, file_analysis, analysis, cancel_token):
        file_path = file_analysis.file_path
        gen_file = factory_file_name(file_path)
        debug_log(f"Compiling {file_path}")
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        diagnostics = []
        wrappers = self._wrapper_registry()
        output = CompileResult()
        failed = False
        for kind, symbol in file_analysis.declarations:
            try:
                result, warnings = self._compile_declaration(kind, symbol, analysis, wrappers, cancel_token)
            except HakoCompileError as e:
                diagnostics.append(e.to_diagnostic(file_path, symbol.name))
                failed = True
                continue
            diagnostics.extend(warnings)
            if any(w.severity == Severity.ERROR for w in warnings):
                failed = True
                continue
            output.extend(result)

        summary = None
        if self.options.emit_summaries:
            try:
                summary = serialize_summary(file_path, self.symbol_resolver, self.host).to_json()
            except HakoCompileError as e:
                diagnostics.append(e.to_diagnostic(file_path))
                failed = True

        if failed and self.options.failure_policy == FailurePolicy.FILE:
            debug_log(f"Suppressing output of {file_path} after declaration failures")
            return FileResult(file_path, gen_file, None, summary, diagnostics)
        if not output.statements:
            return FileResult(file_path, gen_file, None, summary, diagnostics)
        statements = list(output.statements)
        if wrappers is not None:
            statements = wrappers.compile(self.wrapper_compiler) + statements
        source = self.emitter.emit_statements(gen_file, statements, output.exported_vars)
        return FileResult(file_path, gen_file, source, summary, diagnostics)

    def _wrapper_registry(self):
        if self.wrapper_compiler is None:
            return None
        return WrapperRegistry()

    def _compile_declaration(self, kind, symbol, analysis, wrappers, cancel_token):
        """Return ``(CompileResult, warning diagnostics)`` for one declaration."""
        if kind == "module":
            module = self.metadata_resolver.get_module_metadata(symbol)
            return self.module_compiler.compile(module, self.extra_providers), []
        if kind == "pipe":
            self.metadata_resolver.get_pipe_metadata(symbol)
            return CompileResult(), []
        if kind == "injectable":
            self.metadata_resolver.get_injectable_metadata(symbol)
            return CompileResult(), []
        directive = self.metadata_resolver.get_directive_metadata(symbol)
        if not directive.is_component:
            return CompileResult(), []
        return self._compile_component(directive, analysis, wrappers, cancel_token)

    def _scope(self, component, analysis, cancel_token):
        """Directives, pipes and schemas visible in a component's template."""
        module = analysis.module_of.get(component.type.reference)
        if module is None:
            self.console.warn(f"Component {component.name} in {component.source_file} is not declared "
                              f"by any module; its template only sees the component itself")
            return [component], [], ()
        directives = []
        for directive_symbol in module.transitive_module.directives:
            directive = self.metadata_resolver.get_directive_metadata(directive_symbol)
            if directive.is_component and directive_symbol != component.type.reference:
                try:
                    directive = self.normalizer.normalize_template(directive, cancel_token)
                except HakoCompileError as e:
                    # reported against the child component itself
                    debug_log(f"Using unnormalized {directive.name} in {component.name}: {e.message}")
            elif directive_symbol == component.type.reference:
                directive = component
            directives.append(directive)
        pipes = [self.metadata_resolver.get_pipe_metadata(p) for p in module.transitive_module.pipes]
        return directives, pipes, module.schemas

    def _compile_component(self, directive, analysis, wrappers, cancel_token):
        component = self.normalizer.normalize_template(directive, cancel_token)
        directives, pipes, schemas = self._scope(component, analysis, cancel_token)
        template = component.template
        parsed = self.template_parser.parse(component, template.template, directives, pipes, schemas,
                                            template.template_url)
        warnings = []
        for warning in parsed.warnings:
            diagnostic = warning.to_diagnostic(component.source_file, component.name, Severity.WARNING)
            self.console.warn(str(diagnostic))
            warnings.append(diagnostic)
        if parsed.errors:
            errors = [e.to_diagnostic(component.source_file, component.name) for e in parsed.errors]
            return CompileResult(), warnings + errors
        styles_var, result = self.style_compiler.compile_component(component)
        result.extend(self.view_compiler.compile_component(
            component, parsed.template_ast, styles_var, parsed.used_pipes, wrappers))
        return result, warnings
