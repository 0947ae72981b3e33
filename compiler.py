import os

from hakoc.console import debug_log, set_verbose
from hakoc.config import CompilerOptions
from hakoc.errors import DiagnosticKind, MetadataError, ParseError, ResolutionError, SchemaError, Severity
from hakoc.factory import create_aot_compiler
from hakoc.host import FileSystemHost, MemoryHost, factory_file_name

__all__ = ['compile_program', 'compile_source', 'analyze_source', 'write_outputs', 'set_verbose']

STDIN_FILE = "<stdin>.py"
ERROR_CLASSES = {
    DiagnosticKind.RESOLUTION: ResolutionError,
    DiagnosticKind.METADATA: MetadataError,
    DiagnosticKind.PARSE: ParseError,
    DiagnosticKind.SCHEMA: SchemaError,
}


def _host_for(root_files, source_roots=None, library_roots=()):
    roots = source_roots or sorted({os.path.dirname(os.path.abspath(f)) for f in root_files})
    return FileSystemHost(roots, library_roots)


def compile_program(root_files, options=None, source_roots=None, library_roots=(), console=None,
                    cancel_token=None):
    """Compile every file reachable from ``root_files``; returns the CompileRun."""
    root_files = [os.path.abspath(f) for f in root_files]
    host = _host_for(root_files, source_roots, library_roots)
    compiler = create_aot_compiler(host, options or CompilerOptions(), console)
    debug_log(f"Compiling program rooted at {', '.join(root_files)}")
    return compiler.compile_all(root_files, cancel_token)


def compile_source(file_path, source_code=None, options=None, console=None):
    """Compile one file and return its generated factory module.

    With ``source_code`` the file is compiled from memory, so its templates
    and styles must be inline. The first error diagnostic of the file is
    raised as a HakoCompileError.
    """
    if source_code is None:
        file_path = os.path.abspath(file_path)
        host = _host_for([file_path])
    else:
        file_path = os.path.abspath(file_path if file_path.endswith('.py') else STDIN_FILE)
        host = MemoryHost({file_path: source_code}, source_roots=(os.path.dirname(file_path),))
    compiler = create_aot_compiler(host, options or CompilerOptions(), console)
    run = compiler.compile_all([file_path])
    for diagnostic in run.diagnostics:
        if diagnostic.severity == Severity.ERROR and diagnostic.file == file_path:
            error_class = ERROR_CLASSES[diagnostic.kind]
            raise error_class(diagnostic.message, line_number=diagnostic.line, column=diagnostic.column,
                              file_path=diagnostic.file, symbol=diagnostic.symbol)
    return run.generated_files.get(factory_file_name(file_path), "")


def analyze_source(file_path, source_code=None):
    """Declarations of one file as ``[{"kind", "name"}]``, without generating code."""
    file_path = os.path.abspath(file_path)
    if source_code is None:
        host = _host_for([file_path])
    else:
        host = MemoryHost({file_path: source_code}, source_roots=(os.path.dirname(file_path),))
    compiler = create_aot_compiler(host)
    analysis = compiler.analyze_program([file_path])
    declarations = []
    for file_analysis in analysis.files:
        if file_analysis.file_path != file_path:
            continue
        for kind, symbol in file_analysis.declarations:
            declarations.append({"kind": kind, "name": symbol.name})
    return declarations


def write_outputs(run, out_dir=None, base_dir=None):
    """Write generated factories (and summaries) to disk; returns the written paths.

    Without ``out_dir`` every file lands next to its source. Otherwise paths
    are made relative to ``base_dir`` and recreated under ``out_dir``.
    """
    written = []
    for path, text in list(run.generated_files.items()) + list(run.summaries.items()):
        target = path
        if out_dir is not None:
            relative = os.path.relpath(path, base_dir or os.getcwd())
            target = os.path.join(out_dir, relative)
        os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            f.write(text)
        written.append(target)
    return written
