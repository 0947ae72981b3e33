# Hako AOT Compiler
"""
Ahead-of-time compiler for Hako components:
- symbols, symbol_resolver, summary: canonical symbols, source and summary lookup
- reflector, annotations: static evaluation of decorators
- metadata_resolver, normalizer: compile metadata with resources loaded
- template: markup, i18n and binding parsing into the binding IR
- compilers: style, view, wrapper and module code generation
- output: statement trees and the Python emitter
- compiler, factory: the per-file pipeline over a whole program
"""

from .errors import CancellationToken, CompilationCancelled, Diagnostic, HakoCompileError, ProgramError
from .config import CompilerOptions
from .host import FileSystemHost, MemoryHost
from .compiler import AotCompiler, CompileRun
from .factory import create_aot_compiler

__all__ = [
    'AotCompiler',
    'CancellationToken',
    'CompilationCancelled',
    'CompileRun',
    'CompilerOptions',
    'Diagnostic',
    'FileSystemHost',
    'HakoCompileError',
    'MemoryHost',
    'ProgramError',
    'create_aot_compiler',
]
