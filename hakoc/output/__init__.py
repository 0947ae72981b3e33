from hakoc.output.ast import CompileResult
from hakoc.output.emitter import ImportResolver, PythonEmitter
