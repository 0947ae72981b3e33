from hakoc.compilers.module import ModuleCompiler
from hakoc.compilers.style import StyleCompiler
from hakoc.compilers.view import ClassicViewCompiler, EngineViewCompiler
from hakoc.compilers.wrapper import DirectiveWrapperCompiler, WrapperRegistry
