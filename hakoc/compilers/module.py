"""
Module factories: the provider list of a module's injector plus its
bootstrap and entry component factories.
"""
from hakoc.compilers.providers import deps_expr, provider_expr
from hakoc.host import factory_file_name
from hakoc.identifiers import Identifiers
from hakoc.output.ast import Assign, CompileResult, ExternalReference, ListExpr, Raw, call, expr


def factory_var_name(symbol):
    return f"{symbol.name}Factory"


class ModuleCompiler:

    def __init__(self, metadata_resolver):
        self.metadata_resolver = metadata_resolver

    def _component_factory(self, module, component):
        name = factory_var_name(component)
        if component.file_path == module.source_file:
            return Raw(name)
        return expr(ExternalReference(name, file_path=factory_file_name(component.file_path)))

    def compile(self, module, extra_providers=()):
        """``<Module>Factory``: imported module types first, then providers in import order.

        ``extra_providers`` come last so they override module providers.
        """
        transitive = module.transitive_module
        providers = []
        for module_symbol in transitive.modules:
            module_type = self.metadata_resolver.get_module_metadata(module_symbol).type
            providers.append(call(expr(Identifiers.provider), module_symbol, use_class=module_symbol,
                                  deps=deps_expr(module_type.di_deps)))
        for provider, _ in transitive.providers:
            providers.append(provider_expr(provider))
        for provider in extra_providers:
            providers.append(provider_expr(provider))
        entry_factories = ListExpr(tuple(self._component_factory(module, c) for c in transitive.entry_components))
        providers.append(call(expr(Identifiers.provider), expr(Identifiers.ComponentFactoryResolver),
                              use_value=call(expr(Identifiers.ComponentFactoryResolver), entry_factories)))
        bootstrap = ListExpr(tuple(self._component_factory(module, c) for c in module.bootstrap_components))
        factory_name = factory_var_name(module.type.reference)
        statement = Assign(factory_name, call(
            expr(Identifiers.ModuleFactory), module.type.reference, ListExpr(tuple(providers)),
            bootstrap=bootstrap, entry_components=entry_factories))
        return CompileResult([statement], [factory_name])
