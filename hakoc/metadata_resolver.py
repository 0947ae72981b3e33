"""
Builds compile metadata for directives, components, pipes, modules and
injectables from reflector output.

Results are memoized per declaration for the whole run. A declaration that
fails is memoized as a failure: later requests re-raise the same error
instead of retrying or pretending it succeeded.
"""
import math
import threading

from hakoc.annotations import (
    CORE_MODULE, ComponentAnnotation, DirectiveAnnotation, HostAnnotation, HostBindingAnnotation,
    HostListenerAnnotation, InjectAnnotation, InputAnnotation, ModuleAnnotation, OptionalAnnotation,
    OutputAnnotation, PipeAnnotation, SelfAnnotation, SkipSelfAnnotation, find_annotation,
)
from hakoc.config import ChangeDetectionStrategy, ViewEncapsulation
from hakoc.console import Console, debug_log
from hakoc.errors import HakoCompileError, MetadataError
from hakoc.metadata import (
    CompileDiDependencyMetadata, CompileDirectiveMetadata, CompileFactoryMetadata,
    CompileInjectableMetadata, CompileModuleMetadata, CompilePipeMetadata, CompileProviderMetadata,
    CompileTemplateMetadata, CompileTokenMetadata, CompileTypeMetadata, TransitiveModuleBuilder,
)
from hakoc.reflector import LIFECYCLE_HOOKS, Opaque, find_opaque
from hakoc.symbols import StaticSymbol

_PROVIDER_KEYS = {"provide", "use_class", "use_value", "use_existing", "use_factory", "deps", "multi"}
KNOWN_SCHEMAS = ("custom-elements", "no-errors")


class _Failure:
    __slots__ = ('error',)

    def __init__(self, error):
        self.error = error


def describe(value):
    """Short human readable rendering of an evaluated value, for error messages."""
    if isinstance(value, StaticSymbol):
        return value.qualified_name
    if isinstance(value, Opaque):
        return f"?{value.reason}?"
    if isinstance(value, list):
        return "[" + ", ".join(describe(v) for v in value) + "]"
    return repr(value)


def _short(value):
    # object reprs carry memory addresses
    return repr(value) if isinstance(value, float) else f"a {type(value).__qualname__} object"


def find_unemittable(value):
    """Return the first value nested in ``value`` that generated code cannot spell, or None."""
    if value is None or isinstance(value, (bool, int, str, StaticSymbol)):
        return None
    if isinstance(value, float):
        return None if math.isfinite(value) else value
    if isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, dict):
        items = [item for pair in value.items() for item in pair]
    else:
        return value
    for item in items:
        found = find_unemittable(item)
        if found is not None:
            return found
    return None


def flatten(values):
    result = []
    for value in values if isinstance(values, (list, tuple)) else [values]:
        if isinstance(value, (list, tuple)):
            result.extend(flatten(value))
        else:
            result.append(value)
    return result


class CompileMetadataResolver:

    def __init__(self, config, reflector, console=None):
        self.config = config
        self.reflector = reflector
        self.console = console or Console()
        self._directive_cache = {}
        self._pipe_cache = {}
        self._module_cache = {}
        self._injectable_cache = {}
        self._type_cache = {}
        self._local = threading.local()
        self._core = {
            name: reflector.find_declaration(CORE_MODULE, name)
            for name in ("Component", "Directive", "Pipe", "Module", "Injectable")
        }

    # --- classification ---

    def _decorated_with(self, type_symbol, *names):
        wanted = {self._core[n] for n in names}
        return any(s in wanted for s in self.reflector.decorator_types(type_symbol))

    def is_directive(self, type_symbol):
        return self._decorated_with(type_symbol, "Component", "Directive")

    def is_component(self, type_symbol):
        return self._decorated_with(type_symbol, "Component")

    def is_pipe(self, type_symbol):
        return self._decorated_with(type_symbol, "Pipe")

    def is_module(self, type_symbol):
        return self._decorated_with(type_symbol, "Module")

    def is_injectable(self, type_symbol):
        return self._decorated_with(type_symbol, "Injectable")

    # --- memoization ---

    def _memoized(self, cache, type_symbol, build):
        type_symbol = self.reflector.resolve_alias(type_symbol)
        entry = cache.get(type_symbol)
        if entry is None:
            try:
                entry = build(type_symbol)
            except HakoCompileError as e:
                e.file_path = e.file_path or type_symbol.file_path
                e.symbol = e.symbol or type_symbol.name
                entry = _Failure(e)
            entry = cache.setdefault(type_symbol, entry)
        if isinstance(entry, _Failure):
            raise entry.error
        return entry

    def _error(self, owner, message, suggestion=None):
        return MetadataError(message, file_path=owner.file_path, symbol=owner.name,
                             line_number=self.reflector.line_of(owner), suggestion=suggestion)

    def _concrete(self, owner, field, value):
        opaque = find_opaque(value)
        if opaque is not None:
            raise self._error(
                owner, f"Value of '{field}' in '{owner.name}' cannot be evaluated statically: {opaque.reason}",
                suggestion="Use literals, lists, dicts and references to declared names only")
        return value

    def _string(self, owner, field, value, required=False):
        self._concrete(owner, field, value)
        if value is None:
            if required:
                raise self._error(owner, f"'{owner.name}' has no {field}, please add it")
            return None
        if not isinstance(value, str):
            raise self._error(owner, f"Expected a string for '{field}' in '{owner.name}', got {describe(value)}")
        return value

    def _strings(self, owner, field, values):
        return tuple(self._string(owner, field, v, required=True) for v in flatten(values))

    # --- directives ---

    def get_directive_metadata(self, type_symbol):
        return self._memoized(self._directive_cache, type_symbol, self._load_directive)

    def _load_directive(self, type_symbol):
        debug_log(f"Resolving directive metadata for {type_symbol.qualified_name}")
        annotations = self.reflector.annotations(type_symbol)
        annotation = find_annotation(annotations, ComponentAnnotation) or find_annotation(annotations, DirectiveAnnotation)
        if annotation is None:
            raise self._error(type_symbol, f"Class '{type_symbol.name}' is not a directive or component")
        is_component = isinstance(annotation, ComponentAnnotation)
        selector = self._string(type_symbol, "selector", annotation.selector, required=not is_component)
        inputs, outputs = self._bindings(type_symbol, annotation)
        host_attributes, host_properties, host_listeners = self._host(type_symbol, annotation)
        template = None
        change_detection = None
        view_providers = ()
        entry_components = ()
        if is_component:
            template = self._template(type_symbol, annotation)
            change_detection = self._enum(type_symbol, "change_detection", annotation.change_detection,
                                          ChangeDetectionStrategy)
            view_providers = self.get_providers_metadata(annotation.view_providers, type_symbol, "view_providers")
            entry_components = self._types(type_symbol, "entry_components", annotation.entry_components)
        return CompileDirectiveMetadata(
            type=self.get_type_metadata(type_symbol),
            is_component=is_component,
            selector=selector,
            export_as=self._string(type_symbol, "export_as", annotation.export_as),
            change_detection=change_detection,
            inputs=inputs,
            outputs=outputs,
            host_attributes=host_attributes,
            host_properties=host_properties,
            host_listeners=host_listeners,
            providers=self.get_providers_metadata(annotation.providers, type_symbol, "providers"),
            view_providers=view_providers,
            entry_components=entry_components,
            template=template,
            source_file=type_symbol.file_path,
            line=self.reflector.line_of(type_symbol),
        )

    def _bindings(self, owner, annotation):
        inputs = {}
        outputs = {}
        for target, field, entries in ((inputs, "inputs", annotation.inputs),
                                       (outputs, "outputs", annotation.outputs)):
            # "prop" or "prop: alias"
            for entry in self._strings(owner, field, entries):
                prop, _, alias = entry.partition(":")
                target[prop.strip()] = alias.strip() or prop.strip()
        for member, decorators in self.reflector.prop_metadata(owner).items():
            for decorator in decorators:
                if isinstance(decorator, InputAnnotation):
                    inputs[member] = self._string(owner, "Input alias", decorator.alias) or member
                elif isinstance(decorator, OutputAnnotation):
                    outputs[member] = self._string(owner, "Output alias", decorator.alias) or member
        return inputs, outputs

    def _host(self, owner, annotation):
        attributes = {}
        properties = {}
        listeners = {}
        self._concrete(owner, "host", annotation.host)
        for key, value in annotation.host.items():
            if not isinstance(value, str):
                raise self._error(owner, f"Host binding '{key}' in '{owner.name}' must be a string")
            if key.startswith("(") and key.endswith(")"):
                listeners[key[1:-1]] = value
            elif key.startswith("[") and key.endswith("]"):
                properties[key[1:-1]] = value
            else:
                attributes[key] = value
        for member, decorators in self.reflector.prop_metadata(owner).items():
            for decorator in decorators:
                if isinstance(decorator, HostBindingAnnotation):
                    name = self._string(owner, "HostBinding", decorator.host_property_name) or member
                    properties[name] = member
                elif isinstance(decorator, HostListenerAnnotation):
                    event = self._string(owner, "HostListener", decorator.event_name, required=True)
                    args = self._strings(owner, "HostListener args", decorator.args)
                    listeners[event] = f"{member}({', '.join(args)})"
        return attributes, properties, listeners

    def _template(self, owner, annotation):
        template = self._string(owner, "template", annotation.template)
        template_url = self._string(owner, "template_url", annotation.template_url)
        if template is not None and template_url is not None:
            raise self._error(owner, f"'{owner.name}' component cannot define both template and template_url")
        if template is None and template_url is None:
            raise self._error(owner, f"No template specified for component {owner.name}",
                              suggestion="Pass template= or template_url= to @Component")
        return CompileTemplateMetadata(
            encapsulation=self._enum(owner, "encapsulation", annotation.encapsulation, ViewEncapsulation),
            template=template,
            template_url=template_url,
            styles=self._strings(owner, "styles", annotation.styles),
            style_urls=self._strings(owner, "style_urls", annotation.style_urls),
            is_inline=template is not None,
        )

    def _enum(self, owner, field, value, enum):
        self._concrete(owner, field, value)
        if value is None:
            return None
        try:
            return enum(value)
        except ValueError:
            allowed = ", ".join(repr(e.value) for e in enum)
            raise self._error(owner, f"Invalid {field} {describe(value)} in '{owner.name}'; expected one of {allowed}")

    def _types(self, owner, field, values):
        result = []
        for value in flatten(self._concrete(owner, field, values)):
            if not isinstance(value, StaticSymbol):
                raise self._error(owner, f"Unexpected value {describe(value)} in '{field}' of '{owner.name}'")
            result.append(self.reflector.resolve_alias(value))
        return tuple(result)

    # --- pipes and injectables ---

    def get_pipe_metadata(self, type_symbol):
        return self._memoized(self._pipe_cache, type_symbol, self._load_pipe)

    def _load_pipe(self, type_symbol):
        annotation = find_annotation(self.reflector.annotations(type_symbol), PipeAnnotation)
        if annotation is None:
            raise self._error(type_symbol, f"Class '{type_symbol.name}' is not a pipe")
        pure = self._concrete(type_symbol, "pure", annotation.pure)
        if not isinstance(pure, bool):
            raise self._error(type_symbol, f"'pure' of pipe '{type_symbol.name}' must be True or False")
        return CompilePipeMetadata(
            type=self.get_type_metadata(type_symbol),
            name=self._string(type_symbol, "name", annotation.name, required=True),
            pure=pure,
        )

    def get_injectable_metadata(self, type_symbol):
        return self._memoized(self._injectable_cache, type_symbol,
                              lambda s: CompileInjectableMetadata(type=self.get_type_metadata(s)))

    # --- types and dependencies ---

    def get_type_metadata(self, type_symbol, dependencies=None):
        if dependencies is not None:
            type_symbol = self.reflector.resolve_alias(type_symbol)
            return self._build_type(type_symbol, dependencies)
        return self._memoized(self._type_cache, type_symbol, lambda s: self._build_type(s, None))

    def _build_type(self, type_symbol, dependencies):
        hooks = tuple(h for h in LIFECYCLE_HOOKS if self.reflector.has_lifecycle_hook(type_symbol, h))
        return CompileTypeMetadata(
            reference=type_symbol,
            di_deps=self._dependencies(type_symbol, dependencies),
            lifecycle_hooks=hooks,
        )

    def _dependencies(self, owner, dependencies=None):
        if dependencies is None:
            params = self.reflector.parameters(owner)
        else:
            params = [d if isinstance(d, list) else [d] for d in dependencies]
        deps = []
        unresolved = False
        for param in params:
            token = None
            flags = {}
            for item in param:
                if isinstance(item, InjectAnnotation):
                    token = item.token
                elif isinstance(item, OptionalAnnotation):
                    flags["is_optional"] = True
                elif isinstance(item, SelfAnnotation):
                    flags["is_self"] = True
                elif isinstance(item, SkipSelfAnnotation):
                    flags["is_skip_self"] = True
                elif isinstance(item, HostAnnotation):
                    flags["is_host"] = True
                elif token is None:
                    token = item
            if isinstance(token, (StaticSymbol, str)):
                deps.append(CompileDiDependencyMetadata(token=self._token(owner, token), **flags))
            else:
                unresolved = True
                deps.append(None)
        if unresolved:
            names = ", ".join(d.token.name if d is not None else "?" for d in deps)
            raise self._error(owner, f"Can't resolve all parameters for {owner.name}: ({names}).",
                              suggestion="Annotate every constructor parameter with a type or Inject(TOKEN)")
        return tuple(deps)

    def _token(self, owner, value):
        if isinstance(value, StaticSymbol):
            return CompileTokenMetadata(identifier=self.reflector.resolve_alias(value))
        if isinstance(value, str):
            return CompileTokenMetadata(value=value)
        raise self._error(owner, f"Invalid DI token {describe(value)} in '{owner.name}'")

    # --- providers ---

    def get_providers_metadata(self, providers, owner, field="providers"):
        result = []
        for provider in flatten(providers):
            self._concrete(owner, field, provider)
            if isinstance(provider, StaticSymbol):
                result.append(CompileProviderMetadata(
                    token=self._token(owner, provider),
                    use_class=self.get_type_metadata(provider),
                ))
            elif isinstance(provider, dict) and "provide" in provider:
                result.append(self._provider(owner, provider))
            else:
                raise self._error(
                    owner,
                    f"Invalid {field} for '{owner.name}': only classes and provider dicts are allowed, "
                    f"got {describe(provider)}",
                    suggestion='Use a class or {"provide": TOKEN, "use_value": ...}')
        return tuple(result)

    def _provider(self, owner, provider):
        unknown = set(provider) - _PROVIDER_KEYS
        if unknown:
            raise self._error(owner, f"Unknown provider keys {sorted(unknown)} in '{owner.name}'")
        token = self._token(owner, provider["provide"])
        deps = provider.get("deps")
        multi = bool(provider.get("multi", False))
        if provider.get("use_class") is not None:
            use_class = provider["use_class"]
            if not isinstance(use_class, StaticSymbol):
                raise self._error(owner, f"use_class of provider {token.name} must be a class")
            return CompileProviderMetadata(token=token, use_class=self.get_type_metadata(use_class, deps),
                                           multi=multi)
        if provider.get("use_factory") is not None:
            factory = provider["use_factory"]
            if not isinstance(factory, StaticSymbol):
                raise self._error(owner, f"use_factory of provider {token.name} must be a function")
            di_deps = self._dependencies(owner, deps or [])
            return CompileProviderMetadata(
                token=token, multi=multi, deps=di_deps,
                use_factory=CompileFactoryMetadata(reference=self.reflector.resolve_alias(factory),
                                                   di_deps=di_deps))
        if provider.get("use_existing") is not None:
            return CompileProviderMetadata(token=token, multi=multi,
                                           use_existing=self._token(owner, provider["use_existing"]))
        if "use_value" in provider:
            value = self._concrete(owner, "use_value", provider["use_value"])
            unemittable = find_unemittable(value)
            if unemittable is not None:
                raise self._error(
                    owner, f"use_value of provider {token.name} in '{owner.name}' cannot be written to generated "
                           f"code: {_short(unemittable)}",
                    suggestion="Use literals, lists, dicts and references to declared names only")
            return CompileProviderMetadata(token=token, multi=multi, use_value=value)
        raise self._error(owner, f"Provider for {token.name} in '{owner.name}' needs one of "
                                 f"use_class, use_value, use_existing or use_factory")

    # --- modules ---

    @property
    def _modules_in_progress(self):
        active = getattr(self._local, "modules", None)
        if active is None:
            active = self._local.modules = []
        return active

    def get_module_metadata(self, type_symbol):
        type_symbol = self.reflector.resolve_alias(type_symbol)
        if type_symbol in self._modules_in_progress and type_symbol not in self._module_cache:
            chain = " -> ".join(s.name for s in self._modules_in_progress + [type_symbol])
            raise self._error(type_symbol, f"Cyclic module import: {chain}")
        self._modules_in_progress.append(type_symbol)
        try:
            return self._memoized(self._module_cache, type_symbol, self._load_module)
        finally:
            self._modules_in_progress.pop()

    def _load_module(self, type_symbol):
        debug_log(f"Resolving module metadata for {type_symbol.qualified_name}")
        name = type_symbol.name
        annotation = find_annotation(self.reflector.annotations(type_symbol), ModuleAnnotation)
        if annotation is None:
            raise self._error(type_symbol, f"Class '{name}' is not a module")
        builder = TransitiveModuleBuilder()
        providers = []
        imported_modules = []
        exported_modules = []
        declared_directives = []
        declared_pipes = []
        failed = set()

        for item in flatten(annotation.imports):
            module_symbol, extra_providers = item, []
            if isinstance(item, dict) and "module" in item:
                module_symbol, extra_providers = item["module"], item.get("providers", [])
            if not isinstance(module_symbol, StaticSymbol) or not self.is_module(module_symbol):
                raise self._error(type_symbol,
                                  f"Unexpected value '{describe(item)}' imported by the module '{name}'",
                                  suggestion="Only classes decorated with @Module can be imported")
            imported = self.get_module_metadata(module_symbol)
            imported_modules.append(imported.type.reference)
            providers.extend(self.get_providers_metadata(extra_providers, type_symbol))
            transitive = imported.transitive_module
            for module in transitive.modules:
                builder.add_module(module)
            for provider, owner in transitive.providers:
                builder.add_provider(provider, owner)
            for directive in transitive.exported_directives:
                builder.add_directive(directive)
            for pipe in transitive.exported_pipes:
                builder.add_pipe(pipe)
            for component in transitive.entry_components:
                builder.add_entry_component(component)

        for item in flatten(annotation.declarations):
            if not isinstance(item, StaticSymbol):
                raise self._error(type_symbol, f"Unexpected value '{describe(item)}' declared by the module '{name}'")
            item = self.reflector.resolve_alias(item)
            if self.is_directive(item):
                target, load, add = declared_directives, self.get_directive_metadata, builder.add_directive
            elif self.is_pipe(item):
                target, load, add = declared_pipes, self.get_pipe_metadata, builder.add_pipe
            else:
                raise self._error(type_symbol,
                                  f"Unexpected value '{item.name}' declared by the module '{name}'",
                                  suggestion="Add a @Component, @Directive or @Pipe decorator")
            try:
                load(item)
            except HakoCompileError as e:
                # reported against the declaration itself when its file is compiled
                debug_log(f"Skipping declaration {item.name} of {name}: {e.message}")
                failed.add(item)
                continue
            target.append(item)
            add(item)

        exported_directives = []
        exported_pipes = []
        for item in flatten(annotation.exports):
            if not isinstance(item, StaticSymbol):
                raise self._error(type_symbol, f"Unexpected value '{describe(item)}' exported by the module '{name}'")
            item = self.reflector.resolve_alias(item)
            if item in failed:
                continue
            if self.is_module(item):
                exported_modules.append(item)
                transitive = self.get_module_metadata(item).transitive_module
                for directive in transitive.exported_directives:
                    builder.add_exported_directive(directive)
                for pipe in transitive.exported_pipes:
                    builder.add_exported_pipe(pipe)
            elif item in declared_directives or item in builder.directives:
                exported_directives.append(item)
                builder.add_exported_directive(item)
            elif item in declared_pipes or item in builder.pipes:
                exported_pipes.append(item)
                builder.add_exported_pipe(item)
            else:
                raise self._error(type_symbol,
                                  f"Can't export '{item.name}' from '{name}' as it was neither declared nor imported")

        providers.extend(self.get_providers_metadata(annotation.providers, type_symbol))
        entry_components = self._types(type_symbol, "entry_components", annotation.entry_components)
        bootstrap = self._types(type_symbol, "bootstrap", annotation.bootstrap)
        for component in entry_components + bootstrap:
            builder.add_entry_component(component)
        for provider in providers:
            builder.add_provider(provider, type_symbol)
        builder.add_module(type_symbol)

        schemas = []
        for schema in flatten(annotation.schemas):
            schema_name = schema.get("name") if isinstance(schema, dict) else None
            if schema_name not in KNOWN_SCHEMAS:
                raise self._error(type_symbol, f"Unknown schema {describe(schema)} in module '{name}'")
            schemas.append(schema_name)

        return CompileModuleMetadata(
            type=self.get_type_metadata(type_symbol),
            declared_directives=tuple(declared_directives),
            exported_directives=tuple(exported_directives),
            declared_pipes=tuple(declared_pipes),
            exported_pipes=tuple(exported_pipes),
            entry_components=entry_components,
            bootstrap_components=bootstrap,
            providers=tuple(providers),
            imported_modules=tuple(imported_modules),
            exported_modules=tuple(exported_modules),
            schemas=tuple(schemas),
            id=self._string(type_symbol, "id", annotation.id),
            transitive_module=builder.build(),
            source_file=type_symbol.file_path,
            line=self.reflector.line_of(type_symbol),
        )
