"""
Annotation shapes for the decorators of ``hakoc.runtime.core``.

Each decorator call the reflector evaluates becomes one of these models.
Field values are whatever the reflector produced (literals, lists, dicts,
StaticSymbols or Opaque values); checking that required values are
concrete is left to the metadata resolver.
"""
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from hakoc.errors import MetadataError

CORE_MODULE = "hakoc.runtime.core"


class Annotation(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True, frozen=True)

    # names of the fields that may be passed positionally, in order
    positional: ClassVar[Tuple[str, ...]] = ()


class DirectiveAnnotation(Annotation):
    selector: Any = None
    inputs: List[Any] = []
    outputs: List[Any] = []
    host: Dict[str, Any] = {}
    providers: List[Any] = []
    export_as: Any = None


class ComponentAnnotation(DirectiveAnnotation):
    template: Any = None
    template_url: Any = None
    styles: List[Any] = []
    style_urls: List[Any] = []
    encapsulation: Any = None
    change_detection: Any = None
    view_providers: List[Any] = []
    entry_components: List[Any] = []


class PipeAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("name",)

    name: Any = None
    pure: Any = True


class ModuleAnnotation(Annotation):
    declarations: List[Any] = []
    imports: List[Any] = []
    exports: List[Any] = []
    providers: List[Any] = []
    bootstrap: List[Any] = []
    entry_components: List[Any] = []
    schemas: List[Any] = []
    id: Any = None


class InjectableAnnotation(Annotation):
    pass


class InputAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("alias",)

    alias: Any = None


class OutputAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("alias",)

    alias: Any = None


class HostBindingAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("host_property_name",)

    host_property_name: Any = None


class HostListenerAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("event_name", "args")

    event_name: Any = None
    args: List[Any] = []


class InjectAnnotation(Annotation):
    positional: ClassVar[Tuple[str, ...]] = ("token",)

    token: Any = None


class OptionalAnnotation(Annotation):
    pass


class SelfAnnotation(Annotation):
    pass


class SkipSelfAnnotation(Annotation):
    pass


class HostAnnotation(Annotation):
    pass


CORE_DECORATORS = {
    "Component": ComponentAnnotation,
    "Directive": DirectiveAnnotation,
    "Pipe": PipeAnnotation,
    "Module": ModuleAnnotation,
    "Injectable": InjectableAnnotation,
    "Input": InputAnnotation,
    "Output": OutputAnnotation,
    "HostBinding": HostBindingAnnotation,
    "HostListener": HostListenerAnnotation,
    "Inject": InjectAnnotation,
    "Optional": OptionalAnnotation,
    "Self": SelfAnnotation,
    "SkipSelf": SkipSelfAnnotation,
    "Host": HostAnnotation,
}


def annotation_factory(model, name):
    """Build the registered factory that turns a decorator call into ``model``."""
    def factory(context, args, kwargs):
        if len(args) > len(model.positional):
            raise MetadataError(
                f"@{name} takes at most {len(model.positional)} positional arguments, got {len(args)}",
                file_path=getattr(context, "file_path", None),
                symbol=getattr(context, "name", None),
            )
        values = dict(zip(model.positional, args))
        for key, value in kwargs.items():
            if key in values:
                raise MetadataError(f"@{name} got multiple values for '{key}'",
                                    file_path=getattr(context, "file_path", None),
                                    symbol=getattr(context, "name", None))
            values[key] = value
        try:
            return model(**values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise MetadataError(
                f"Invalid arguments for @{name}: {problems}",
                file_path=getattr(context, "file_path", None),
                symbol=getattr(context, "name", None),
                suggestion=f"Check the keyword arguments accepted by {name}",
            )
    return factory


def _forward_ref(context, factory):
    if callable(factory):
        return factory()
    return factory


def _injection_token(context, description=None):
    # the token is the constant it is assigned to
    return context


CORE_FUNCTIONS = {
    "forward_ref": _forward_ref,
    "InjectionToken": _injection_token,
}


def install_core_annotations(reflector):
    """Register the core decorators and functions with a StaticReflector."""
    for name, model in CORE_DECORATORS.items():
        reflector.register_decorator(reflector.find_declaration(CORE_MODULE, name),
                                     annotation_factory(model, name))
    for name, fn in CORE_FUNCTIONS.items():
        reflector.register_function(reflector.find_declaration(CORE_MODULE, name), fn)


def find_annotation(annotations, kind) -> Optional[Annotation]:
    """Last annotation of the given model class, mirroring decorator override order."""
    found = None
    for annotation in annotations:
        if isinstance(annotation, kind):
            found = annotation
    return found
