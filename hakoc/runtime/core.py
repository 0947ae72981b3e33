"""
Decorators and DI tokens used by Hako component sources.

At runtime these are inert markers: class decorators return the class
unchanged and property markers behave as plain attributes. The compiler
never imports this module; it reads the matching core.summary.json.
"""
from enum import Enum


class ViewEncapsulation(str, Enum):
    EMULATED = "emulated"
    NONE = "none"
    SHADOW = "shadow"


class ChangeDetectionStrategy(str, Enum):
    DEFAULT = "default"
    ON_PUSH = "on_push"


CUSTOM_ELEMENTS_SCHEMA = {"name": "custom-elements"}
NO_ERRORS_SCHEMA = {"name": "no-errors"}


class _ClassDecorator:
    def __init__(self, *args, **kwargs):
        self.args = args
        self.kwargs = kwargs

    def __call__(self, cls):
        return cls


class Component(_ClassDecorator):
    pass


class Directive(_ClassDecorator):
    pass


class Pipe(_ClassDecorator):
    pass


class Module(_ClassDecorator):
    pass


class Injectable(_ClassDecorator):
    pass


class _Property:
    """Class attribute marker that stores a per-instance value."""

    def __init__(self, alias=None):
        self.alias = alias
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.__dict__.get(self.name)

    def __set__(self, instance, value):
        instance.__dict__[self.name] = value


class Input(_Property):
    pass


class HostBinding(_Property):
    pass


class EventEmitter:
    def __init__(self):
        self._subscribers = []

    def subscribe(self, callback):
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def emit(self, value=None):
        for callback in list(self._subscribers):
            callback(value)


class Output(_Property):
    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        emitter = instance.__dict__.get(self.name)
        if emitter is None:
            emitter = instance.__dict__[self.name] = EventEmitter()
        return emitter


class HostListener:
    def __init__(self, event_name, args=None):
        self.event_name = event_name
        self.args = args or []

    def __call__(self, method):
        return method


class _ParameterMarker:
    def __init__(self, token=None):
        self.token = token


class Inject(_ParameterMarker):
    pass


class Optional(_ParameterMarker):
    pass


class Self(_ParameterMarker):
    pass


class SkipSelf(_ParameterMarker):
    pass


class Host(_ParameterMarker):
    pass


class InjectionToken:
    def __init__(self, description):
        self.description = description

    def __repr__(self):
        return f"InjectionToken({self.description!r})"


def forward_ref(factory):
    factory.__forward_ref__ = True
    return factory


class ElementRef:
    def __init__(self, native_element):
        self.native_element = native_element


class TemplateRef:
    pass


class ViewContainerRef:
    pass


class Injector:
    THROW_IF_NOT_FOUND = object()

    def get(self, token, not_found_value=THROW_IF_NOT_FOUND):
        raise NotImplementedError
