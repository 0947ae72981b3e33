"""
Runtime names referenced by generated code.
"""
from hakoc.output.ast import ExternalReference

CORE_MODULE = "hakoc.runtime.core"
VIEW_MODULE = "hakoc.runtime.view"
ENGINE_MODULE = "hakoc.runtime.engine"


def _view(name):
    return ExternalReference(name, module_name=VIEW_MODULE)


def _engine(name):
    return ExternalReference(name, module_name=ENGINE_MODULE)


def _core(name):
    return ExternalReference(name, module_name=CORE_MODULE)


class Identifiers:
    # dependency injection tokens
    ElementRef = _core("ElementRef")
    TemplateRef = _core("TemplateRef")
    ViewContainerRef = _core("ViewContainerRef")
    Injector = _core("Injector")

    # views
    AppView = _view("AppView")
    RendererType = _view("RendererType")
    ComponentFactory = _view("ComponentFactory")
    ComponentFactoryResolver = _view("ComponentFactoryResolver")
    ModuleFactory = _view("ModuleFactory")
    provider = _view("provider")
    check_changed = _view("check_changed")
    SimpleChange = _view("SimpleChange")
    UNINITIALIZED = _view("UNINITIALIZED")

    # view engine
    view_def = _engine("view_def")
    view_factory = _engine("view_factory")
    element_def = _engine("element_def")
    text_def = _engine("text_def")
    anchor_def = _engine("anchor_def")
    projection_def = _engine("projection_def")
    directive_def = _engine("directive_def")
    pipe_def = _engine("pipe_def")
