"""
Common structural directives and pipes, exported by CommonModule.

The compiler resolves these declarations through common.summary.json;
keep the two in sync when adding inputs or members.
"""
import json

from hakoc.runtime.core import Directive, Module, Pipe, TemplateRef, ViewContainerRef


class IfContext:

    def __init__(self):
        self.implicit = None
        self.if_ = None


@Directive(selector="[if]", inputs=["condition: if", "else_template: if_else"])
class IfDirective:
    """Renders its template while the condition is truthy, else the ``else`` template."""

    def __init__(self, view_container: ViewContainerRef, template_ref: TemplateRef):
        self._view_container = view_container
        self._then_template = template_ref
        self._else_template = None
        self._condition = None
        self._context = IfContext()
        self._showing = None

    @property
    def condition(self):
        return self._condition

    @condition.setter
    def condition(self, value):
        self._condition = value
        self._context.implicit = self._context.if_ = value
        self._update()

    @property
    def else_template(self):
        return self._else_template

    @else_template.setter
    def else_template(self, value):
        self._else_template = value
        self._showing = None
        self._update()

    def _update(self):
        template = self._then_template if self._condition else self._else_template
        if template is self._showing and len(self._view_container):
            return
        self._view_container.clear()
        self._showing = template
        if template is not None:
            self._view_container.create_embedded_view(template, self._context)


class ForOfContext:

    def __init__(self, implicit, for_of, index, count):
        self.implicit = implicit
        self.for_of = for_of
        self.index = index
        self.count = count

    @property
    def first(self):
        return self.index == 0

    @property
    def last(self):
        return self.index == self.count - 1

    @property
    def even(self):
        return self.index % 2 == 0

    @property
    def odd(self):
        return not self.even


@Directive(selector="[for][for_of]", inputs=["for_of"])
class ForOfDirective:
    """Stamps its template once per item of ``for_of``, reusing views by position."""

    def __init__(self, view_container: ViewContainerRef, template_ref: TemplateRef):
        self._view_container = view_container
        self._template = template_ref
        self.for_of = None

    def do_check(self):
        items = list(self.for_of or ())
        count = len(items)
        container = self._view_container
        while len(container) > count:
            container.remove()
        for index, item in enumerate(items):
            if index < len(container):
                context = container.get(index).context
                context.implicit, context.for_of, context.index, context.count = item, self.for_of, index, count
            else:
                container.create_embedded_view(self._template, ForOfContext(item, self.for_of, index, count))


@Pipe("upper")
class UpperPipe:

    def transform(self, value):
        return None if value is None else str(value).upper()


@Pipe("lower")
class LowerPipe:

    def transform(self, value):
        return None if value is None else str(value).lower()


@Pipe("json", pure=False)
class JsonPipe:

    def transform(self, value):
        return json.dumps(value, indent=2, default=str)


@Pipe("slice", pure=False)
class SlicePipe:

    def transform(self, value, start, end=None):
        if value is None:
            return value
        return value[start:end]


COMMON_DIRECTIVES = [IfDirective, ForOfDirective]
COMMON_PIPES = [UpperPipe, LowerPipe, JsonPipe, SlicePipe]


@Module(declarations=[COMMON_DIRECTIVES, COMMON_PIPES], exports=[COMMON_DIRECTIVES, COMMON_PIPES])
class CommonModule:
    pass
