"""
Unit tests for turning template expressions into view source.
"""
import pytest

from hakoc.compilers.expression import ExpressionConverter, NameScope, binding_target, renderer_call
from hakoc.errors import ParseError
from hakoc.template.parser import BindingParser


@pytest.fixture
def bindings():
    return BindingParser({"upper": "UpperPipe", "slice": "SlicePipe"}, "card.html", "")


@pytest.fixture
def converter():
    scope = NameScope("self", "self.component", {"item": "self.context['item']"})
    return ExpressionConverter(scope, pipe_source=lambda name: f"self.pipe_{name}", pure_pipes={"upper"})


class TestExpressionConverter:
    """Tests for binding, interpolation and action conversion."""

    def test_free_names_read_the_component(self, bindings, converter):
        """Names not bound in the template read from the component."""
        assert converter.convert_binding(bindings.parse_binding("name.upper()")) == "self.component.name.upper()"
        assert converter.convert_binding(bindings.parse_binding("len(items)")) == "len(self.component.items)"

    def test_template_variables_shadow_members(self, bindings, converter):
        """Template variables come from the view context."""
        assert converter.convert_binding(bindings.parse_binding("item.title")) == "self.context['item'].title"

    def test_comprehension_targets_stay_local(self, bindings, converter):
        """Comprehension variables are not rewritten."""
        source = converter.convert_binding(bindings.parse_binding("[x * 2 for x in values]"))
        assert source == "[x * 2 for x in self.component.values]"

    def test_interpolation(self, bindings, converter):
        """Interpolations become one interpolate call over the converted expressions."""
        interpolation = bindings.parse_interpolation("Hi {{ name }}!")
        assert converter.convert_interpolation(interpolation) == \
            "self.interpolate(('Hi ', '!'), (self.component.name,))"

    def test_pure_pipes_are_cached_per_call_site(self, bindings, converter):
        """Each pure pipe call gets its own cache key."""
        first = converter.convert_binding(bindings.parse_binding("name | upper"), "text0")
        second = converter.convert_binding(bindings.parse_binding("title | upper"), "text0")
        assert first == "self.pure_pipe('text0:1', self.pipe_upper, self.component.name)"
        assert second == "self.pure_pipe('text0:2', self.pipe_upper, self.component.title)"

    def test_impure_pipes_transform_directly(self, bindings, converter):
        """Impure pipes call transform on every check."""
        source = converter.convert_binding(bindings.parse_binding("items | slice(1, limit)"))
        assert source == "self.pipe_slice.transform(self.component.items, 1, self.component.limit)"

    def test_actions(self, bindings, converter):
        """Event actions become statements, and calls report whether they may return False."""
        action = bindings.parse_action("count = count + 1; save($event)")
        assert converter.convert_action(action) == [
            ("self.component.count = self.component.count + 1", False),
            ("self.component.save(event)", True),
        ]

    def test_assigning_a_template_variable_fails(self, bindings, converter):
        """Template variables are read only in actions."""
        with pytest.raises(ParseError):
            converter.convert_action(bindings.parse_action("item = None"))

    def test_plain_values(self, converter):
        """Constant values are rendered as literals."""
        assert converter.convert_value("plain") == "'plain'"


class TestBindingTargets:
    """Tests for the binding name helpers shared by both view strategies."""

    def test_binding_target(self):
        """Binding names are split into kind, name and unit."""
        assert binding_target("class.active") == ("class", "active", None)
        assert binding_target("style.width.px") == ("style", "width", "px")
        assert binding_target("attr.aria-label") == ("attribute", "aria-label", None)
        assert binding_target("title") == ("property", "title", None)

    def test_renderer_call(self):
        """Each binding kind maps to its renderer setter."""
        assert renderer_call("self", "class", 3, "on", "True") == "self.set_class(3, 'on', True)"
        assert renderer_call("self", "style", 0, "width", "w", "px") == "self.set_style(0, 'width', w, 'px')"
        assert renderer_call("self", "property", 1, "value", "v") == "self.set_property(1, 'value', v)"
