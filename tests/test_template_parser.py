"""
Unit tests for the template parser.
"""
import pytest

from hakoc.config import CompilerConfig
from hakoc.errors import ParseError, SchemaError
from hakoc.metadata import (
    CompileDirectiveMetadata, CompilePipeMetadata, CompileTemplateMetadata, CompileTypeMetadata,
)
from hakoc.schema import DomElementSchemaRegistry
from hakoc.symbols import StaticSymbolCache
from hakoc.template.ast import (
    BoundTextAst, ContentAst, ElementAst, EmbeddedTemplateAst, PropertyBindingType, TextAst,
)
from hakoc.template.html_parser import HtmlParser
from hakoc.template.parser import TemplateParser, parse_template_bindings

SYMBOLS = StaticSymbolCache()


def directive(name, selector, is_component=False, content_selectors=(), **fields):
    template = None
    if is_component:
        template = CompileTemplateMetadata(template="", content_selectors=content_selectors)
    return CompileDirectiveMetadata(
        type=CompileTypeMetadata(reference=SYMBOLS.get("/app/things.py", name)),
        is_component=is_component,
        selector=selector,
        template=template,
        source_file="/app/things.py",
        **fields,
    )


def pipe(name, pure=True):
    return CompilePipeMetadata(type=CompileTypeMetadata(reference=SYMBOLS.get("/app/things.py", name.title())),
                               name=name, pure=pure)


HOST = directive("Host", "x-host", is_component=True)
HIGHLIGHT = directive("Highlight", "[highlight]", inputs={"color": "highlight"}, outputs={"lit": "lit"},
                      export_as="hl", host_properties={"class.lit": "active"}, host_listeners={"click": "flash()"})
CARD = directive("Card", "x-card", is_component=True, content_selectors=("header", "*"), inputs={"title": "title"})
IF = directive("IfDirective", "[if]", inputs={"condition": "if"})
FOR = directive("ForOfDirective", "[for][for_of]", inputs={"for_of": "for_of"})


class TestTemplateParser:
    """Tests for binding IR built from markup and the directives in scope."""

    @pytest.fixture
    def parse(self):
        def parse(template, directives=(HIGHLIGHT, CARD, IF, FOR), pipes=(), schemas=(), **config):
            parser = TemplateParser(CompilerConfig(**config), DomElementSchemaRegistry(), HtmlParser())
            return parser.parse(HOST, template, list(directives), list(pipes), schemas, "/app/host.html")
        return parse

    def test_text_and_interpolation(self, parse):
        """Static attributes stay attributes and text with interpolations is bound."""
        result = parse('<div class="box">Hi {{ name }}!</div>')
        assert result.errors == []
        (div,) = result.template_ast
        assert isinstance(div, ElementAst)
        assert [(a.name, a.value) for a in div.attrs] == [("class", "box")]
        (text,) = div.children
        assert isinstance(text, BoundTextAst)
        assert text.value.strings == ("Hi ", "!")
        assert text.value.expressions[0].source == "name"

    def test_plain_text(self, parse):
        """Whitespace runs in plain text collapse."""
        (text,) = parse("just   words").template_ast
        assert isinstance(text, TextAst)
        assert text.value == "just words"

    def test_property_attribute_class_and_style_bindings(self, parse):
        """Binding prefixes select the property, attribute, class or style kind."""
        result = parse('<input [value]="name" [attr.aria-label]="label" [class.on]="active" '
                       '[style.width.px]="size">')
        assert result.errors == [] and result.warnings == []
        (element,) = result.template_ast
        kinds = [(i.type, i.name, i.unit) for i in element.inputs]
        assert kinds == [
            (PropertyBindingType.PROPERTY, "value", None),
            (PropertyBindingType.ATTRIBUTE, "aria-label", None),
            (PropertyBindingType.CLASS, "on", None),
            (PropertyBindingType.STYLE, "width", "px"),
        ]

    def test_events_and_two_way_binding(self, parse):
        """Events become outputs and two way bindings add a change event."""
        (element,) = parse('<input (keyup)="last = $event" [(value)]="name">').template_ast
        assert [e.name for e in element.outputs] == ["keyup", "value_change"]
        assert element.outputs[0].handler.source == "last = $event"
        assert [i.name for i in element.inputs] == ["value"]

    def test_unknown_property_is_a_warning_by_default(self, parse):
        """Unknown properties are schema warnings."""
        result = parse('<div [flavor]="x"></div>')
        assert result.errors == []
        (warning,) = result.warnings
        assert isinstance(warning, SchemaError)
        assert "Can't bind to 'flavor' since it isn't a known property of 'div'" in warning.message

    def test_schema_problems_as_errors(self, parse):
        """Schema problems become errors at error severity."""
        result = parse('<x-unknown></x-unknown>', schema_error_severity="error")
        assert result.warnings == []
        assert "'x-unknown' is not a known element" in result.errors[0].message

    def test_custom_elements_schema(self, parse):
        """The custom elements schema accepts unknown elements and properties."""
        result = parse('<x-unknown [anything]="1"></x-unknown>', schemas=("custom-elements",))
        assert result.errors == [] and result.warnings == []

    def test_event_property_binding_is_rejected(self, parse):
        """Binding to on* properties is a schema error."""
        result = parse('<button [onclick]="go()"></button>')
        assert isinstance(result.errors[0], SchemaError)
        assert "disallowed for security reasons" in result.errors[0].message

    def test_animation_triggers_are_rejected(self, parse):
        """Animation trigger attributes, bindings and callbacks are parse errors."""
        result = parse('<div @fade [@open]="shown" (@open.done)="log()" [title]="name"></div>')
        assert [type(e) for e in result.errors] == [ParseError] * 3
        assert "Animation trigger '[@open]' is not supported" in result.errors[1].message
        (element,) = result.template_ast
        assert element.attrs == [] and element.outputs == []
        assert [i.name for i in element.inputs] == ["title"]

    def test_directive_inputs_outputs_and_host_bindings(self, parse):
        """Directive inputs, outputs, host bindings and exported references are matched."""
        result = parse('<p highlight="red" (lit)="done()" #mark="hl"></p>')
        assert result.errors == []
        (element,) = result.template_ast
        (directive_ast,) = element.directives
        assert directive_ast.directive is HIGHLIGHT
        assert [(i.directive_name, i.value) for i in directive_ast.inputs] == [("color", "red")]
        assert [prop for prop, _ in directive_ast.outputs] == ["lit"]
        assert element.outputs == []
        assert [p.name for p in directive_ast.host_properties] == ["lit"]
        assert [e.name for e in directive_ast.host_events] == ["click"]
        assert element.references[0].value is HIGHLIGHT.type.reference

    def test_component_content_projection(self, parse):
        """Component children are assigned to its content slots."""
        result = parse('<x-card [title]="t"><header>Top</header><p>Body</p>text</x-card>')
        assert result.errors == [] and result.warnings == []
        (card,) = result.template_ast
        assert card.component is CARD
        assert [c.content_index for c in card.children] == [0, 1, 1]
        assert card.inputs == []

    def test_content_slots_are_numbered(self, parse):
        """Content elements are numbered in template order."""
        (div,) = parse('<div><content select="header"></content><content></content></div>').template_ast
        assert [(c.index, type(c)) for c in div.children] == [(0, ContentAst), (1, ContentAst)]

    def test_structural_if(self, parse):
        """*if wraps the element in an embedded template bound to the directive."""
        result = parse('<p *if="visible">Shown</p>')
        assert result.errors == []
        (template,) = result.template_ast
        assert isinstance(template, EmbeddedTemplateAst)
        assert template.directives[0].directive is IF
        assert template.directives[0].inputs[0].value.source == "visible"
        assert isinstance(template.children[0], ElementAst)

    def test_structural_for_with_variables(self, parse):
        """*for declares its template variables."""
        (template,) = parse('<li *for="let item of items; let i = index">{{ i }}: {{ item }}</li>').template_ast
        assert [(v.name, v.value) for v in template.variables] == [("item", "implicit"), ("i", "index")]
        assert template.directives[0].directive is FOR

    def test_unmatched_template_binding(self, parse):
        """A template binding no directive takes is an error."""
        result = parse('<p *if="visible"></p>', directives=())
        assert "Property binding if not used by any directive" in result.errors[0].message

    def test_pipes(self, parse):
        """Used pipes are reported once."""
        upper = pipe("upper")
        result = parse('<p>{{ name | upper }}</p>', pipes=(upper,))
        assert result.errors == []
        assert result.used_pipes == [upper]
        (p,) = result.template_ast
        expression = p.children[0].value.expressions[0]
        assert expression.pipes[0][0] == "upper"

    def test_unknown_pipe(self, parse):
        """Pipes not in scope are errors."""
        result = parse('<p>{{ name | nope }}</p>')
        assert "The pipe 'nope' could not be found" in result.errors[0].message

    def test_bad_expressions(self, parse):
        """Lambdas and blank expressions are rejected."""
        result = parse('<p [title]="lambda: 1">{{ }}</p>')
        messages = [e.message for e in result.errors]
        assert any("Bindings cannot contain lambdas" in m for m in messages)
        assert any("Blank expressions are not allowed" in m for m in messages)

    def test_markup_errors_stop_parsing(self, parse):
        """Markup errors end the parse with no template."""
        result = parse('<div></span>')
        assert result.template_ast == []
        assert 'Unexpected closing tag "span"' in result.errors[0].message

    def test_two_components_on_one_element(self, parse):
        """An element can match only one component."""
        other = directive("Other", "x-card", is_component=True)
        result = parse('<x-card></x-card>', directives=(CARD, other))
        assert "More than one component matched on this element: Card, Other" in result.errors[0].message


class TestMicrosyntax:
    """Tests for the ``*directive`` value syntax."""

    def test_for_of(self):
        """let declarations and the of key split into bindings and variables."""
        bindings, variables = parse_template_bindings("for", "let item of items; let i = index")
        assert bindings == [("for", None), ("for_of", "items")]
        assert variables == [("item", "implicit"), ("i", "index")]

    def test_expression_first(self):
        """A leading expression binds the directive itself."""
        bindings, variables = parse_template_bindings("if", "user; else: fallback")
        assert bindings == [("if", "user"), ("if_else", "fallback")]
        assert variables == []
