"""
Unit tests for the markup parser, selectors and translations.
"""
import io

import pytest

from hakoc.config import MissingTranslationStrategy
from hakoc.console import Console
from hakoc.errors import ParseError
from hakoc.template.html_parser import HtmlComment, HtmlElement, HtmlParser, HtmlText, serialize_nodes
from hakoc.template.i18n import I18nHtmlParser, load_translations, message_id, parse_i18n_meta
from hakoc.template.selector import CssSelector, SelectorMatcher


@pytest.fixture(scope="module")
def html_parser():
    return HtmlParser()


class TestHtmlParser:
    """Tests for turning markup into element trees."""

    def test_nested_elements_and_text(self, html_parser):
        """Elements nest, and text has entities decoded and keeps its position."""
        result = html_parser.parse('<div id="main"><p>Hello &amp; welcome</p></div>')
        assert result.errors == []
        (div,) = result.root_nodes
        assert isinstance(div, HtmlElement)
        assert div.name == "div"
        assert div.get_attribute("id") == "main"
        (p,) = div.children
        assert p.children[0] == HtmlText("Hello & welcome", 1, 19)

    def test_void_elements_do_not_nest(self, html_parser):
        """Void elements close themselves."""
        result = html_parser.parse('<p>a<br>b<img src=x.png></p>')
        (p,) = result.root_nodes
        assert [type(c).__name__ for c in p.children] == ["HtmlText", "HtmlElement", "HtmlText", "HtmlElement"]
        assert p.children[3].get_attribute("src") == "x.png"

    def test_attribute_forms(self, html_parser):
        """Bare, quoted and binding attributes keep their order and values."""
        result = html_parser.parse("<input disabled value='a b' [value]=\"name\" (click)=\"go()\">")
        (element,) = result.root_nodes
        assert [(a.name, a.value) for a in element.attrs] == [
            ("disabled", ""), ("value", "a b"), ("[value]", "name"), ("(click)", "go()")]

    def test_comments_are_kept(self, html_parser):
        """Comments become comment nodes."""
        result = html_parser.parse("<!-- note --><span></span>")
        assert isinstance(result.root_nodes[0], HtmlComment)
        assert result.root_nodes[0].value == " note "

    def test_stray_close_tag_reports_position(self, html_parser):
        """An unmatched close tag is reported with its line and file."""
        result = html_parser.parse("<div>\n  </span>\n</div>", "/app/card.html")
        assert len(result.errors) == 1
        error = result.errors[0]
        assert 'Unexpected closing tag "span"' in error.message
        assert error.line_number == 2
        assert error.file_path == "/app/card.html"

    def test_void_end_tag_is_an_error(self, html_parser):
        """A close tag for a void element is an error."""
        result = html_parser.parse("<br></br>")
        assert "Void elements do not have end tags" in result.errors[0].message

    def test_malformed_tag(self, html_parser):
        """Markup outside the grammar is an error with no nodes."""
        result = html_parser.parse('<div "oops"></div>')
        assert result.root_nodes == []
        assert "Unexpected character" in result.errors[0].message

    def test_serialize_nodes(self, html_parser):
        """Serializing parsed nodes gives back the markup."""
        markup = '<ul class="list"><li>1 &lt; 2</li><li><br></li></ul>'
        assert serialize_nodes(html_parser.parse(markup).root_nodes) == markup


class TestCssSelector:
    """Tests for directive selectors."""

    def test_parse_compound_and_alternatives(self):
        """Compound selectors and comma alternatives parse into parts."""
        first, second = CssSelector.parse("div.Big[role=note]:not(.hidden), span")
        assert first.element == "div"
        assert first.class_names == ["big"]
        assert first.attrs == [("role", "note")]
        assert str(first.not_selectors[0]) == ".hidden"
        assert second.is_element_selector()

    def test_matching(self):
        """Element, attribute and :not parts must all agree to match."""
        (selector,) = CssSelector.parse("button[primary]:not(.off)")
        assert selector.matches(CssSelector.for_element("button", [("primary", "")]))
        assert not selector.matches(CssSelector.for_element("button", [("primary", ""), ("class", "off on")]))
        assert not selector.matches(CssSelector.for_element("a", [("primary", "")]))

    def test_attribute_value_must_match(self):
        """Attribute selectors with a value need that exact value."""
        (selector,) = CssSelector.parse("[type=text]")
        assert selector.matches(CssSelector.for_element("input", [("type", "text")]))
        assert not selector.matches(CssSelector.for_element("input", [("type", "radio")]))

    def test_unsupported_syntax(self):
        """Combinators are rejected."""
        with pytest.raises(ParseError):
            CssSelector.parse("div > span")

    def test_matcher_reports_each_context_once(self):
        """A context matched by several alternatives is reported once."""
        matcher = SelectorMatcher()
        matcher.add_selectables(CssSelector.parse("[a], [b]"), "first")
        matcher.add_selectables(CssSelector.parse("div"), "second")
        found = []
        matched = matcher.match(CssSelector.for_element("div", [("a", ""), ("b", "")]),
                                lambda selector, context: found.append(context))
        assert matched
        assert found == ["first", "second"]


class TestI18n:
    """Tests for translation bundles and substitution."""

    def test_meta_parsing(self):
        """i18n metadata splits into meaning, description and custom id."""
        assert parse_i18n_meta("site header|Welcome text@@welcome") == ("site header", "Welcome text", "welcome")
        assert parse_i18n_meta("just a description") == ("", "just a description", None)

    def test_message_id_ignores_whitespace_runs(self):
        """Message ids ignore whitespace runs and depend on the meaning."""
        assert message_id("Hello   world") == message_id("Hello world")
        assert message_id("Hello world", "greeting") != message_id("Hello world")

    def test_json_bundle(self):
        """JSON bundles map ids to translations."""
        assert load_translations('{"translations": {"a": "A"}}', "json") == {"a": "A"}

    def test_xlf_bundle(self):
        """XLIFF trans-units map ids to their targets."""
        bundle = ('<xliff><file><body><trans-unit id="t1"><source>Hi</source>'
                  '<target>Salut</target></trans-unit></body></file></xliff>')
        assert load_translations(bundle, "xlf") == {"t1": "Salut"}

    def test_content_is_replaced(self, html_parser):
        """Translated element content may carry markup."""
        parser = I18nHtmlParser(html_parser, '{"title": "Bonjour <b>monde</b>"}', "json", "fr")
        text, errors = parser.translate('<h1 i18n="@@title">Hello world</h1>')
        assert errors == []
        assert text == '<h1 i18n="@@title">Bonjour <b>monde</b></h1>'

    def test_attribute_is_replaced(self, html_parser):
        """i18n- attributes are translated by the id of their value."""
        translations = '{"%s": "Fermer"}' % message_id("Close")
        parser = I18nHtmlParser(html_parser, translations, "json", "fr")
        text, _ = parser.translate('<button title="Close" i18n-title>x</button>')
        assert 'title="Fermer"' in text

    def test_missing_translation_as_error(self, html_parser):
        """The error strategy reports a missing message and keeps the source."""
        parser = I18nHtmlParser(html_parser, "{}", "json", "fr", MissingTranslationStrategy.ERROR)
        text, errors = parser.translate('<p i18n="@@intro">Hi</p>', "/app/a.html")
        assert text == '<p i18n="@@intro">Hi</p>'
        assert 'Missing translation for message "intro" for locale "fr"' in errors[0].message

    def test_missing_translation_as_warning(self, html_parser):
        """The warning strategy logs a missing message to the console."""
        console = Console(io.StringIO())
        parser = I18nHtmlParser(html_parser, "{}", "json", "fr", MissingTranslationStrategy.WARNING, console)
        _, errors = parser.translate('<p i18n="@@intro">Hi</p>')
        assert errors == []
        assert len(console.warnings) == 1

    def test_without_bundle_nothing_changes(self, html_parser):
        """Without a bundle templates pass through untouched."""
        parser = I18nHtmlParser(html_parser)
        assert parser.translate('<p i18n>Hi</p>') == ('<p i18n>Hi</p>', [])
