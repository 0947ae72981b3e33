"""
Unit tests for loading component templates and styles.
"""
import pytest

from hakoc.config import CompilerConfig, ViewEncapsulation
from hakoc.errors import CancellationToken, CompilationCancelled, ResolutionError
from hakoc.host import MemoryHost
from hakoc.metadata import (
    CompileDirectiveMetadata, CompileStylesheetMetadata, CompileTemplateMetadata, CompileTypeMetadata,
)
from hakoc.normalizer import DirectiveNormalizer, extract_style_imports
from hakoc.symbols import StaticSymbolCache
from hakoc.template.html_parser import HtmlParser
from hakoc.template.i18n import I18nHtmlParser
from hakoc.url_resolver import UrlResolver


def component(**template):
    return CompileDirectiveMetadata(
        type=CompileTypeMetadata(reference=StaticSymbolCache().get("/app/card/card.py", "Card")),
        is_component=True,
        selector="x-card",
        template=CompileTemplateMetadata(**template),
        source_file="/app/card/card.py",
    )


class CancellingHost(MemoryHost):
    """Cancels the token while a resource is being loaded."""

    def __init__(self, token, **kwargs):
        super().__init__(**kwargs)
        self.token = token

    def load_resource(self, url):
        text = super().load_resource(url)
        self.token.cancel()
        return text


class TestDirectiveNormalizer:
    """Tests for resource loading and template preparsing."""

    @pytest.fixture
    def host(self, memory_host):
        return memory_host({}, resources={
            "/app/card/card.html": """
                <link rel="stylesheet" href="extra.css">
                <style>p { margin: 0; }</style>
                <header><content select="h1"></content></header>
                <content></content>
            """,
            "/app/card/extra.css": "@import 'base.css';\nh1 { color: red; }",
            "/app/card/base.css": "* { box-sizing: border-box; }",
            "/app/card/plain.html": "<p>plain</p>",
        })

    @pytest.fixture
    def normalizer(self, host):
        html_parser = HtmlParser()
        return DirectiveNormalizer(host, html_parser, I18nHtmlParser(html_parser), CompilerConfig(), UrlResolver())

    def test_external_template_and_stylesheets(self, normalizer):
        """External templates are loaded and their style tags and links collected."""
        card = component(template_url="card.html", styles=("b { color: blue; }",), is_inline=False)
        template = normalizer.normalize_template(card).template
        assert template.template_url == "/app/card/card.html"
        assert "<content select=\"h1\">" in template.template
        assert template.styles == ("b { color: blue; }", "p { margin: 0; }")
        assert template.style_urls == ("/app/card/extra.css",)
        urls = [s.module_url for s in template.external_stylesheets]
        assert urls == ["/app/card/extra.css", "/app/card/base.css"]
        assert template.external_stylesheets[0].styles == ("\nh1 { color: red; }",)
        assert template.content_selectors == ("h1", "*")
        assert template.encapsulation == ViewEncapsulation.EMULATED

    def test_inline_template_without_styles_drops_emulation(self, normalizer):
        """Inline templates without styles fall back to no encapsulation."""
        template = normalizer.normalize_template(component(template="<p>hi</p>")).template
        assert template.template == "<p>hi</p>"
        assert template.template_url == "/app/card/card.py"
        assert template.encapsulation == ViewEncapsulation.NONE

    def test_explicit_encapsulation_is_kept(self, normalizer):
        """An explicit encapsulation is never replaced."""
        card = component(template="<p>hi</p>", encapsulation=ViewEncapsulation.SHADOW)
        assert normalizer.normalize_template(card).template.encapsulation == ViewEncapsulation.SHADOW

    def test_resources_are_loaded_once(self, normalizer, host):
        """A resource is read once however many times it is needed."""
        card = component(template_url="plain.html", is_inline=False)
        normalizer.normalize_template(card)
        normalizer.normalize_template(card)
        assert host.resource_reads["/app/card/plain.html"] == 1

    def test_missing_resource(self, normalizer):
        """A missing resource is a resolution error naming the resolved url."""
        with pytest.raises(ResolutionError) as exc_info:
            normalizer.normalize_template(component(template_url="gone.html", is_inline=False))
        assert "Can't resolve resource '/app/card/gone.html'" in exc_info.value.message

    def test_cancelled_before_loading(self, normalizer, host):
        """A cancelled token stops normalization before any load."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(CompilationCancelled):
            normalizer.normalize_template(component(template_url="plain.html", is_inline=False), token)
        assert host.resource_reads["/app/card/plain.html"] == 0

    def test_cancelled_during_a_load(self, host):
        """A load that finishes after cancellation is not cached."""
        token = CancellationToken()
        cancelling = CancellingHost(token, resources=host.resources)
        normalizer = DirectiveNormalizer(cancelling, HtmlParser(), I18nHtmlParser(HtmlParser()), CompilerConfig())
        card = component(template_url="plain.html", is_inline=False)
        with pytest.raises(CompilationCancelled):
            normalizer.normalize_template(card, token)
        assert normalizer.normalize_template(card).template.template == "<p>plain</p>"
        assert cancelling.resource_reads["/app/card/plain.html"] == 2

    def test_clear_cache_reloads(self, normalizer, host):
        """Clearing the cache makes the next request read the resource again."""
        card = component(template_url="plain.html", is_inline=False)
        normalizer.normalize_template(card)
        normalizer.clear_cache()
        normalizer.normalize_template(card)
        assert host.resource_reads["/app/card/plain.html"] == 2

    def test_normalize_stylesheet(self, normalizer):
        """Stylesheet imports are resolved relative to the importing module."""
        sheet = normalizer.normalize_stylesheet(CompileStylesheetMetadata(
            module_url="/app/card/card.py", styles=("@import 'theme.css';\np {}",), style_urls=("/app/base.css",)))
        assert [s.strip() for s in sheet.styles] == ["p {}"]
        assert sheet.style_urls == ("/app/base.css", "/app/card/theme.css")


class TestStyleImports:
    """Tests for splitting ``@import`` out of style sheets."""

    def test_local_imports_are_extracted(self):
        """Local @import rules are removed and collected in order."""
        text, urls = extract_style_imports("/* c */@import url('a.css');\n@import \"b.css\";\np {}")
        assert urls == ["a.css", "b.css"]
        assert text.strip() == "p {}"

    def test_remote_imports_stay(self):
        """Imports of remote sheets are left in the text."""
        text, urls = extract_style_imports("@import 'https://fonts.example.com/x.css';")
        assert urls == []
        assert "https://fonts.example.com/x.css" in text


class TestUrlResolver:
    """Tests for resolving resource urls."""

    def test_relative_to_file(self):
        """Relative urls resolve against the importing file."""
        assert UrlResolver().resolve("/app/card/card.py", "../shared/a.css") == "/app/shared/a.css"

    def test_scheme_urls(self):
        """Urls with a scheme are absolute and resolve against each other."""
        resolver = UrlResolver()
        assert resolver.resolve("/app/a.py", "https://x.test/a.css") == "https://x.test/a.css"
        assert resolver.resolve("https://x.test/css/a.css", "b.css") == "https://x.test/css/b.css"
