"""
Unit tests for component style scoping.
"""
from hakoc.compilers.style import CONTENT_ATTR, HOST_ATTR, StyleCompiler, scope_selector, shim_css
from hakoc.config import CompilerConfig, ViewEncapsulation
from hakoc.metadata import (
    CompileDirectiveMetadata, CompileStylesheetMetadata, CompileTemplateMetadata, CompileTypeMetadata,
)
from hakoc.output.ast import Assign, ListExpr, Literal
from hakoc.symbols import StaticSymbolCache


def scoped(selector):
    return scope_selector(selector, "c", "h")


class TestScopeSelector:
    """Tests for scoping single selectors to a component."""

    def test_element_and_class_selectors(self):
        """Every compound selector gets the content attribute."""
        assert scoped("p") == "p[c]"
        assert scoped("h1, .title") == "h1[c], .title[c]"
        assert scoped("div > span.x") == "div[c] > span.x[c]"

    def test_pseudo_classes_come_after_the_attribute(self):
        """The content attribute goes before pseudo classes."""
        assert scoped("a:hover") == "a[c]:hover"
        assert scoped(":first-child") == "[c]:first-child"

    def test_host_selectors(self):
        """:host and :host-context are rewritten to the host attribute."""
        assert scoped(":host") == "[h]"
        assert scoped(":host(.active) p") == ".active[h] p[c]"
        assert scoped(":host-context(.dark) h1") == ".dark [h] h1[c]"

    def test_deep_selectors_are_not_scoped_past_the_combinator(self):
        """Selectors after a deep combinator are left unscoped."""
        assert scoped(":host ::hc-deep .inner span") == "[h] .inner span"
        assert scoped("div >>> b") == "div[c] b"

    def test_default_attributes_use_the_component_placeholder(self):
        """Without explicit attributes the component id placeholder is used."""
        assert scope_selector("p") == f"p[{CONTENT_ATTR}]"
        assert scope_selector(":host") == f"[{HOST_ATTR}]"


class TestShimCss:
    """Tests for scoping whole style sheets."""

    def test_rules_are_scoped_and_comments_dropped(self):
        """Rule selectors are scoped and comments removed."""
        assert shim_css("/* note */p { color: red; }", "c", "h") == "p[c] { color: red; }"

    def test_media_rules_are_scoped_inside(self):
        """Rules nested in @media are scoped."""
        css = "@media (max-width: 10px) { p { color: red; } }"
        assert shim_css(css, "c", "h") == "@media (max-width: 10px) { p[c] { color: red; } }"

    def test_keyframes_pass_through(self):
        """@keyframes bodies are not selectors and stay unchanged."""
        css = "@keyframes spin { from { opacity: 0; } }"
        assert shim_css(css, "c", "h") == css

    def test_statements_before_rules_are_kept(self):
        """At-statements before the first rule are kept as written."""
        assert shim_css("@charset 'utf-8';\np { x: 1 }", "c", "h") == "@charset 'utf-8';\np[c] { x: 1 }"


class TestStyleCompiler:
    """Tests for the generated styles lists."""

    def component(self, encapsulation):
        return CompileDirectiveMetadata(
            type=CompileTypeMetadata(reference=StaticSymbolCache().get("/app/card.py", "Card")),
            is_component=True,
            selector="x-card",
            source_file="/app/card.py",
            template=CompileTemplateMetadata(
                template="<p></p>",
                encapsulation=encapsulation,
                styles=("p { color: red; }", "  "),
                external_stylesheets=(CompileStylesheetMetadata(module_url="/app/x.css", styles=("h1 {}",)),),
            ),
        )

    def test_emulated_styles_are_shimmed(self):
        """Emulated components get a styles list of shimmed sheets."""
        var_name, result = StyleCompiler(CompilerConfig()).compile_component(
            self.component(ViewEncapsulation.EMULATED))
        assert var_name == "styles_Card"
        assert result.statements == [Assign("styles_Card", ListExpr((
            Literal(f"p[{CONTENT_ATTR}] {{ color: red; }}"),
            Literal(f"h1[{CONTENT_ATTR}] {{}}"),
        )))]

    def test_unencapsulated_styles_are_kept(self):
        """Unencapsulated components keep their styles as written."""
        _, result = StyleCompiler(CompilerConfig()).compile_component(self.component(ViewEncapsulation.NONE))
        assert result.statements[0].value == ListExpr((Literal("p { color: red; }"), Literal("h1 {}")))
