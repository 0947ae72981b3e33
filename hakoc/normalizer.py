"""
Resource normalization for components.

Turns the template and style references of a component (inline text,
template_url, style_urls, <style>/<link> in the template, @import in
styles) into loaded text. Resource loading is the only step of a run that
touches host I/O, so it is also where cancellation is observed.
"""
import re

from hakoc.config import ViewEncapsulation
from hakoc.console import Console, debug_log
from hakoc.errors import ResolutionError
from hakoc.metadata import CompileStylesheetMetadata, CompileTemplateMetadata
from hakoc.template.html_parser import HtmlElement
from hakoc.url_resolver import UrlResolver, has_scheme

_CSS_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_CSS_IMPORT_RE = re.compile(r"@import\s+(?:url\()?\s*(?:['\"]([^'\"]*)['\"]|([^;)\s]*))[^;]*;?")

WILDCARD_SELECTOR = "*"


def extract_style_imports(style):
    """Split a style sheet into its text without local ``@import``s and the imported urls."""
    urls = []

    def replace(match):
        url = match.group(1) or match.group(2)
        if not url or has_scheme(url):
            return match.group(0)
        urls.append(url)
        return ""

    return _CSS_IMPORT_RE.sub(replace, _CSS_COMMENT_RE.sub("", style)), urls


class _TemplatePreparser:
    """Collects styles, stylesheet links and content slots in document order."""

    def __init__(self):
        self.styles = []
        self.style_urls = []
        self.content_selectors = []

    def visit_all(self, nodes):
        for node in nodes:
            if isinstance(node, HtmlElement):
                self.visit_element(node)

    def visit_element(self, element):
        name = element.name.lower()
        if name == "style":
            self.styles.append("".join(getattr(child, "value", "") for child in element.children))
            return
        if name == "link" and element.get_attribute("rel") == "stylesheet":
            href = element.get_attribute("href")
            if href:
                self.style_urls.append(href)
            return
        if name == "content":
            self.content_selectors.append((element.get_attribute("select") or "").strip() or WILDCARD_SELECTOR)
        self.visit_all(element.children)


class DirectiveNormalizer:

    def __init__(self, host, html_parser, i18n_parser, config, url_resolver=None, console=None):
        self.host = host
        self.html_parser = html_parser
        self.i18n_parser = i18n_parser
        self.config = config
        self.url_resolver = url_resolver or UrlResolver()
        self.console = console or Console()
        # url -> text, only for completed loads
        self._resource_cache = {}

    def clear_cache(self):
        self._resource_cache.clear()

    def _fetch(self, url, cancel_token):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        text = self._resource_cache.get(url)
        if text is not None:
            return text
        debug_log(f"Loading resource {url}")
        try:
            loaded = self.host.load_resource(url)
        except FileNotFoundError:
            raise ResolutionError(f"Can't resolve resource '{url}'", file_path=url)
        except (OSError, UnicodeDecodeError) as e:
            raise ResolutionError(f"Can't read resource '{url}': {e}", file_path=url,
                                  suggestion="Resources must be readable UTF-8 text files")
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return self._resource_cache.setdefault(url, loaded)

    def normalize_template(self, directive, cancel_token=None):
        """Return the directive with its template and styles loaded."""
        if not directive.is_component or directive.template is None:
            return directive
        prenormalized = directive.template
        if prenormalized.is_inline:
            template_url = directive.source_file
            text = prenormalized.template
        else:
            template_url = self.url_resolver.resolve(directive.source_file, prenormalized.template_url)
            text = self._fetch(template_url, cancel_token)
        text, errors = self.i18n_parser.translate(text, template_url)
        if errors:
            error = errors[0]
            error.symbol = directive.name
            raise error
        template = self._normalize_loaded(directive, prenormalized, text, template_url, cancel_token)
        return directive.model_copy(update={"template": template})

    def _normalize_loaded(self, directive, prenormalized, text, template_url, cancel_token):
        preparser = _TemplatePreparser()
        tree = self.html_parser.parse(text, template_url)
        # markup errors are reported by the template parser
        if not tree.errors:
            preparser.visit_all(tree.root_nodes)
        module_url = directive.source_file
        style_urls = [self.url_resolver.resolve(module_url, url) for url in prenormalized.style_urls]
        style_urls += [self.url_resolver.resolve(template_url, url) for url in preparser.style_urls]
        stylesheet = self.normalize_stylesheet(CompileStylesheetMetadata(
            module_url=module_url,
            styles=tuple(prenormalized.styles) + tuple(preparser.styles),
            style_urls=tuple(style_urls),
        ))
        external = []
        seen = set()
        for url in stylesheet.style_urls:
            self._load_stylesheet(url, cancel_token, seen, external)

        encapsulation = prenormalized.encapsulation or self.config.default_encapsulation
        if (encapsulation == ViewEncapsulation.EMULATED and not any(s.strip() for s in stylesheet.styles)
                and not external):
            encapsulation = ViewEncapsulation.NONE
        return CompileTemplateMetadata(
            encapsulation=encapsulation,
            template=text,
            template_url=template_url,
            styles=stylesheet.styles,
            style_urls=stylesheet.style_urls,
            external_stylesheets=tuple(external),
            content_selectors=tuple(preparser.content_selectors),
            is_inline=prenormalized.is_inline,
        )

    def normalize_stylesheet(self, stylesheet):
        """Move local ``@import``s of the styles into resolved style urls."""
        styles = []
        style_urls = list(stylesheet.style_urls)
        for style in stylesheet.styles:
            text, imports = extract_style_imports(style)
            styles.append(text)
            for url in imports:
                resolved = self.url_resolver.resolve(stylesheet.module_url, url)
                if resolved not in style_urls:
                    style_urls.append(resolved)
        return CompileStylesheetMetadata(
            module_url=stylesheet.module_url, styles=tuple(styles), style_urls=tuple(style_urls))

    def _load_stylesheet(self, url, cancel_token, seen, result):
        if url in seen:
            return
        seen.add(url)
        text = self._fetch(url, cancel_token)
        stylesheet = self.normalize_stylesheet(CompileStylesheetMetadata(module_url=url, styles=(text,)))
        result.append(stylesheet)
        for nested in stylesheet.style_urls:
            self._load_stylesheet(nested, cancel_token, seen, result)
