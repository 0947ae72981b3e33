"""
Component stylesheets.

With emulated encapsulation every selector is scoped to the component:
elements of its template carry a ``_hc-content-<id>`` attribute and its
host element a ``_hc-host-<id>`` attribute. The id is only known at
runtime, so the compiled CSS uses the ``%COMP%`` placeholder that
RendererType fills in.
"""
import re

from hakoc.config import ViewEncapsulation
from hakoc.output.ast import Assign, CompileResult, ListExpr, Literal

CONTENT_ATTR = "_hc-content-%COMP%"
HOST_ATTR = "_hc-host-%COMP%"

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_SCOPED_AT_RULES = ("@media", "@supports", "@document", "@layer", "@container")
_DEEP = ("::hc-deep", "/deep/", ">>>")
_COMBINATORS = ">+~"


def _matching_brace(css, start):
    depth = 0
    for position in range(start, len(css)):
        if css[position] == "{":
            depth += 1
        elif css[position] == "}":
            depth -= 1
            if depth == 0:
                return position
    return len(css)


def _split_top_level(text, separator):
    parts, current, depth = [], [], 0
    for ch in text:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        if ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _split_compounds(selector):
    """Split a complex selector into alternating compound selectors and combinators."""
    parts = []
    current = []
    depth = 0
    quote = None
    position = 0
    while position < len(selector):
        ch = selector[position]
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
            current.append(ch)
        elif ch in "([":
            depth += 1
            current.append(ch)
        elif ch in ")]":
            depth -= 1
            current.append(ch)
        elif depth == 0 and (ch.isspace() or ch in _COMBINATORS):
            end = position
            while end < len(selector) and (selector[end].isspace() or selector[end] in _COMBINATORS):
                end += 1
            if current:
                parts.append("".join(current))
                current = []
            parts.append(selector[position:end].strip())
            position = end
            continue
        else:
            current.append(ch)
        position += 1
    if current:
        parts.append("".join(current))
    return parts


def _insert_attr(compound, attr):
    """Add ``[attr]`` before the first pseudo class or element of a compound selector."""
    depth = 0
    for position, ch in enumerate(compound):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == ":" and depth == 0 and position > 0:
            return f"{compound[:position]}[{attr}]{compound[position:]}"
        elif ch == ":" and depth == 0:
            return f"[{attr}]{compound}"
    return f"{compound}[{attr}]"


def _host_compound(compound, host_attr):
    """Rewrite a compound selector starting with ``:host``; None when it has none."""
    if compound.startswith(":host-context(") and ")" in compound:
        inner, rest = compound[len(":host-context("):].split(")", 1)
        return f"{inner} [{host_attr}]{rest}"
    if compound.startswith(":host("):
        inner, rest = compound[len(":host("):].split(")", 1)
        return f"{inner}[{host_attr}]{rest}"
    if compound.startswith(":host"):
        return f"[{host_attr}]{compound[len(':host'):]}"
    return None


def scope_selector(selector, content_attr=CONTENT_ATTR, host_attr=HOST_ATTR):
    """Scope every compound selector of a selector list to the component."""
    scoped = []
    for complex_selector in _split_top_level(selector, ","):
        complex_selector = complex_selector.strip()
        if not complex_selector:
            continue
        out = []
        deep = False
        for part in _split_compounds(complex_selector):
            if part in _DEEP:
                deep = True
                out.append("")
                continue
            if part == "" or part in _COMBINATORS:
                out.append(part)
                continue
            host = _host_compound(part, host_attr)
            if host is not None:
                out.append(host)
            elif deep:
                out.append(part)
            else:
                out.append(_insert_attr(part, content_attr))
        text = ""
        for part in out:
            if part in _COMBINATORS and part:
                text += f" {part} "
            elif part == "":
                text += " "
            else:
                text += part
        scoped.append(re.sub(r"\s+", " ", text).strip())
    return ", ".join(scoped)


def shim_css(css, content_attr=CONTENT_ATTR, host_attr=HOST_ATTR):
    """Scope all rules of a stylesheet; keyframes, font faces and other at-rules pass through."""
    css = _COMMENT_RE.sub("", css)
    out = []
    position = 0
    while position < len(css):
        brace = css.find("{", position)
        if brace < 0:
            out.append(css[position:])
            break
        head = css[position:brace]
        statement_end = head.rfind(";")
        if statement_end >= 0:
            out.append(head[:statement_end + 1])
            head = head[statement_end + 1:]
        end = _matching_brace(css, brace)
        body = css[brace + 1:end]
        selector = head.strip()
        indent = head[:len(head) - len(head.lstrip())]
        if selector.startswith(_SCOPED_AT_RULES):
            out.append(f"{indent}{selector} {{{shim_css(body, content_attr, host_attr)}}}")
        elif selector.startswith("@"):
            out.append(f"{indent}{selector} {{{body}}}")
        else:
            out.append(f"{indent}{scope_selector(selector, content_attr, host_attr)} {{{body}}}")
        position = end + 1
    return "".join(out)


class StyleCompiler:

    def __init__(self, config):
        self.config = config

    def _encapsulation(self, template):
        return template.encapsulation or self.config.default_encapsulation

    def compile_component(self, component):
        """Statements defining ``styles_<Component>``: the component's own styles then its stylesheets."""
        template = component.template
        shim = self._encapsulation(template) == ViewEncapsulation.EMULATED
        styles = list(template.styles)
        for stylesheet in template.external_stylesheets:
            styles.extend(stylesheet.styles)
        if shim:
            styles = [shim_css(style) for style in styles]
        var_name = f"styles_{component.name}"
        statement = Assign(var_name, ListExpr(tuple(Literal(s) for s in styles if s.strip())))
        return var_name, CompileResult([statement])
