"""
Template markup parser.

Lark tokenizes the markup (see grammar.py); a small tree builder then
nests elements, closes void elements and reports stray close tags with
their line and column.
"""
import html
from dataclasses import dataclass, field
from typing import List, Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from hakoc.errors import ParseError, get_line_context
from hakoc.template.grammar import markup_grammar

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
})


@dataclass
class HtmlAttribute:
    name: str
    value: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass
class HtmlText:
    value: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass
class HtmlComment:
    value: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass
class HtmlElement:
    name: str
    attrs: List[HtmlAttribute] = field(default_factory=list)
    children: list = field(default_factory=list)
    line: Optional[int] = None
    column: Optional[int] = None

    def get_attribute(self, name):
        for attr in self.attrs:
            if attr.name == name:
                return attr.value
        return None


@dataclass
class ParseTreeResult:
    root_nodes: list
    errors: List[ParseError]


class MarkupTransformer(Transformer):
    """Turns the lark parse tree into a flat list of markup events."""

    def start(self, items):
        return items

    def comment(self, args):
        token = args[0]
        return ("comment", token.value[4:-3], token.line, token.column)

    def text(self, args):
        token = args[0]
        return ("text", html.unescape(token.value), token.line, token.column)

    def end_tag(self, args):
        token = args[0]
        return ("end", token.value[2:-1].strip(), token.line, token.column)

    def start_tag(self, args):
        opening, closing = args[0], args[-1]
        attrs = list(args[1:-1])
        return ("start", opening.value[1:], attrs, closing.value == "/>", opening.line, opening.column)

    def attribute(self, args):
        name = args[0]
        value = args[1] if len(args) > 1 else ""
        return HtmlAttribute(name.value, value, name.line, name.column)

    def attr_value(self, args):
        raw = args[0].value
        if raw[:1] in ('"', "'"):
            raw = raw[1:-1]
        return html.unescape(raw)


class _TreeBuilder:

    def __init__(self, url, source):
        self.url = url
        self.source = source
        self.root_nodes = []
        self.stack = []
        self.errors = []

    def _error(self, message, line, column):
        self.errors.append(ParseError(message, line_number=line, column=column,
                                      context=get_line_context(self.source, line), file_path=self.url))

    def _add(self, node):
        if self.stack:
            self.stack[-1].children.append(node)
        else:
            self.root_nodes.append(node)

    def build(self, events):
        for event in events:
            kind = event[0]
            if kind == "start":
                _, name, attrs, self_closing, line, column = event
                element = HtmlElement(name, attrs, [], line, column)
                self._add(element)
                if not self_closing and name.lower() not in VOID_ELEMENTS:
                    self.stack.append(element)
            elif kind == "end":
                _, name, line, column = event
                if name.lower() in VOID_ELEMENTS:
                    self._error(f'Void elements do not have end tags "{name}"', line, column)
                elif self.stack and self.stack[-1].name == name:
                    self.stack.pop()
                else:
                    self._error(f'Unexpected closing tag "{name}". It may happen when the tag '
                                f'has already been closed by another tag.', line, column)
            elif kind == "text":
                self._add(HtmlText(event[1], event[2], event[3]))
            else:
                self._add(HtmlComment(event[1], event[2], event[3]))
        return ParseTreeResult(self.root_nodes, self.errors)


class HtmlParser:

    def __init__(self):
        self._parser = Lark(markup_grammar, parser='lalr')
        self._transformer = MarkupTransformer()

    def parse(self, source, url=None):
        try:
            tree = self._parser.parse(source)
        except UnexpectedInput as e:
            line = e.line if e.line and e.line > 0 else None
            column = e.column if e.column and e.column > 0 else None
            return ParseTreeResult([], [ParseError(
                "Unexpected character in template markup",
                line_number=line,
                column=column,
                context=get_line_context(source, line),
                suggestion="Escape a literal '<' as &lt;",
                file_path=url,
            )])
        return _TreeBuilder(url, source).build(self._transformer.transform(tree))


def serialize_nodes(nodes):
    """Render parsed nodes back to markup."""
    parts = []
    for node in nodes:
        if isinstance(node, HtmlText):
            parts.append(html.escape(node.value, quote=False))
        elif isinstance(node, HtmlComment):
            parts.append(f"<!--{node.value}-->")
        else:
            attrs = "".join(f' {a.name}="{html.escape(a.value)}"' if a.value else f" {a.name}"
                            for a in node.attrs)
            if node.name.lower() in VOID_ELEMENTS:
                parts.append(f"<{node.name}{attrs}>")
            else:
                parts.append(f"<{node.name}{attrs}>{serialize_nodes(node.children)}</{node.name}>")
    return "".join(parts)
