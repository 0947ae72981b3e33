"""
Binding IR produced by the template parser.

Binding expressions are kept as validated Python expression ASTs wrapped
in BindingExpression together with their source text.
"""
import ast as pyast
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class BindingExpression:
    """A parsed binding: the Python expression plus any pipes applied to it."""
    source: str
    expression: pyast.expr
    # (pipe name, argument expressions), innermost first
    pipes: Tuple[Tuple[str, Tuple[pyast.expr, ...]], ...] = ()
    location: Optional[str] = None


@dataclass(frozen=True)
class Interpolation:
    """Text with ``{{ }}`` parts: ``strings`` has one more entry than ``expressions``."""
    source: str
    strings: Tuple[str, ...]
    expressions: Tuple[BindingExpression, ...]
    location: Optional[str] = None


class PropertyBindingType(str, Enum):
    PROPERTY = "property"
    ATTRIBUTE = "attribute"
    CLASS = "class"
    STYLE = "style"


@dataclass
class TextAst:
    value: str
    content_index: Optional[int] = None
    line: Optional[int] = None


@dataclass
class BoundTextAst:
    value: Interpolation
    content_index: Optional[int] = None
    line: Optional[int] = None


@dataclass
class AttrAst:
    name: str
    value: str
    line: Optional[int] = None


@dataclass
class BoundElementPropertyAst:
    name: str
    type: PropertyBindingType
    value: Any  # BindingExpression or Interpolation
    unit: Optional[str] = None
    line: Optional[int] = None


@dataclass
class BoundEventAst:
    name: str
    handler: BindingExpression
    line: Optional[int] = None


@dataclass
class ReferenceAst:
    name: str
    # symbol of the referenced directive, or None for the element itself
    value: Any = None
    is_template_ref: bool = False
    line: Optional[int] = None


@dataclass
class VariableAst:
    name: str
    value: str
    line: Optional[int] = None


@dataclass
class BoundDirectivePropertyAst:
    directive_name: str
    template_name: str
    value: Any  # BindingExpression, Interpolation or a literal str
    line: Optional[int] = None


@dataclass
class DirectiveAst:
    directive: Any  # CompileDirectiveMetadata
    inputs: List[BoundDirectivePropertyAst] = field(default_factory=list)
    host_properties: List[BoundElementPropertyAst] = field(default_factory=list)
    host_events: List[BoundEventAst] = field(default_factory=list)
    # directive outputs bound from the template: (output property, handler)
    outputs: List[Tuple[str, BindingExpression]] = field(default_factory=list)


@dataclass
class ElementAst:
    name: str
    attrs: List[AttrAst] = field(default_factory=list)
    inputs: List[BoundElementPropertyAst] = field(default_factory=list)
    outputs: List[BoundEventAst] = field(default_factory=list)
    references: List[ReferenceAst] = field(default_factory=list)
    directives: List[DirectiveAst] = field(default_factory=list)
    children: list = field(default_factory=list)
    content_index: Optional[int] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def component(self):
        for directive in self.directives:
            if directive.directive.is_component:
                return directive.directive
        return None


@dataclass
class EmbeddedTemplateAst:
    attrs: List[AttrAst] = field(default_factory=list)
    references: List[ReferenceAst] = field(default_factory=list)
    variables: List[VariableAst] = field(default_factory=list)
    directives: List[DirectiveAst] = field(default_factory=list)
    children: list = field(default_factory=list)
    content_index: Optional[int] = None
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass
class ContentAst:
    index: int
    content_index: Optional[int] = None
    line: Optional[int] = None


class TemplateAstVisitor:
    """Dispatches to ``visit_<ClassName>``, falling back to ``visit_default``."""

    def visit(self, node, context=None):
        method = getattr(self, f"visit_{type(node).__name__}", self.visit_default)
        return method(node, context)

    def visit_default(self, node, context):
        return None

    def visit_all(self, nodes, context=None):
        return [self.visit(node, context) for node in nodes]


class RecursiveTemplateAstVisitor(TemplateAstVisitor):
    """Walks element and template children."""

    def visit_ElementAst(self, node, context):
        self.visit_all(node.children, context)

    def visit_EmbeddedTemplateAst(self, node, context):
        self.visit_all(node.children, context)
