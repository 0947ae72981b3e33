"""
Element schema registry used to validate element names and property bindings.
"""
from hakoc.errors import SchemaError

CUSTOM_ELEMENTS_SCHEMA = "custom-elements"
NO_ERRORS_SCHEMA = "no-errors"

GLOBAL_PROPERTIES = frozenset({
    "id", "title", "lang", "dir", "hidden", "tabIndex", "className", "innerHTML",
    "textContent", "innerText", "accessKey", "draggable", "spellcheck",
    "contentEditable", "slot", "role",
})

_PLAIN_ELEMENTS = (
    "html", "head", "body", "title", "meta", "link", "style", "script", "base",
    "div", "span", "p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "dl", "dt", "dd",
    "section", "article", "header", "footer", "nav", "main", "aside", "strong", "em",
    "b", "i", "u", "s", "small", "code", "pre", "blockquote", "br", "hr", "table",
    "thead", "tbody", "tfoot", "tr", "caption", "fieldset", "legend", "canvas",
    "figure", "figcaption", "abbr", "cite", "mark", "q", "sub", "sup", "time",
    "details", "summary", "dialog", "template", "content", "svg", "kbd", "samp", "var",
)

ELEMENT_PROPERTIES = {name: frozenset() for name in _PLAIN_ELEMENTS}
ELEMENT_PROPERTIES.update({
    "a": frozenset({"href", "target", "rel", "download", "hreflang", "type"}),
    "button": frozenset({"disabled", "type", "name", "value", "autofocus"}),
    "input": frozenset({
        "value", "checked", "disabled", "type", "name", "placeholder", "readOnly", "required",
        "min", "max", "step", "multiple", "autofocus", "size", "maxLength", "pattern",
    }),
    "textarea": frozenset({"value", "disabled", "placeholder", "rows", "cols", "readOnly",
                           "required", "name", "maxLength"}),
    "select": frozenset({"value", "disabled", "multiple", "name", "required", "size", "selectedIndex"}),
    "option": frozenset({"value", "selected", "disabled", "label", "text"}),
    "img": frozenset({"src", "alt", "width", "height", "srcset", "sizes"}),
    "form": frozenset({"action", "method", "noValidate", "target", "name"}),
    "label": frozenset({"htmlFor"}),
    "video": frozenset({"src", "controls", "autoplay", "loop", "muted", "currentTime", "volume"}),
    "audio": frozenset({"src", "controls", "autoplay", "loop", "muted", "currentTime", "volume"}),
    "iframe": frozenset({"src", "width", "height", "name"}),
    "td": frozenset({"colSpan", "rowSpan"}),
    "th": frozenset({"colSpan", "rowSpan", "scope"}),
    "li": frozenset({"value"}),
    "ol": frozenset({"start", "reversed"}),
    "progress": frozenset({"value", "max"}),
})

# attribute names that map to a differently named DOM property
ATTR_TO_PROP = {
    "class": "className",
    "for": "htmlFor",
    "innerHtml": "innerHTML",
    "readonly": "readOnly",
    "tabindex": "tabIndex",
    "colspan": "colSpan",
    "rowspan": "rowSpan",
}


class DomElementSchemaRegistry:

    def get_mapped_prop_name(self, name):
        return ATTR_TO_PROP.get(name, name)

    def has_element(self, tag_name, schemas=()):
        if NO_ERRORS_SCHEMA in schemas:
            return True
        if "-" in tag_name and CUSTOM_ELEMENTS_SCHEMA in schemas:
            return True
        return tag_name.lower() in ELEMENT_PROPERTIES

    def has_property(self, tag_name, prop_name, schemas=()):
        if NO_ERRORS_SCHEMA in schemas:
            return True
        if "-" in tag_name:
            # custom elements: anything goes once the element itself is allowed
            return CUSTOM_ELEMENTS_SCHEMA in schemas
        properties = ELEMENT_PROPERTIES.get(tag_name.lower())
        if properties is None:
            return False
        return prop_name in GLOBAL_PROPERTIES or prop_name in properties

    def validate_property(self, name):
        """Bindings to event handler properties are never allowed."""
        if name.lower().startswith("on"):
            return SchemaError(
                f"Binding to event property '{name}' is disallowed for security reasons",
                suggestion=f"Bind to the event instead: ({name[2:]})",
            )
        return None

    def validate_attribute(self, name):
        if name.lower().startswith("on"):
            return SchemaError(
                f"Binding to event attribute '{name}' is disallowed for security reasons",
                suggestion=f"Bind to the event instead: ({name[2:]})",
            )
        return None
