"""
Minimal render tree used by generated views.

Nodes render to HTML text, which is what tests and server-side rendering
consume. Anchors render the embedded views attached to them right after
the anchor comment; projection slots render the nodes projected into them.
"""
import html


class Node:
    parent = None

    def render(self):
        raise NotImplementedError


class Text(Node):

    def __init__(self, value=""):
        self.value = value

    def render(self):
        return html.escape(self.value, quote=False)


class Anchor(Node):
    """Comment node marking where a view container inserts its views."""

    def __init__(self):
        self.views = []

    def render(self):
        parts = ["<!--container-->"]
        for view in self.views:
            parts.append(render_nodes(view.root_nodes))
        return "".join(parts)


class ProjectionSlot(Node):

    def __init__(self, nodes=()):
        self.nodes = list(nodes)

    def render(self):
        return render_nodes(self.nodes)


class Element(Node):

    def __init__(self, name):
        self.name = name
        self.attributes = {}
        self.properties = {}
        self.classes = {}
        self.styles = {}
        self.children = []
        self.listeners = {}

    def append_child(self, node):
        node.parent = self
        self.children.append(node)

    def add_listener(self, event_name, callback):
        self.listeners.setdefault(event_name, []).append(callback)

    def dispatch_event(self, event_name, payload=None):
        """Run the listeners of ``event_name``; False if any returned False."""
        allow_default = True
        for callback in list(self.listeners.get(event_name, ())):
            if callback(payload) is False:
                allow_default = False
        return allow_default

    def query(self, name):
        """First descendant element with the given tag name, in document order."""
        for node in iter_elements(self.children):
            if node.name == name:
                return node
        return None

    @property
    def text_content(self):
        if "textContent" in self.properties:
            return str(self.properties["textContent"])
        return "".join(_text_of(child) for child in self.children)

    def _attributes(self):
        attrs = dict(self.attributes)
        for name, value in self.properties.items():
            if name in ("textContent", "innerHTML"):
                continue
            attrs[_PROPERTY_ATTRS.get(name, name)] = value
        classes = [c for c in attrs.pop("class", "").split() if self.classes.get(c, True)]
        classes += [c for c, on in self.classes.items() if on and c not in classes]
        if classes:
            attrs["class"] = " ".join(classes)
        if self.styles:
            inline = attrs.pop("style", "")
            declarations = [inline.rstrip("; ")] if inline else []
            declarations += [f"{k}: {v}" for k, v in self.styles.items() if v is not None]
            if declarations:
                attrs["style"] = "; ".join(declarations)
        return attrs

    def render(self):
        parts = [f"<{self.name}"]
        for name, value in self._attributes().items():
            if value is None or value is False:
                continue
            if value is True or value == "":
                parts.append(f" {name}")
            else:
                parts.append(f' {name}="{html.escape(str(value))}"')
        parts.append(">")
        if "innerHTML" in self.properties:
            parts.append(str(self.properties["innerHTML"]))
        elif "textContent" in self.properties:
            parts.append(html.escape(str(self.properties["textContent"]), quote=False))
        else:
            parts.append(render_nodes(self.children))
        parts.append(f"</{self.name}>")
        return "".join(parts)


_PROPERTY_ATTRS = {"className": "class", "htmlFor": "for", "tabIndex": "tabindex", "readOnly": "readonly"}


def _text_of(node):
    if isinstance(node, Text):
        return node.value
    if isinstance(node, Element):
        return node.text_content
    if isinstance(node, Anchor):
        return "".join(_text_of(n) for view in node.views for n in view.root_nodes)
    if isinstance(node, ProjectionSlot):
        return "".join(_text_of(n) for n in node.nodes)
    return ""


def iter_elements(nodes):
    for node in nodes:
        if isinstance(node, Element):
            yield node
            yield from iter_elements(node.children)
        elif isinstance(node, Anchor):
            for view in node.views:
                yield from iter_elements(view.root_nodes)
        elif isinstance(node, ProjectionSlot):
            yield from iter_elements(node.nodes)


def render_nodes(nodes):
    return "".join(node.render() for node in nodes)
