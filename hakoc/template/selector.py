"""
CSS selectors as used by directive selectors and ``<content select>``.

Only the subset needed to match elements is supported: element names,
classes, attributes with optional values, ``:not(...)`` and comma
separated alternatives.
"""
import re

from hakoc.errors import ParseError

_SELECTOR_RE = re.compile(
    r"(\:not\()|"                                     # 1: ":not("
    r"([-\w]+)|"                                      # 2: element
    r"(?:\.([-\w]+))|"                                # 3: class
    r"(?:\[([-.\w*]+)(?:=([\"']?)([^\]\"']*)\5)?\])|"  # 4: attribute name, 6: value
    r"(\))|"                                          # 7: ")"
    r"(\s*,\s*)"                                      # 8: ","
)


class CssSelector:

    def __init__(self):
        self.element = None
        self.class_names = []
        self.attrs = []
        self.not_selectors = []

    @classmethod
    def parse(cls, selector):
        """Parse a selector string into its comma separated alternatives."""
        results = []
        current = cls()
        target = current
        in_not = False
        position = 0
        for match in _SELECTOR_RE.finditer(selector):
            if selector[position:match.start()].strip():
                raise ParseError(f"Unsupported selector syntax in '{selector}'")
            position = match.end()
            if match.group(1):
                if in_not:
                    raise ParseError("Nesting :not in a selector is not allowed")
                in_not = True
                target = cls()
                current.not_selectors.append(target)
            elif match.group(2):
                target.element = match.group(2)
            elif match.group(3):
                target.class_names.append(match.group(3).lower())
            elif match.group(4):
                target.attrs.append((match.group(4), match.group(6) or ""))
            elif match.group(7):
                in_not = False
                target = current
            elif match.group(8):
                if in_not:
                    raise ParseError("Multiple selectors in :not are not supported")
                results.append(current)
                current = target = cls()
        if selector[position:].strip():
            raise ParseError(f"Unsupported selector syntax in '{selector}'")
        results.append(current)
        return results

    @classmethod
    def for_element(cls, name, attrs):
        """Selector describing an element, used as the subject of a match."""
        selector = cls()
        selector.element = name
        for attr_name, value in attrs:
            if attr_name.lower() == "class":
                selector.class_names.extend(c.lower() for c in value.split())
            selector.attrs.append((attr_name, value))
        return selector

    def is_element_selector(self):
        return bool(self.element) and not (self.class_names or self.attrs or self.not_selectors)

    def _matches_simple(self, subject):
        if self.element and self.element != "*" and self.element != subject.element:
            return False
        if any(c not in subject.class_names for c in self.class_names):
            return False
        subject_attrs = dict(subject.attrs)
        for name, value in self.attrs:
            if name not in subject_attrs:
                return False
            if value and subject_attrs[name] != value:
                return False
        return True

    def matches(self, subject):
        if not self._matches_simple(subject):
            return False
        return not any(n._matches_simple(subject) for n in self.not_selectors)

    def __str__(self):
        parts = [self.element or ""]
        parts += [f".{c}" for c in self.class_names]
        parts += [f"[{n}={v}]" if v else f"[{n}]" for n, v in self.attrs]
        parts += [f":not({n})" for n in self.not_selectors]
        return "".join(parts)


class SelectorMatcher:
    """Matches element selectors against registered selectors, in registration order."""

    def __init__(self):
        self._entries = []

    def add_selectables(self, selectors, context=None):
        for selector in selectors:
            self._entries.append((selector, context))

    def match(self, subject, callback=None):
        """Call ``callback(selector, context)`` for each match; return whether anything matched."""
        matched = False
        seen = set()
        for selector, context in self._entries:
            if selector.matches(subject):
                matched = True
                if callback is not None and id(context) not in seen:
                    seen.add(id(context))
                    callback(selector, context)
        return matched
