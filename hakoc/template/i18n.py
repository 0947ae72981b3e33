"""
Translation substitution for templates.

Elements carrying an ``i18n`` attribute are messages: their content is
replaced by the translation found in the bundle for the message id.
Attributes named in ``i18n-<attr>`` are translated the same way. The
message id is the explicit ``@@id`` of the i18n value when present, or a
digest of the message content and meaning.
"""
import hashlib
import json
import re
import xml.etree.ElementTree as ET

from hakoc.config import MissingTranslationStrategy
from hakoc.console import Console, debug_log
from hakoc.errors import ParseError
from hakoc.template.html_parser import HtmlElement, HtmlText, serialize_nodes

I18N_ATTR = "i18n"
I18N_ATTR_PREFIX = "i18n-"


def parse_i18n_meta(value):
    """Split ``meaning|description@@id`` into its parts."""
    meta, _, custom_id = (value or "").partition("@@")
    meaning, _, description = meta.rpartition("|") if "|" in meta else ("", "", meta)
    return meaning.strip(), description.strip(), custom_id.strip() or None


def message_id(content, meaning=""):
    normalized = re.sub(r"\s+", " ", content).strip()
    return hashlib.sha1(f"{normalized}|{meaning}".encode("utf-8")).hexdigest()


def load_translations(text, translations_format):
    """Parse a translation bundle into a ``{message id: translated markup}`` dict."""
    if translations_format == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON translation bundle: {e.msg}", line_number=e.lineno, column=e.colno)
        if isinstance(data, dict) and isinstance(data.get("translations"), dict):
            data = data["translations"]
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            raise ParseError("JSON translation bundle must map message ids to strings")
        return dict(data)
    if translations_format == "xlf":
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            line, column = e.position
            raise ParseError(f"Invalid XLIFF translation bundle: {e}", line_number=line, column=column)
        messages = {}
        for unit in root.iter():
            if not unit.tag.endswith("trans-unit"):
                continue
            target = next((c for c in unit if c.tag.endswith("target")), None)
            if unit.get("id") and target is not None:
                inner = (target.text or "") + "".join(
                    ET.tostring(child, encoding="unicode") for child in target)
                messages[unit.get("id")] = inner
        return messages
    raise ParseError(f"Unknown translation format '{translations_format}'",
                     suggestion="Use i18n_format 'json' or 'xlf'")


class I18nHtmlParser:
    """Wraps HtmlParser and substitutes translations into the parsed markup."""

    def __init__(self, html_parser, translations=None, translations_format=None, locale=None,
                 missing_translation=MissingTranslationStrategy.WARNING, console=None):
        self.html_parser = html_parser
        self.locale = locale
        self.missing_translation = missing_translation
        self.console = console or Console()
        self.messages = None
        if translations is not None:
            self.messages = load_translations(translations, translations_format or "json")
            debug_log(f"Loaded {len(self.messages)} translations for locale {locale}")

    def parse(self, source, url=None):
        result = self.html_parser.parse(source, url)
        if self.messages is None or result.errors:
            return result
        for node in result.root_nodes:
            self._translate(node, url, result.errors)
        return result

    def translate(self, source, url=None):
        """Return the translated markup text and the errors found on the way."""
        if self.messages is None:
            return source, []
        result = self.parse(source, url)
        if result.errors:
            return source, result.errors
        return serialize_nodes(result.root_nodes), []

    def _lookup(self, msg_id, node, url, errors):
        translation = self.messages.get(msg_id)
        if translation is not None:
            return translation
        message = f'Missing translation for message "{msg_id}"'
        if self.locale:
            message += f' for locale "{self.locale}"'
        if self.missing_translation == MissingTranslationStrategy.ERROR:
            errors.append(ParseError(message, line_number=node.line, column=node.column, file_path=url))
        elif self.missing_translation == MissingTranslationStrategy.WARNING:
            self.console.warn(message)
        return None

    def _translate(self, node, url, errors):
        if not isinstance(node, HtmlElement):
            return
        i18n_value = node.get_attribute(I18N_ATTR)
        for attr in node.attrs:
            if attr.name.startswith(I18N_ATTR_PREFIX):
                target_name = attr.name[len(I18N_ATTR_PREFIX):]
                target = next((a for a in node.attrs if a.name == target_name), None)
                if target is None:
                    continue
                meaning, _, custom_id = parse_i18n_meta(attr.value)
                translated = self._lookup(custom_id or message_id(target.value, meaning), node, url, errors)
                if translated is not None:
                    target.value = translated
        if i18n_value is not None:
            meaning, _, custom_id = parse_i18n_meta(i18n_value)
            msg_id = custom_id or message_id(serialize_nodes(node.children), meaning)
            translated = self._lookup(msg_id, node, url, errors)
            if translated is not None:
                parsed = self.html_parser.parse(translated, url)
                if parsed.errors:
                    errors.extend(parsed.errors)
                else:
                    node.children = parsed.root_nodes or [HtmlText(translated, node.line, node.column)]
            return
        for child in node.children:
            self._translate(child, url, errors)
