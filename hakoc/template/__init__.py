from hakoc.template.html_parser import HtmlParser
from hakoc.template.i18n import I18nHtmlParser
from hakoc.template.parser import BindingParser, TemplateParser, TemplateParseResult
