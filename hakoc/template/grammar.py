"""
Hako template markup grammar.

The grammar only tokenizes markup into a flat sequence of tags, text and
comments; nesting, void elements and close-tag matching are handled by
the tree builder in html_parser.py.
"""

markup_grammar = r"""
    start: _node*

    _node: comment | start_tag | end_tag | text

    comment: COMMENT
    start_tag: TAG_OPEN attribute* TAG_END
    end_tag: CLOSE_TAG
    text: TEXT

    attribute: ATTR_NAME ("=" attr_value)?
    attr_value: DQ_VALUE | SQ_VALUE | UNQUOTED_VALUE

    COMMENT: /<!--(.|\n)*?-->/
    TAG_OPEN: /<[a-zA-Z][\w:.\-]*/
    TAG_END: /\/?>/
    CLOSE_TAG: /<\/[a-zA-Z][\w:.\-]*\s*>/
    ATTR_NAME: /[^\s"'>\/=]+/
    DQ_VALUE: /"[^"]*"/
    SQ_VALUE: /'[^']*'/
    UNQUOTED_VALUE: /[^\s"'=<>`]+/
    TEXT: /([^<\s]|<(?![a-zA-Z\/!]))([^<]|<(?![a-zA-Z\/!]))*/

    %ignore /\s+/
"""
