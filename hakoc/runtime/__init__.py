# Hako Runtime
"""
Modules imported by generated factories and by user components.

core holds the decorator markers, view the classic AppView runtime,
engine the data driven view definitions, dom the default renderer and
common the pipes and directives of CommonModule. core and common ship
with summaries so the compiler resolves them without reading their source.
"""
