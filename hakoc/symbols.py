"""
Canonical symbol identities.

A StaticSymbol names an exported declaration (file path + name + optional
member path) without loading the declaring module. The cache hands out
exactly one instance per identity, so the rest of the compiler compares
symbols with ``is``.
"""


class StaticSymbol:
    __slots__ = ('file_path', 'name', 'members')

    def __init__(self, file_path, name, members):
        self.file_path = file_path
        self.name = name
        self.members = members

    def __repr__(self):
        suffix = "".join(f".{m}" for m in self.members)
        return f"StaticSymbol({self.file_path}#{self.name}{suffix})"

    @property
    def qualified_name(self):
        return ".".join((self.name,) + self.members)


class StaticSymbolCache:
    """Run-scoped interning table for StaticSymbol instances.

    Population is additive only. Concurrent first requests for the same key
    race on ``dict.setdefault``: the first stored instance wins and every
    caller observes it.
    """

    def __init__(self):
        self._cache = {}

    def get(self, file_path, name, members=None):
        members = tuple(members) if members else ()
        key = (file_path, name, members)
        symbol = self._cache.get(key)
        if symbol is None:
            symbol = self._cache.setdefault(key, StaticSymbol(file_path, name, members))
        return symbol

    def __len__(self):
        return len(self._cache)

    def __contains__(self, key):
        file_path, name, *rest = key
        members = tuple(rest[0]) if rest and rest[0] else ()
        return (file_path, name, members) in self._cache
