"""
Host capabilities consumed by the compiler.

The host is the only component that touches storage: it reads source
files, summaries and resources, and maps file paths to Python module
names and back. Two hosts ship with the compiler: FileSystemHost for real
projects and MemoryHost for tools and tests that keep files in a dict.
"""
import os
from abc import ABC, abstractmethod
from collections import Counter

# Directory holding the installed ``hakoc`` package; its runtime modules
# (and their summaries) are always resolvable as library modules.
BUNDLED_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
BUILTINS_FILE = "<builtins>"


def summary_file_name(file_path):
    """Path of the summary that stands in for ``file_path`` (foo.py -> foo.summary.json)."""
    base = file_path[:-3] if file_path.endswith('.py') else file_path
    return base + '.summary.json'


def factory_file_name(file_path):
    """Path of the generated unit for a source file (foo.py -> foo_factory.py)."""
    base = file_path[:-3] if file_path.endswith('.py') else file_path
    return base + '_factory.py'


def _is_under(path, root):
    return path == root or path.startswith(root.rstrip('/') + '/')


class CompilerHost(ABC):
    """Base host: module naming is shared, storage access is abstract."""

    def __init__(self, source_roots, library_roots=()):
        self.source_roots = [self._normalize(r) for r in source_roots]
        self.library_roots = [self._normalize(r) for r in library_roots]

    # --- storage ---

    @abstractmethod
    def get_source(self, file_path):
        """Return the text of a source file, or None if it does not exist."""

    @abstractmethod
    def file_exists(self, file_path):
        pass

    @abstractmethod
    def read_summary(self, file_path):
        """Return the JSON text of a summary file, or None."""

    @abstractmethod
    def load_resource(self, url):
        """Return the text of a template/style resource. Raises FileNotFoundError."""

    # --- naming ---

    def _normalize(self, path):
        return os.path.normpath(path)

    def load_summary(self, file_path):
        """Summary text for a library file, falling back to summaries bundled with hakoc."""
        text = self.read_summary(summary_file_name(file_path))
        if text is None and _is_under(file_path, BUNDLED_ROOT):
            bundled = summary_file_name(file_path)
            if os.path.isfile(bundled):
                with open(bundled, 'r', encoding='utf-8') as f:
                    text = f.read()
        return text

    def is_source_file(self, file_path):
        if not file_path.endswith('.py'):
            return False
        if any(_is_under(file_path, root) for root in self.library_roots):
            return False
        if not any(_is_under(file_path, root) for root in self.source_roots):
            return False
        return self.file_exists(file_path)

    def _module_exists(self, candidate, root):
        if root == BUNDLED_ROOT:
            return os.path.isfile(candidate)
        if self.file_exists(candidate):
            return True
        return self.read_summary(summary_file_name(candidate)) is not None

    def module_name_to_file_name(self, module_name, containing_file=None, level=0):
        """Resolve an import to a file path, or None when nothing provides it."""
        parts = [p for p in (module_name or "").split('.') if p]
        if level:
            if containing_file is None:
                return None
            base = os.path.dirname(containing_file)
            for _ in range(level - 1):
                base = os.path.dirname(base)
            roots = [base]
        else:
            roots = self.source_roots + self.library_roots + [BUNDLED_ROOT]
        for root in roots:
            path = os.path.join(root, *parts) if parts else root
            candidates = [os.path.join(path, '__init__.py')]
            if parts:
                candidates.insert(0, path + '.py')
            for candidate in candidates:
                if self._module_exists(candidate, root if not level else None):
                    return candidate
        return None

    def file_name_to_module_name(self, file_path, containing_file=None):
        """Dotted module name for a file under one of the known roots."""
        if file_path == BUILTINS_FILE:
            return "builtins"
        roots = sorted(self.source_roots + self.library_roots + [BUNDLED_ROOT], key=len, reverse=True)
        for root in roots:
            if _is_under(file_path, root):
                relative = os.path.relpath(file_path, root)
                break
        else:
            relative = os.path.basename(file_path)
        if relative.endswith('.py'):
            relative = relative[:-3]
        parts = relative.split(os.sep)
        if parts[-1] == '__init__':
            parts = parts[:-1]
        return ".".join(parts)


class FileSystemHost(CompilerHost):
    """Host backed by the local file system."""

    def _normalize(self, path):
        return os.path.abspath(path)

    def get_source(self, file_path):
        if not os.path.isfile(file_path):
            return None
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()

    def file_exists(self, file_path):
        return os.path.isfile(file_path)

    def read_summary(self, file_path):
        return self.get_source(file_path)

    def load_resource(self, url):
        if not os.path.isfile(url):
            raise FileNotFoundError(f"Resource not found: {url}")
        with open(url, 'r', encoding='utf-8') as f:
            return f.read()


class MemoryHost(CompilerHost):
    """Host over in-memory dicts of sources, summaries and resources.

    Counts source reads per file so callers can check which files were
    actually parsed.
    """

    def __init__(self, files=None, summaries=None, resources=None,
                 source_roots=('/app',), library_roots=('/lib',)):
        super().__init__(source_roots, library_roots)
        self.files = dict(files or {})
        self.summaries = dict(summaries or {})
        self.resources = dict(resources or {})
        self.source_reads = Counter()
        self.resource_reads = Counter()

    def get_source(self, file_path):
        text = self.files.get(file_path)
        if text is not None:
            self.source_reads[file_path] += 1
        return text

    def file_exists(self, file_path):
        return file_path in self.files

    def read_summary(self, file_path):
        return self.summaries.get(file_path)

    def load_resource(self, url):
        self.resource_reads[url] += 1
        if url in self.resources:
            return self.resources[url]
        if url in self.files:
            return self.files[url]
        raise FileNotFoundError(f"Resource not found: {url}")
