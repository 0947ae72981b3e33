"""
Shared fixtures: in-memory programs compiled end to end.
"""
import io
import textwrap

import pytest

from hakoc.config import CompilerOptions
from hakoc.console import Console
from hakoc.factory import create_aot_compiler
from hakoc.host import MemoryHost


def make_host(files, resources=None, summaries=None, **kwargs):
    """MemoryHost over dedented sources."""
    return MemoryHost(
        {path: textwrap.dedent(text) for path, text in files.items()},
        summaries=summaries,
        resources={path: textwrap.dedent(text) for path, text in (resources or {}).items()},
        **kwargs,
    )


def compile_files(host, roots, cancel_token=None, console=None, **options):
    console = console or Console(io.StringIO())
    compiler = create_aot_compiler(host, CompilerOptions(**options), console)
    return compiler.compile_all(roots, cancel_token)


@pytest.fixture
def memory_host():
    return make_host


@pytest.fixture
def compile_program():
    return compile_files
