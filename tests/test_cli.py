"""
Tests for the hako command line, the compiler facade and the generated code.
"""
import argparse
import importlib
import json
import os
import sys
import tempfile
import textwrap

import pytest

import hako
from compiler import analyze_source, compile_program, compile_source, write_outputs
from hakoc.config import CompilerOptions
from hakoc.errors import DiagnosticKind, ParseError, Severity
from hakoc.runtime.view import bootstrap_module

WIDGET = textwrap.dedent("""
    from hakoc.runtime.core import Component, Module


    @Component(selector='x-widget', template='<b>{{ label }}</b>')
    class Widget:
        pass


    @Module(declarations=[Widget])
    class WidgetModule:
        pass
""")

TODO_LIST = textwrap.dedent('''
    from hakoc.runtime.common import CommonModule
    from hakoc.runtime.core import Component, Input, Module


    @Component(selector="todo-root", template="""
        <h1>{{ title | upper }}</h1>
        <ul><li *for="let item of items; let i = index">{{ i }}: {{ item }}</li></ul>
    """)
    class TodoComponent:
        title = Input()

        def __init__(self):
            self.title = "hello"
            self.items = ["a", "b"]


    @Module(imports=[CommonModule], declarations=[TodoComponent], bootstrap=[TodoComponent])
    class TodoModule:
        pass
''')


PAIR = textwrap.dedent("""
    from hakoc.runtime.core import Component, Module


    @Component(selector='x-a', template='<b>a</b>')
    class A:
        pass


    @Component(selector='x-b', template_url='./b.html')
    class B:
        pass


    @Module(declarations=[A, B])
    class PairModule:
        pass
""")


@pytest.fixture
def workdir(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.chdir(tmpdir)
        yield tmpdir


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["hako.py", *args])
    hako.main()


class TestCli:
    """Tests for the init, build and check commands."""

    def test_init_then_build(self, workdir, monkeypatch):
        """Init writes a default hako.json that a build of the scaffolded app accepts."""
        run_cli(monkeypatch, "init")
        with open("hako.json") as f:
            assert json.load(f)["failure_policy"] == "declaration"
        run_cli(monkeypatch, "build", "app")
        with open(os.path.join("app", "app_factory.py")) as f:
            generated = f.read()
        assert "class View_AppComponent0(" in generated
        assert "AppModuleFactory = " in generated

    def test_build_into_out_dir_with_summaries(self, workdir, monkeypatch):
        """Outputs and summaries land in the out dir, relative to the source root."""
        os.makedirs("src")
        with open(os.path.join("src", "widget.py"), "w") as f:
            f.write(WIDGET)
        run_cli(monkeypatch, "build", "src", "--source-root", "src", "--out-dir", "out", "--summaries")
        assert os.path.exists(os.path.join("out", "widget_factory.py"))
        assert os.path.exists(os.path.join("out", "widget.summary.json"))

    def test_check_fails_on_errors(self, workdir, monkeypatch):
        """Check exits with status 1 when a declaration fails."""
        with open("bad.py", "w") as f:
            f.write(WIDGET.replace("{{ label }}", "{{ label | nope }}"))
        with pytest.raises(SystemExit) as exc_info:
            run_cli(monkeypatch, "check", "bad.py")
        assert exc_info.value.code == 1

    def test_invalid_config(self, workdir, monkeypatch):
        """A hako.json rejected by the options model exits with status 1."""
        with open("widget.py", "w") as f:
            f.write(WIDGET)
        with open("hako.json", "w") as f:
            json.dump({"workers": 0}, f)
        with pytest.raises(SystemExit) as exc_info:
            run_cli(monkeypatch, "check", "widget.py")
        assert exc_info.value.code == 1

    def test_options_file(self, workdir):
        """Keyword overrides win over the keys of the options file."""
        with open("options.json", "w") as f:
            json.dump({"use_view_engine": True, "locale": "fr", "workers": 4}, f)
        options = CompilerOptions.from_file("options.json", workers=2)
        assert options.use_view_engine and options.locale == "fr"
        assert options.workers == 2

    def test_flags_override_the_config_file(self, workdir):
        """Command line flags override hako.json and a translations path is read into its text."""
        bundle = '{"locale": "fr", "messages": {}}'
        with open("messages.json", "w") as f:
            f.write(bundle)
        with open("hako.json", "w") as f:
            json.dump({"workers": 4, "locale": "fr", "translations": "messages.json"}, f)
        args = argparse.Namespace(config=None, view_engine=True, debug=False, workers=2, summaries=False)
        options = hako.load_options(args)
        assert options.workers == 2 and options.use_view_engine
        assert options.translations == bundle

    def test_malformed_config(self, workdir, monkeypatch):
        """A hako.json that is not JSON exits with an error instead of a traceback."""
        with open("widget.py", "w") as f:
            f.write(WIDGET)
        with open("hako.json", "w") as f:
            f.write("{workers: 2")
        with pytest.raises(SystemExit) as exc_info:
            run_cli(monkeypatch, "check", "widget.py")
        assert exc_info.value.code == 1


class TestCompilerFacade:
    """Tests for the single source helpers in compiler.py."""

    def test_compile_source(self):
        """A single source compiles to a complete factory module."""
        generated = compile_source("/src/widget.py", WIDGET)
        assert generated.startswith("# Generated by hakoc. Do not edit.\n")
        assert "class View_Widget0(" in generated
        assert "WidgetModuleFactory = " in generated

    def test_compile_source_raises_the_first_error(self):
        """The first error diagnostic is raised, naming its symbol."""
        with pytest.raises(ParseError) as exc_info:
            compile_source("/src/widget.py", WIDGET.replace("{{ label }}", "{{ label | nope }}"))
        assert exc_info.value.symbol == "Widget"

    def test_analyze_source(self):
        """Declarations are listed by kind and name without compiling them."""
        assert analyze_source("/src/widget.py", WIDGET) == [
            {"kind": "directive", "name": "Widget"},
            {"kind": "module", "name": "WidgetModule"},
        ]


class TestGeneratedCode:
    """Generated factories are imported and bootstrapped."""

    EXPECTED = "<todo-root><h1>HELLO</h1><ul><!--container--><li>0: a</li><li>1: b</li></ul></todo-root>"

    def bootstrap(self, monkeypatch, tmpdir, module_name, **options):
        source = os.path.join(tmpdir, f"{module_name}.py")
        with open(source, "w") as f:
            f.write(TODO_LIST)
        run = compile_program([source], CompilerOptions(**options))
        assert not run.has_errors
        write_outputs(run)
        monkeypatch.syspath_prepend(tmpdir)
        factory_module = importlib.import_module(f"{module_name}_factory")
        return bootstrap_module(factory_module.TodoModuleFactory).components[0]

    @pytest.mark.parametrize("module_name,options", [
        ("todo_classic", {}),
        ("todo_engine", {"use_view_engine": True}),
    ])
    def test_bootstrap_and_update(self, monkeypatch, module_name, options):
        """Both view strategies render the same markup and follow model changes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            component = self.bootstrap(monkeypatch, tmpdir, module_name, **options)
            assert component.html == self.EXPECTED
            component.instance.items.append("c")
            component.detect_changes()
            assert component.html.count("<li>") == 3
            component.destroy()


class TestUnreadableFiles:
    """Files that cannot be decoded fail the declaration using them, not the run."""

    def test_undecodable_template(self):
        """A template with invalid UTF-8 is a resolution error for its component only."""
        with tempfile.TemporaryDirectory() as tmpdir:
            source = os.path.join(tmpdir, "pair.py")
            with open(source, "w") as f:
                f.write(PAIR)
            with open(os.path.join(tmpdir, "b.html"), "wb") as f:
                f.write(b"<p>\xff\xfe</p>")
            run = compile_program([source])
            errors = [d for d in run.diagnostics if d.severity == Severity.ERROR]
            assert [(d.symbol, d.kind) for d in errors] == [("B", DiagnosticKind.RESOLUTION)]
            assert "Can't read resource" in errors[0].message
            generated = run.generated_files[os.path.join(tmpdir, "pair_factory.py")]
            assert "class View_A0(" in generated
            assert "View_B0" not in generated

    def test_undecodable_imported_source(self):
        """An imported module with invalid UTF-8 is reported while its importer still compiles."""
        with tempfile.TemporaryDirectory() as tmpdir:
            source = os.path.join(tmpdir, "widget.py")
            with open(source, "w") as f:
                f.write("from legacy import LIMIT\n" + WIDGET)
            broken = os.path.join(tmpdir, "legacy.py")
            with open(broken, "wb") as f:
                f.write(b"LIMIT = '\xff'\n")
            run = compile_program([source])
            errors = [d for d in run.diagnostics if d.severity == Severity.ERROR]
            assert [(d.file, d.kind) for d in errors] == [(broken, DiagnosticKind.RESOLUTION)]
            assert "Cannot read source file" in errors[0].message
            assert "WidgetModuleFactory = " in run.generated_files[os.path.join(tmpdir, "widget_factory.py")]
